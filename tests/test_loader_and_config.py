from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from tcrit_pipeline.config import TcritConfig, load_tcrit_config, tcrit_config_from_mapping  # noqa: E402
from tcrit_pipeline.loader import read_fluorescence_csv  # noqa: E402
from tcrit_pipeline.meta_paths import get_run_paths  # noqa: E402
from tcrit_pipeline.raw_bundle import derive_run_id, list_raw_csv_files  # noqa: E402


class ReadFluorescenceCsvTests(unittest.TestCase):
    def test_columns_are_renamed_and_samples_coerced(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "run_fluor.csv"
            path.write_text(
                "Time,Temp,Disk 1,Disk 2\n"
                "10:00:00,30.0,100,200\n"
                "10:01:00,31.0,,210\n"
                "10:02:00,32.0,130,err\n",
                encoding="utf-8",
            )
            raw = read_fluorescence_csv(path)
        self.assertEqual(list(raw.columns), ["timestamp", "temperature", "Disk 1", "Disk 2"])
        self.assertEqual(raw["timestamp"].tolist(), ["10:00:00", "10:01:00", "10:02:00"])
        np.testing.assert_array_equal(raw["temperature"].to_numpy(), [30.0, 31.0, 32.0])
        self.assertTrue(np.isnan(raw["Disk 1"].iloc[1]))
        self.assertTrue(np.isnan(raw["Disk 2"].iloc[2]))

    def test_missing_file_is_fatal(self) -> None:
        with self.assertRaises(FileNotFoundError):
            read_fluorescence_csv(Path("/nonexistent/run_fluor.csv"))

    def test_malformed_tables_are_fatal(self) -> None:
        cases = {
            "too_few_columns.csv": "Time,Temp\n0,30\n",
            "bad_temperature.csv": "Time,Temp,D1\n0,30,1\n1,hot,2\n",
            "duplicate_headers.csv": "Time,Temp,D1,D1 \n0,30,1,2\n",
            "exact_duplicate_headers.csv": "Time,Temp,D1,D1\n0,30,1,2\n",
            "temperature_sample_header.csv": "Time,Temp,D1,temperature\n0,30,1,3\n1,31,2,4\n",
            "timestamp_sample_header.csv": "Time,Temp,timestamp,D2\n0,30,1,3\n",
            "header_only.csv": "Time,Temp,D1\n",
            "empty.csv": "",
        }
        with tempfile.TemporaryDirectory() as td:
            for name, text in cases.items():
                path = Path(td) / name
                path.write_text(text, encoding="utf-8")
                with self.subTest(name=name):
                    with self.assertRaises(ValueError):
                        read_fluorescence_csv(path)


class RawBundleTests(unittest.TestCase):
    def test_folder_lists_suffix_matches_sorted(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "b_fluor.csv").write_text("x\n", encoding="utf-8")
            (root / "a_FLUOR.csv").write_text("x\n", encoding="utf-8")
            (root / "a_temps.csv").write_text("x\n", encoding="utf-8")
            (root / "notes.txt").write_text("x\n", encoding="utf-8")

            files = list_raw_csv_files(root, suffix="_fluor.csv")
            self.assertEqual([p.name for p in files], ["a_FLUOR.csv", "b_fluor.csv"])

    def test_folder_without_matches_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "other.csv").write_text("x\n", encoding="utf-8")
            with self.assertRaises(FileNotFoundError):
                list_raw_csv_files(Path(td), suffix="_fluor.csv")

    def test_run_id_strips_marker(self) -> None:
        self.assertEqual(derive_run_id(Path("leafA_fluor.csv"), suffix="_fluor.csv"), "leafA")
        self.assertEqual(derive_run_id(Path("leafB.csv"), suffix="_fluor.csv"), "leafB")
        paths = get_run_paths(Path("data/processed"), "leafA")
        self.assertEqual(paths.tcrit_csv, Path("data/processed/leafA/tcrit__leafA.csv"))


class TcritConfigTests(unittest.TestCase):
    def test_yaml_section_and_overrides(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yml"
            path.write_text("tcrit:\n  deg_min: 30\n  post_buffer: 12\n  write_plots: false\n", encoding="utf-8")
            cfg = load_tcrit_config(path)
        self.assertEqual(cfg.deg_min, 30.0)
        self.assertEqual(cfg.post_buffer, 12.0)
        self.assertFalse(cfg.write_plots)
        self.assertEqual(cfg.pre_buffer, TcritConfig().pre_buffer)

        cfg2 = cfg.with_overrides(deg_min=None, pre_buffer=4.0)
        self.assertEqual(cfg2.deg_min, 30.0)
        self.assertEqual(cfg2.pre_buffer, 4.0)
        self.assertEqual(
            cfg2.window_params(),
            {"deg_min": 30.0, "deg_max": 60.0, "pre_buffer": 4.0, "post_buffer": 12.0},
        )

    def test_invalid_config_rejected(self) -> None:
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"deg_min": 60, "deg_max": 40})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"preBuffer": 3})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"post_buffer": -1})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"max_iter": "many"})

    def test_settings_are_not_silently_coerced(self) -> None:
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"write_plots": "false"})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"write_plots": 0})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"max_iter": 3.9})
        with self.assertRaises(ValueError):
            tcrit_config_from_mapping({"max_iter": True})
        cfg = tcrit_config_from_mapping({"max_iter": 40.0, "write_plots": False})
        self.assertEqual(cfg.max_iter, 40)
        self.assertIsInstance(cfg.max_iter, int)
        self.assertFalse(cfg.write_plots)

    def test_missing_config_file_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_tcrit_config(Path("/nonexistent/config.yml"))


if __name__ == "__main__":
    unittest.main()
