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

from tcrit_pipeline.analysis.aggregate import TcritAggregator, write_tcrit_csv  # noqa: E402
from tcrit_pipeline.analysis.core import BreakpointResult  # noqa: E402


class TcritAggregatorTests(unittest.TestCase):
    def test_rows_follow_original_column_order(self) -> None:
        agg = TcritAggregator(["D1", "D2", "D3"])
        agg.record("D3", BreakpointResult(tcrit=47.1, tcrit_error=0.3))
        agg.record("D1", BreakpointResult(tcrit=45.25, tcrit_error=0.12))
        agg.record("D2", None)

        table = agg.finalize()
        self.assertEqual(list(table.columns), ["Sample", "Tcrit", "Tcrit.error"])
        self.assertEqual(table["Sample"].tolist(), ["D1", "D2", "D3"])
        self.assertEqual(float(table.loc[0, "Tcrit"]), 45.25)
        self.assertTrue(np.isnan(table.loc[1, "Tcrit"]))
        self.assertTrue(np.isnan(table.loc[1, "Tcrit.error"]))

    def test_unrecorded_sample_keeps_a_missing_row(self) -> None:
        agg = TcritAggregator(["D1", "D2"])
        agg.record("D1", BreakpointResult(tcrit=44.0, tcrit_error=0.5))
        table = agg.finalize()
        self.assertEqual(len(table), 2)
        self.assertTrue(np.isnan(table.loc[1, "Tcrit"]))

    def test_finalize_is_idempotent_and_closes_recording(self) -> None:
        agg = TcritAggregator()
        agg.record("A", BreakpointResult(tcrit=40.0, tcrit_error=1.0))
        first = agg.finalize()
        first.loc[0, "Tcrit"] = -1.0
        second = agg.finalize()
        self.assertEqual(float(second.loc[0, "Tcrit"]), 40.0)
        with self.assertRaises(RuntimeError):
            agg.record("B", None)

    def test_duplicate_and_unknown_samples_rejected(self) -> None:
        agg = TcritAggregator(["A"])
        agg.record("A", None)
        with self.assertRaises(ValueError):
            agg.record("A", None)
        with self.assertRaises(ValueError):
            agg.record("Z", None)

    def test_csv_uses_two_decimals_and_na(self) -> None:
        agg = TcritAggregator(["D1", "D2"])
        agg.record("D1", BreakpointResult(tcrit=45.0, tcrit_error=0.04))
        agg.record("D2", None)
        with tempfile.TemporaryDirectory() as td:
            path = write_tcrit_csv(agg.finalize(), Path(td) / "out" / "tcrit__run.csv")
            lines = path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines, ["Sample,Tcrit,Tcrit.error", "D1,45.00,0.04", "D2,NA,NA"])


if __name__ == "__main__":
    unittest.main()
