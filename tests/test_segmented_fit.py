from __future__ import annotations

import sys
import unittest
from pathlib import Path

import numpy as np


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from tcrit_pipeline.analysis.core import (  # noqa: E402
    AnalysisWindow,
    InsufficientWindowDataError,
    NoBreakpointDetectedError,
    NonConvergenceError,
)
from tcrit_pipeline.analysis.segmented import estimate_breakpoint, fit_segmented  # noqa: E402


def _broken_line(x: np.ndarray, psi: float, b0: float = 0.1, s1: float = 0.005, ds: float = 0.06) -> np.ndarray:
    return b0 + s1 * (x - 30.0) + ds * np.maximum(x - psi, 0.0)


class FitSegmentedTests(unittest.TestCase):
    def test_exact_two_segments_recover_breakpoint(self) -> None:
        x = np.arange(30.0, 55.0, 0.5)
        y = _broken_line(x, 42.3)
        fit = fit_segmented(AnalysisWindow.from_arrays(x, y, sample_id="exact"))

        self.assertAlmostEqual(fit.psi, 42.3, delta=0.05)
        self.assertAlmostEqual(fit.slope_left, 0.005, delta=1e-3)
        self.assertAlmostEqual(fit.slope_right, 0.065, delta=1e-3)
        self.assertLess(fit.psi_se, 0.1)
        self.assertEqual(fit.n, x.size)
        self.assertEqual(fit.df_resid, x.size - 4)
        self.assertGreaterEqual(fit.iterations, 1)
        np.testing.assert_allclose(fit.predict(x), y, atol=1e-6)

    def test_noisy_two_segments_within_half_degree(self) -> None:
        rng = np.random.default_rng(7)
        x = np.linspace(32.0, 52.0, 81)
        y = _broken_line(x, 44.0) + rng.normal(0.0, 0.01, size=x.size)
        fit = fit_segmented(AnalysisWindow.from_arrays(x, y))

        self.assertLess(abs(fit.psi - 44.0), 0.5)
        self.assertGreater(fit.psi_se, 0.0)
        self.assertLess(fit.psi_ci[0], fit.psi)
        self.assertGreater(fit.psi_ci[1], fit.psi)
        self.assertLess(fit.f_pvalue, 1e-6)

    def test_unsorted_window_and_missing_rows_are_handled(self) -> None:
        x = np.arange(30.0, 50.0, 0.5)
        y = _broken_line(x, 41.0)
        order = np.random.default_rng(3).permutation(x.size)
        xs = x[order]
        ys = y[order].copy()
        ys[5] = np.nan
        fit = fit_segmented(AnalysisWindow.from_arrays(xs, ys))
        self.assertAlmostEqual(fit.psi, 41.0, delta=0.05)
        self.assertEqual(fit.n, x.size - 1)

    def test_straight_line_has_no_breakpoint(self) -> None:
        x = np.arange(30.0, 50.0, 0.5)
        y = 0.02 * x - 0.5
        with self.assertRaises(NoBreakpointDetectedError):
            fit_segmented(AnalysisWindow.from_arrays(x, y))

    def test_too_few_points_raise(self) -> None:
        x = np.array([30.0, 31.0, 32.0, 33.0])
        y = np.array([0.0, 0.1, 0.5, 0.9])
        with self.assertRaises(InsufficientWindowDataError):
            fit_segmented(AnalysisWindow.from_arrays(x, y))

    def test_iteration_budget_exhausted_raises(self) -> None:
        x = np.arange(30.0, 55.0, 0.5)
        y = _broken_line(x, 47.0)
        with self.assertRaises(NonConvergenceError):
            fit_segmented(AnalysisWindow.from_arrays(x, y), psi0=35.0, max_iter=1)

    def test_estimate_breakpoint_rounds_to_two_decimals(self) -> None:
        rng = np.random.default_rng(11)
        x = np.linspace(30.0, 50.0, 61)
        y = _broken_line(x, 43.37) + rng.normal(0.0, 0.005, size=x.size)
        window = AnalysisWindow.from_arrays(x, y, sample_id="R")
        fit = fit_segmented(window)
        res = estimate_breakpoint(window)
        self.assertEqual(res.tcrit, round(fit.psi, 2))
        self.assertEqual(res.tcrit_error, round(fit.psi_se, 2))

    def test_repeat_fit_is_deterministic(self) -> None:
        rng = np.random.default_rng(5)
        x = np.linspace(30.0, 50.0, 61)
        y = _broken_line(x, 40.0) + rng.normal(0.0, 0.01, size=x.size)
        window = AnalysisWindow.from_arrays(x, y)
        self.assertEqual(fit_segmented(window), fit_segmented(window))


if __name__ == "__main__":
    unittest.main()
