import math

import mpmath as mp
import pytest

import stablecx_check
from stablecx_check import DEFAULT_DPS, rel_error, solve
from stablecx_core import Complex


def test_eval_sqrt_of_negative_real():
    out = solve({"type": "eval", "op": "sqrt", "args": [[-4, 0]]})
    assert out["status"] == "ok"
    assert out["value"] == {"real": 0.0, "imag": 2.0, "text": "0.0 + 2.0i"}
    assert out["manifest"]["task_type"] == "eval"


def test_eval_real_left_division():
    out = solve({"type": "eval", "op": "div", "args": [2, [0, 1]]})
    assert out["status"] == "ok"
    assert out["value"]["real"] == 0.0
    assert out["value"]["imag"] == -2.0


def test_eval_real_only_arguments_are_embedded():
    out = solve({"type": "eval", "op": "sub", "args": [1, 3]})
    assert out["value"]["text"] == "-2.0 + 0.0i"


def test_eval_polar_and_real_results():
    assert solve({"type": "eval", "op": "abs2", "args": [[42, 2]]})["value"] == 1768.0
    r, theta = solve({"type": "eval", "op": "polar", "args": [[42, 2]]})["value"]
    assert r == pytest.approx(42.047592083257278)
    assert theta == pytest.approx(0.047583103276983396)


def test_eval_narrowing_failure_is_reported():
    out = solve({"type": "eval", "op": "to_float", "args": [[1, 1]]})
    assert out["status"] == "error"
    assert out["error"].startswith("ConversionError")


def test_eval_narrowing_success():
    assert solve({"type": "eval", "op": "to_int", "args": [[-3.7, 0]]})["value"] == -3


@pytest.mark.parametrize("task", [
    {"type": "eval", "op": "cbrt", "args": [[1, 0]]},
    {"type": "eval", "op": "sqrt", "args": [[1, 0], [2, 0]]},
    {"type": "eval", "op": "add", "args": [[1, 0, 3], 1]},
    {"type": "eval", "op": "add", "args": [[1, 0], "x"]},
])
def test_eval_bad_tasks_are_inconclusive(task):
    out = solve(task)
    assert out["status"] == "inconclusive"
    assert "error" in out


def test_unknown_task_type():
    out = solve({"type": "prove"})
    assert out["status"] == "inconclusive"
    assert "unknown task type" in out["error"]


@pytest.mark.parametrize("op,args", [
    ("div", [[1, 1], [1e-200, 1e-200]]),
    ("div", [[1e300, 1e300], [1e300, 2e300]]),
    ("abs", [[1e300, 1e300]]),
    ("sqrt", [[-1, 1e-300]]),
    ("sqrt", [[-4, 0]]),
    ("exp", [[4, 2]]),
    ("log", [[-1, 0]]),
    ("log10", [[1000, 5]]),
    ("inv", [[3, -4]]),
    ("pos", [[-3, -4]]),
    ("polar", [[42, 2]]),
    ("mul", [2.5, [1, -1]]),
])
def test_check_accurate(op, args):
    out = solve({"type": "check", "op": op, "args": args})
    assert out["status"] == "accurate", out
    assert out["certificate"]["rel_error"] <= stablecx_check.DEFAULT_REL_TOL


def test_check_reports_signed_branch_division():
    out = solve({"type": "check", "op": "div", "args": [[1, 0], [-2, 0]]})
    assert out["status"] == "inaccurate"
    cert = out["certificate"]
    assert cert["rel_error"] == math.inf
    assert cert["reference"]["real"] == -0.5


def test_check_without_finite_reference_is_inconclusive():
    out = solve({"type": "check", "op": "log", "args": [[0, 0]]})
    assert out["status"] == "inconclusive"
    assert out["certificate"]["rel_error"] is None


def test_check_reference_division_by_zero_is_inconclusive():
    out = solve({"type": "check", "op": "sign", "args": [[0, 0]]})
    assert out["status"] == "inconclusive"
    assert "reference_error" in out["certificate"]


def test_check_narrowing_failure_is_reported():
    out = solve({"type": "check", "op": "to_float", "args": [[0, 1]]})
    assert out["status"] == "error"


def test_check_precision_is_scoped():
    out = solve({"type": "check", "op": "exp", "args": [[1, 1]], "dps": 60})
    assert out["manifest"]["mpmath_dps"] == 60
    assert mp.mp.dps == DEFAULT_DPS


def test_check_rel_tol_override():
    out = solve({"type": "check", "op": "pos", "args": [[-3, 4]], "rel_tol": 0.0})
    assert out["status"] == "accurate"
    assert out["certificate"]["input"]["rel_tol"] == 0.0
    assert out["certificate"]["rel_error"] == 0.0


def test_scan_sqrt_across_branch_cut():
    grid = [[-4, 0], [-4, -0.0], [-1, 1e-300], [-1, -1e-300], [0, 2], [1e300, 1e300], [3, 4]]
    out = solve({"type": "scan", "op": "sqrt", "grid": grid})
    assert out["status"] == "accurate"
    cert = out["certificate"]
    assert cert["task"]["len_grid"] == len(grid)
    assert len(cert["trace"]) == len(grid)
    assert cert["bounds"]["skipped"] == 0
    assert cert["worst_point"] is not None
    assert "witness" not in out


def test_scan_finds_witness():
    grid = [[[1, 1], [2, 3]], [[1, 0], [-2, 0]], [[5, 5], [1, 1]]]
    out = solve({"type": "scan", "op": "div", "grid": grid})
    assert out["status"] == "inaccurate"
    assert out["witness"]["args"] == [[1, 0], [-2, 0]]
    assert out["certificate"]["bounds"]["max_rel_error"] == math.inf


def test_scan_counts_skipped_points():
    out = solve({"type": "scan", "op": "to_float", "grid": [[1, 0], [1, 1]]})
    assert out["status"] == "accurate"
    assert out["certificate"]["bounds"]["skipped"] == 1
    assert "ConversionError" in out["certificate"]["trace"][1]["error"]


def test_scan_all_skipped_is_inconclusive():
    out = solve({"type": "scan", "op": "log", "grid": [[0, 0]]})
    assert out["status"] == "inconclusive"


def test_scan_trace_is_capped(monkeypatch):
    monkeypatch.setattr(stablecx_check, "TRACE_CAP", 3)
    out = solve({"type": "scan", "op": "neg", "grid": [[i, -i] for i in range(10)]})
    assert len(out["certificate"]["trace"]) == 3


def test_scan_requires_grid():
    with pytest.raises(ValueError):
        solve({"type": "scan", "op": "sqrt", "grid": []})


def test_manifest_digest_is_deterministic():
    a = solve({"type": "eval", "op": "neg", "args": [[1, 2]]})["manifest"]
    b = solve({"type": "eval", "op": "conj", "args": [[3, 4]]})["manifest"]
    assert a["manifest_sha1"] == b["manifest_sha1"]
    assert "Complex" in a["core_has"]
    assert a["mpmath_dps"] == DEFAULT_DPS


def test_rel_error():
    assert rel_error("real", 1.0, mp.mpf(1)) == 0
    assert rel_error("real", 1e-20, mp.mpf(0)) == mp.mpf(1e-20)
    assert rel_error("real", math.nan, mp.mpf(1)) == mp.inf
    assert rel_error("real", 1.0, mp.inf) is None
    assert rel_error("complex", Complex(1, 1), mp.mpc(1, 1)) == 0
    assert rel_error("polar", (2.0, 0.0), (mp.mpf(2), mp.mpf(0))) == 0
