"""
stablecx_check.py: accuracy co-processor on top of the stablecx core.
Evaluates core operations in double precision and certifies them against an mpmath
reference computed from the same inputs at high precision. Adds: JSON-friendly payloads,
grid scans with traces, deterministic manifests, and a task dispatcher.

Dependencies: mpmath.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Tuple
import time, json, hashlib, logging
import numbers
from functools import partial
import mpmath as mp

import stablecx_core
from stablecx_core import Complex, to_complex

logger = logging.getLogger(__name__)

# ---------- Determinism knobs ----------
CHECK_VERSION = "0.1.0"
DEFAULT_DPS = 40
DEFAULT_REL_TOL = 1e-12
TRACE_CAP = 200
mp.mp.dps = DEFAULT_DPS

# ---------- Utility: manifest + statuses ----------

def _manifest(extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Create a deterministic manifest for audit & replay."""
    m: Dict[str, Any] = {
        "check_version": CHECK_VERSION,
        "mpmath_dps": mp.mp.dps,
        "time_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "core_has": sorted(stablecx_core.__all__),
    }
    if extra:
        m.update(extra)
    # digest excludes the volatile time_utc
    h = dict(m)
    h.pop("time_utc", None)
    m["manifest_sha1"] = hashlib.sha1(json.dumps(h, sort_keys=True).encode()).hexdigest()
    return m


def _with_status(status: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    payload.setdefault("status", status)
    return payload


_ok = partial(_with_status, "ok")
_accurate = partial(_with_status, "accurate")
_inaccurate = partial(_with_status, "inaccurate")
_inconclusive = partial(_with_status, "inconclusive")
_error = partial(_with_status, "error")

# ---------- Operation table ----------
# name -> (arity, result kind, double-precision function, mpmath reference)
# kinds: "complex", "real", "polar" (abs, phase), "int"


def _mpc(x: Any) -> mp.mpc:
    return x if isinstance(x, mp.mpc) else mp.mpc(x)


def _ref_pos(a: mp.mpc) -> mp.mpc:
    return mp.mpc(mp.fabs(a.real), mp.fabs(a.imag))


OPS: Dict[str, Tuple[int, str, Callable[..., Any], Callable[..., Any]]] = {
    "add": (2, "complex", lambda a, b: a + b, lambda a, b: a + b),
    "sub": (2, "complex", lambda a, b: a - b, lambda a, b: a - b),
    "mul": (2, "complex", lambda a, b: a * b, lambda a, b: a * b),
    "div": (2, "complex", lambda a, b: a / b, lambda a, b: a / b),
    "neg": (1, "complex", lambda a: -a, lambda a: -a),
    "pos": (1, "complex", lambda a: +a, _ref_pos),
    "conj": (1, "complex", lambda a: a.conj(), mp.conj),
    "inv": (1, "complex", lambda a: a.inv(), lambda a: 1 / a),
    "abs": (1, "real", lambda a: a.abs(), lambda a: abs(a)),
    "abs2": (1, "real", lambda a: a.abs2(), lambda a: a.real ** 2 + a.imag ** 2),
    "phase": (1, "real", lambda a: a.phase(), mp.arg),
    "polar": (1, "polar", lambda a: a.polar(), lambda a: (abs(a), mp.arg(a))),
    "sign": (1, "complex", lambda a: a.sign(), lambda a: a / abs(a)),
    "exp": (1, "complex", lambda a: a.exp(), mp.exp),
    "log": (1, "complex", lambda a: a.log(), mp.log),
    "log2": (1, "complex", lambda a: a.log2(), lambda a: mp.log(a) / mp.ln2),
    "log10": (1, "complex", lambda a: a.log10(), lambda a: mp.log(a) / mp.ln10),
    "sqrt": (1, "complex", lambda a: a.sqrt(), mp.sqrt),
    "to_float": (1, "real", lambda a: a.to_float(), lambda a: a.real),
    "to_int": (1, "int", lambda a: a.to_int(), lambda a: int(a.real)),
}

# ---------- Argument handling ----------

def _parse_arg(raw: Any) -> Any:
    """`[re, im]` is a Complex, a bare number stays a plain real."""
    if isinstance(raw, (list, tuple)):
        if len(raw) != 2:
            raise ValueError(f"complex argument must be [re, im], got {raw!r}")
        return Complex(raw[0], raw[1])
    if isinstance(raw, numbers.Real):
        return raw
    raise ValueError(f"unsupported argument {raw!r}")


def _parse_args(op: str, raw_args: Any) -> List[Any]:
    arity = OPS[op][0]
    if not isinstance(raw_args, (list, tuple)):
        raw_args = [raw_args]
    args = [_parse_arg(a) for a in raw_args]
    if len(args) != arity:
        raise ValueError(f"'{op}' takes {arity} argument(s), got {len(args)}")
    # unary operations are methods of Complex; binary ones need at least one Complex side
    if arity == 1 or not any(isinstance(a, Complex) for a in args):
        args[0] = to_complex(args[0])
    return args


def _grid_args(op: str, entry: Any) -> Any:
    # a unary grid entry may be the bare argument instead of a one-element list
    if OPS[op][0] == 1 and not (isinstance(entry, (list, tuple)) and len(entry) == 1):
        return [entry]
    return entry


def _ref_args(args: List[Any]) -> List[Any]:
    return [mp.mpc(a.real, a.imag) if isinstance(a, Complex) else mp.mpf(a) for a in args]

# ---------- Evaluation + error metric ----------

def evaluate(op: str, args: List[Any]) -> Any:
    """Run one core operation on already-parsed arguments."""
    return OPS[op][2](*args)


def reference(op: str, args: List[Any]) -> Any:
    """Run the mpmath reference of an operation at the current working precision."""
    ref_args = _ref_args(args)
    ref_args[0] = _mpc(ref_args[0])
    return OPS[op][3](*ref_args)


def _finite(x: Any) -> bool:
    return not (mp.isnan(x) or mp.isinf(x))


def rel_error(kind: str, value: Any, ref: Any) -> mp.mpf | None:
    """
    Relative error of a double-precision result against its reference
    (absolute error when the reference is zero). None when the reference is not finite.
    """
    if kind == "polar":
        errs = [rel_error("real", v, r) for v, r in zip(value, ref)]
        if any(e is None for e in errs):
            return None
        return max(errs)
    if kind == "complex":
        v = mp.mpc(value.real, value.imag)
        ref = _mpc(ref)
    else:
        v = mp.mpf(value)
    if not _finite(ref):
        return None
    if not _finite(v):
        return mp.inf
    diff = abs(v - ref)
    scale = abs(ref)
    return diff / scale if scale else diff


def _value_json(kind: str, value: Any) -> Any:
    if kind == "complex":
        return {"real": value.real, "imag": value.imag, "text": str(value)}
    if kind == "polar":
        return [value[0], value[1]]
    return value


def _ref_json(kind: str, ref: Any) -> Any:
    if kind == "complex":
        ref = _mpc(ref)
        return {"real": float(ref.real), "imag": float(ref.imag), "text": mp.nstr(ref, 20)}
    if kind == "polar":
        return [float(ref[0]), float(ref[1])]
    if kind == "int":
        return int(ref)
    return float(ref)


def _measure(op: str, args: List[Any]) -> Dict[str, Any]:
    """Evaluate and compare one point. Core exceptions propagate to the caller."""
    kind = OPS[op][1]
    value = evaluate(op, args)
    row: Dict[str, Any] = {"value": _value_json(kind, value)}
    try:
        ref = reference(op, args)
    except (ZeroDivisionError, ValueError) as e:
        logger.debug("no reference for %s%r: %s", op, args, e)
        row["rel_error"] = None
        row["reference_error"] = str(e)
        return row
    err = rel_error(kind, value, ref)
    row["reference"] = _ref_json(kind, ref) if err is not None else None
    row["rel_error"] = None if err is None else float(err)
    return row

# ---------- Tasks ----------

def eval_op(task: Dict[str, Any]) -> Dict[str, Any]:
    """
    Task schema:
    {"type": "eval", "op": "sqrt", "args": [[-4, 0]]}
    Returns the double-precision value of one core operation.
    """
    op = task.get("op", "")
    if op not in OPS:
        return _inconclusive({"error": f"unknown op '{op}'", "manifest": _manifest({"task_type": "eval"})})
    try:
        args = _parse_args(op, task.get("args", []))
    except ValueError as e:
        return _inconclusive({"error": str(e), "manifest": _manifest({"task_type": "eval"})})
    try:
        value = evaluate(op, args)
    except (ArithmeticError, ValueError) as e:
        return _error({"op": op, "error": f"{e.__class__.__name__}: {e}", "manifest": _manifest({"task_type": "eval"})})
    return _ok({"op": op, "value": _value_json(OPS[op][1], value), "manifest": _manifest({"task_type": "eval"})})


def check_op(task: Dict[str, Any]) -> Dict[str, Any]:
    """
    Task schema:
    {
      "type": "check",
      "op": "div",
      "args": [[1, 1], [1e-200, 1e-200]],
      "rel_tol": 1e-12,          # accepted relative error
      "dps": 40                  # reference precision
    }
    Returns a certificate: accurate / inaccurate / inconclusive.
    """
    op = task.get("op", "")
    if op not in OPS:
        return _inconclusive({"error": f"unknown op '{op}'", "manifest": _manifest({"task_type": "check"})})
    rel_tol = float(task.get("rel_tol", DEFAULT_REL_TOL))
    dps = int(task.get("dps", mp.mp.dps))
    with mp.workdps(dps):
        try:
            args = _parse_args(op, task.get("args", []))
        except ValueError as e:
            return _inconclusive({"error": str(e), "manifest": _manifest({"task_type": "check"})})
        try:
            row = _measure(op, args)
        except (ArithmeticError, ValueError) as e:
            return _error({"op": op, "error": f"{e.__class__.__name__}: {e}", "manifest": _manifest({"task_type": "check"})})

        cert = {"input": {"op": op, "args": task.get("args", []), "rel_tol": rel_tol}}
        cert.update(row)
        out = {"certificate": cert, "manifest": _manifest({"task_type": "check"})}
        if row["rel_error"] is None:
            return _inconclusive(out)
        if row["rel_error"] <= rel_tol:
            return _accurate(out)
        return _inaccurate(out)


def scan_op(task: Dict[str, Any]) -> Dict[str, Any]:
    """
    Task schema:
    {
      "type": "scan",
      "op": "sqrt",
      "grid": [[-4, 0], [-1, 1e-300], ...],   # argument lists; unary ops may give the bare argument
      "rel_tol": 1e-12,
      "dps": 40
    }
    Returns certificate with accurate/inaccurate/inconclusive and a witness when inaccurate.
    """
    op = task.get("op", "")
    if op not in OPS:
        return _inconclusive({"error": f"unknown op '{op}'", "manifest": _manifest({"task_type": "scan"})})
    grid = task.get("grid", [])
    if not grid:
        raise ValueError("grid required and non-empty")
    rel_tol = float(task.get("rel_tol", DEFAULT_REL_TOL))
    dps = int(task.get("dps", mp.mp.dps))

    trace: List[Dict[str, Any]] = []
    max_err = 0.0
    worst = None
    skipped = 0
    witness = None

    with mp.workdps(dps):
        for entry in grid:
            raw = _grid_args(op, entry)
            try:
                args = _parse_args(op, raw)
                row = _measure(op, args)
            except (ArithmeticError, ValueError) as e:
                logger.debug("scan %s skipped %r: %s", op, raw, e)
                skipped += 1
                trace.append({"args": raw, "error": f"{e.__class__.__name__}: {e}"})
                continue

            err = row["rel_error"]
            trace.append({"args": raw, "rel_error": err})
            if err is None:
                skipped += 1
                continue
            if worst is None or err > max_err:
                max_err = err
                worst = {"args": raw, "rel_error": err, "value": row["value"]}
            if err > rel_tol and witness is None:
                witness = {"args": raw, "rel_error": err, "value": row["value"], "reference": row["reference"]}

        cert: Dict[str, Any] = {
            "task": {"op": op, "rel_tol": rel_tol, "len_grid": len(grid)},
            "bounds": {"max_rel_error": max_err, "skipped": skipped},
            "worst_point": worst,
            "trace": trace[:TRACE_CAP],
        }
        out: Dict[str, Any] = {"certificate": cert, "manifest": _manifest({"task_type": "scan"})}

    logger.debug("scan %s: %d points, max error %g, %d skipped", op, len(grid), max_err, skipped)
    if witness is not None:
        out["witness"] = witness
        return _inaccurate(out)
    if worst is None:
        return _inconclusive(out)
    return _accurate(out)

# ---------- Dispatcher ----------

def solve(task: Dict[str, Any]) -> Dict[str, Any]:
    ttype = task.get("type", "")
    logger.debug("solving %s task", ttype or "untyped")
    if ttype == "eval":
        return eval_op(task)
    if ttype == "check":
        return check_op(task)
    if ttype == "scan":
        return scan_op(task)
    return _inconclusive({"error": f"unknown task type '{ttype}'", "manifest": _manifest({"task_type": "unknown"})})
