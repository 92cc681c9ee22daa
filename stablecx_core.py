"""
stablecx_core.py: immutable double-precision complex number with stable algorithms.

A complex number is written a + bi, where a (the real part) and b (the imaginary part)
are real numbers and i² = -1.

    >>> Complex(1, 0)
    (1.0 + 0.0i)
    >>> str(Complex(5, -12))
    '5.0 - 12.0i'
    >>> to_complex(1), imaginary(1)
    ((1.0 + 0.0i), (0.0 + 1.0i))

`abs`, `sqrt` and division avoid the catastrophic cancellation / overflow of the textbook
formulas. Every arithmetic operation is total over IEEE-754 doubles: results carry
NaN/Infinity instead of raising. The only failure is narrowing a value whose imaginary
part is not exactly zero (`ConversionError`).
"""

from __future__ import annotations
from typing import Any, Callable, Tuple
import math
import numbers
import struct
from decimal import Decimal

LOG2 = math.log(2.0)
LOG10 = math.log(10.0)

_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1
_INT64_MIN, _INT64_MAX = -(2 ** 63), 2 ** 63 - 1


class ConversionError(ValueError):
    """Narrowing a complex value with a non-zero imaginary part to a real type."""

    def __init__(self, message: str = "Complex number with non-zero imaginary part can't be converted to real number"):
        super().__init__(message)
        self.message = message


# ---------- IEEE-754 helpers ----------
# CPython raises where IEEE-754 produces Inf/NaN; these return the IEEE result.

def _div(x: float, y: float) -> float:
    try:
        return x / y
    except ZeroDivisionError:
        if math.isnan(x) or x == 0.0:
            return math.nan
        return math.copysign(math.inf, x) * math.copysign(1.0, y)


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


def _log(x: float) -> float:
    # only called with magnitudes, so x is never negative
    if x == 0.0:
        return -math.inf
    return math.log(x)


def _cos(x: float) -> float:
    return math.nan if math.isinf(x) else math.cos(x)


def _sin(x: float) -> float:
    return math.nan if math.isinf(x) else math.sin(x)


def _is_real(x: Any) -> bool:
    return isinstance(x, (numbers.Real, Decimal)) and not isinstance(x, Complex)


class Complex:
    """Immutable pair of doubles (real, imag)."""

    __slots__ = ("_real", "_imag")

    def __init__(self, real: Any, imag: Any):
        self._real = float(real)
        self._imag = float(imag)

    @property
    def real(self) -> float:
        """The real part."""
        return self._real

    @property
    def imag(self) -> float:
        """The imaginary part."""
        return self._imag

    @classmethod
    def zero(cls) -> Complex:
        """Return the number 0 in complex form."""
        return cls(0, 0)

    @classmethod
    def from_polar(cls, r: Any, theta: Any) -> Complex:
        return cis(theta) * float(r)

    def is_zero(self) -> bool:
        return self._real == 0 and self._imag == 0

    def __bool__(self) -> bool:
        return not self.is_zero()

    # ---------- copying / pickling ----------

    def __copy__(self) -> Complex:
        return self

    def __deepcopy__(self, memo: Any) -> Complex:
        return self

    def __reduce__(self):
        return (Complex, (self._real, self._imag))

    # ---------- equality / hashing ----------

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Complex):
            return self._real == other._real and self._imag == other._imag
        if _is_real(other):
            # exact comparison, so equal values share the hash of the bare real
            return self._imag == 0 and self._real == other
        return NotImplemented

    def __hash__(self) -> int:
        # a zero-imaginary value hashes like the bare real, so both can share dict keys
        if self._imag == 0:
            return hash(self._real)
        return hash((self._real, self._imag))

    # ---------- narrowing ----------

    def to_complex(self) -> Complex:
        return self

    def to_float(self) -> float:
        """
        Return the value as a float if the imaginary part is exactly zero.
        Raises ConversionError otherwise.
        """
        if self._imag != 0:
            raise ConversionError()
        return self._real

    def to_float32(self) -> float:
        """Like `to_float`, rounded to IEEE single precision."""
        return struct.unpack("f", struct.pack("f", self.to_float()))[0]

    def to_int64(self) -> int:
        """Like `to_float`, truncated toward zero; raises OverflowError outside int64."""
        value = int(self.to_float())
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise OverflowError(f"{value} out of range for int64")
        return value

    def to_int32(self) -> int:
        value = self.to_int64()
        if not _INT32_MIN <= value <= _INT32_MAX:
            raise OverflowError(f"{value} out of range for int32")
        return value

    to_int = to_int64

    def __float__(self) -> float:
        return self.to_float()

    def __int__(self) -> int:
        return self.to_int()

    def __complex__(self) -> complex:
        return complex(self._real, self._imag)

    # ---------- formatting ----------

    def __str__(self) -> str:
        return self.__format__("")

    def __repr__(self) -> str:
        return f"({self})"

    def __format__(self, spec: str) -> str:
        """Format both components with a float format spec, e.g. `f"{z:.3f}"`."""
        sep = " + " if self._imag >= 0 else " - "
        if not spec:
            return f"{self._real!r}{sep}{abs(self._imag)!r}i"
        return f"{format(self._real, spec)}{sep}{format(abs(self._imag), spec)}i"

    def write(self, io: Any) -> None:
        """Write this complex to a text sink, e.g. `Complex(42, 2)` writes `42.0 + 2.0i`."""
        io.write(str(self))

    def write_inspect(self, io: Any) -> None:
        """Write this complex to a text sink surrounded by parentheses."""
        io.write(repr(self))

    # ---------- magnitude / phase ----------

    def abs(self) -> float:
        """
        Absolute value by the Pythagorean theorem, computed with `math.hypot` so that
        neither component is squared directly.

            >>> Complex(42, 2).abs()
            42.04759208325728
            >>> Complex(-42, 2).abs()
            42.04759208325728
        """
        return math.hypot(self._real, self._imag)

    __abs__ = abs

    def abs2(self) -> float:
        """
        Square of the absolute value. Not overflow safe.

            >>> Complex(42, 2).abs2()
            1768.0
        """
        return self._real * self._real + self._imag * self._imag

    def sign(self) -> Complex:
        # NaN components for zero
        return self / self.abs()

    def phase(self) -> float:
        return math.atan2(self._imag, self._real)

    def polar(self) -> Tuple[float, float]:
        """
        Return `(abs, phase)`.

            >>> Complex(42, 2).polar()
            (42.04759208325728, 0.047583103276983396)
        """
        return self.abs(), self.phase()

    def conj(self) -> Complex:
        """
        Return the conjugate.

            >>> Complex(42, 2).conj()
            (42.0 - 2.0i)
            >>> Complex(42, -2).conj()
            (42.0 + 2.0i)
        """
        return Complex(self._real, -self._imag)

    conjugate = conj

    def inv(self) -> Complex:
        """Multiplicative inverse, `conj / abs2`."""
        return self.conj() / self.abs2()

    # ---------- roots / transcendental ----------

    def sqrt(self) -> Complex:
        """
        Principal square root.

        Built from the half-angle identities instead of `sqrt(r) * cis(phase / 2)`; each
        component is either a sum of non-negative terms or a quotient by one, so nothing
        cancels near the negative real axis. See Pavel Panchekha,
        https://pavpanchekha.com/casio/
        """
        r = self.abs()

        if self._real >= 0:
            re = 0.5 * math.sqrt(2.0 * (r + self._real))
        else:
            re = _div(abs(self._imag), math.sqrt(2.0 * (r - self._real)))

        if self._real <= 0:
            im = 0.5 * math.sqrt(2.0 * (r - self._real))
        else:
            im = _div(abs(self._imag), math.sqrt(2.0 * (r + self._real)))

        return Complex(re, im if self._imag >= 0 else -im)

    def exp(self) -> Complex:
        """
        e raised to this value.

            >>> Complex(4, 2).exp()
            (-22.720847417619233 + 49.645957334580565i)
        """
        r = _exp(self._real)
        return Complex(r * _cos(self._imag), r * _sin(self._imag))

    def log(self) -> Complex:
        """Principal natural logarithm, phase in (-pi, pi]."""
        return Complex(_log(self.abs()), self.phase())

    def log2(self) -> Complex:
        return self.log() / LOG2

    def log10(self) -> Complex:
        return self.log() / LOG10

    # ---------- operators ----------

    def __pos__(self) -> Complex:
        # componentwise absolute value, not identity
        return Complex(abs(self._real), abs(self._imag))

    def __neg__(self) -> Complex:
        return Complex(-self._real, -self._imag)


# ---------- operator pairings ----------
# One function per (Complex, Complex), (Complex, Real) and (Real, Complex) pairing.

def _add_cc(a: Complex, b: Complex) -> Complex:
    return Complex(a.real + b.real, a.imag + b.imag)


def _add_cr(a: Complex, x: float) -> Complex:
    return Complex(a.real + x, a.imag)


def _add_rc(x: float, b: Complex) -> Complex:
    return Complex(x + b.real, b.imag)


def _sub_cc(a: Complex, b: Complex) -> Complex:
    return Complex(a.real - b.real, a.imag - b.imag)


def _sub_cr(a: Complex, x: float) -> Complex:
    return Complex(a.real - x, a.imag)


def _sub_rc(x: float, b: Complex) -> Complex:
    return Complex(x - b.real, -b.imag)


def _mul_cc(a: Complex, b: Complex) -> Complex:
    return Complex(a.real * b.real - a.imag * b.imag, a.real * b.imag + a.imag * b.real)


def _mul_cr(a: Complex, x: float) -> Complex:
    return Complex(a.real * x, a.imag * x)


def _mul_rc(x: float, b: Complex) -> Complex:
    return Complex(x * b.real, x * b.imag)


def _div_cc(a: Complex, b: Complex) -> Complex:
    # Smith's algorithm. The branch compares the raw signed components, not magnitudes.
    if b.real <= b.imag:
        r = _div(b.real, b.imag)
        d = b.imag + r * b.real
        return Complex(_div(a.real * r + a.imag, d), _div(a.imag * r - a.real, d))
    r = _div(b.imag, b.real)
    d = b.real + r * b.imag
    return Complex(_div(a.real + a.imag * r, d), _div(a.imag - a.real * r, d))


def _div_cr(a: Complex, x: float) -> Complex:
    return Complex(_div(a.real, x), _div(a.imag, x))


def _div_rc(x: float, b: Complex) -> Complex:
    return _mul_rc(x, b.inv())


def _operator_pair(cc: Callable[[Complex, Complex], Complex],
                   cr: Callable[[Complex, float], Complex],
                   rc: Callable[[float, Complex], Complex],
                   name: str):
    """Build the forward and reflected dunder methods for one binary operator."""

    def forward(a, b):
        if isinstance(b, Complex):
            return cc(a, b)
        if _is_real(b):
            return cr(a, float(b))
        return NotImplemented

    def reverse(b, a):
        if _is_real(a):
            return rc(float(a), b)
        return NotImplemented

    forward.__name__ = f"__{name}__"
    reverse.__name__ = f"__r{name}__"
    return forward, reverse


Complex.__add__, Complex.__radd__ = _operator_pair(_add_cc, _add_cr, _add_rc, "add")
Complex.__sub__, Complex.__rsub__ = _operator_pair(_sub_cc, _sub_cr, _sub_rc, "sub")
Complex.__mul__, Complex.__rmul__ = _operator_pair(_mul_cc, _mul_cr, _mul_rc, "mul")
Complex.__truediv__, Complex.__rtruediv__ = _operator_pair(_div_cc, _div_cr, _div_rc, "truediv")


# ---------- embedding of plain reals ----------

def to_complex(x: Any) -> Complex:
    """`x + 0i`; a Complex is returned unchanged."""
    if isinstance(x, Complex):
        return x
    return Complex(x, 0)


def imaginary(x: Any) -> Complex:
    """`0 + xi`."""
    return Complex(0, x)


def cis(angle: Any) -> Complex:
    """Point on the unit circle, `cos(angle) + i sin(angle)`."""
    angle = float(angle)
    return Complex(_cos(angle), _sin(angle))


__all__ = ["Complex", "ConversionError", "LOG2", "LOG10", "cis", "imaginary", "to_complex"]
