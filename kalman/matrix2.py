from __future__ import annotations

import sys
from math import isfinite

from kalman.errors import SingularMatrix

# Row-major tuples: a 2x2 is ((a, b), (c, d)), a 2x1 column is ((x,), (y,)).
Mat2 = tuple[tuple[float, float], tuple[float, float]]
Col2 = tuple[tuple[float], tuple[float]]

DEFAULT_EPS = 4.0 * sys.float_info.epsilon


def identity() -> Mat2:
    return ((1.0, 0.0), (0.0, 1.0))


def diag(a: float, b: float) -> Mat2:
    return ((float(a), 0.0), (0.0, float(b)))


def column(x: float, y: float) -> Col2:
    return ((float(x),), (float(y),))


def add(a, b):
    """Element-wise a + b; shapes must match (2x2 or 2x1)."""
    return tuple(tuple(x + y for x, y in zip(ra, rb, strict=True)) for ra, rb in zip(a, b, strict=True))


def subtract(a, b):
    """Element-wise a - b; shapes must match (2x2 or 2x1)."""
    return tuple(tuple(x - y for x, y in zip(ra, rb, strict=True)) for ra, rb in zip(a, b, strict=True))


def multiply(a: Mat2, b):
    """
    a · b for a 2x2 `a` and a 2x2 or 2x1 `b`.
    The result has the shape of `b`.
    """
    (a00, a01), (a10, a11) = a
    if len(b[0]) == 1:
        (b0,), (b1,) = b
        return ((a00 * b0 + a01 * b1,), (a10 * b0 + a11 * b1,))
    (b00, b01), (b10, b11) = b
    return (
        (a00 * b00 + a01 * b10, a00 * b01 + a01 * b11),
        (a10 * b00 + a11 * b10, a10 * b01 + a11 * b11),
    )


def transpose(m: Mat2) -> Mat2:
    (a, b), (c, d) = m
    return ((a, c), (b, d))


def determinant(m: Mat2) -> float:
    (a, b), (c, d) = m
    return a * d - b * c


def invert2x2(m: Mat2, eps: float = DEFAULT_EPS) -> Mat2:
    """
    Closed-form inverse via the adjugate:
        inv([[a, b], [c, d]]) = 1/det * [[d, -b], [-c, a]]

    Singular when |det| <= eps * scale**2, scale being the largest absolute
    entry; an all-zero matrix is therefore always singular. A non-finite
    determinant is rejected too, so callers never see NaN/Inf leak out.
    """
    (a, b), (c, d) = m
    det = a * d - b * c
    scale = max(abs(a), abs(b), abs(c), abs(d))
    if not isfinite(det) or abs(det) <= float(eps) * scale * scale:
        raise SingularMatrix(f"matrix is singular (det={det!r})", determinant=det)
    inv = 1.0 / det
    return ((d * inv, -b * inv), (-c * inv, a * inv))
