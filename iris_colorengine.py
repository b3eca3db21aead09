# -*- coding: utf-8 -*-
"""
Iris: Rendering the colours of visible light
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Display Colour Engine
=====================
Turns CIE chromaticities into display RGB for an arbitrary additive
colour system.  The stages, in pipeline order:

1. Basis change: XYZ -> linear RGB through a matrix derived from the
   system's primaries and scaled to its white point.
2. Gamut mapping: colours outside the primaries' triangle have a negative
   weight; they are desaturated by adding just enough white.
3. Normalisation: the strongest channel is scaled to 1.
4. Transfer function: Rec. 709 curve or a plain power law.

Stages are pure functions over (3,) or (N, 3) float64 arrays.  The
per-sample arithmetic is JIT-compiled with Numba; the scalar helpers are
exported so that batch drivers can fuse several stages into one
parallel loop.

Matrix Convention:
    Matrices returned by ``BasisChange.matrix`` are in *row* form: row k
    yields primary k when dotted with an (x, y, z) column.  For batched
    row-vector data the transposed matrix is applied, ``xyz @ M.T``.

References:
    - J. Walker, "Colour Rendering of Spectra" (2003), with the
      xyz_to_rgb correction by A. J. S. Hamilton (1999)
    - ITU-R BT.709 "Parameter values for the HDTV standards"
    - C. Poynton, GammaFAQ Item 6
"""

import functools
import logging
import warnings
import numpy as np
from numba import njit, float64
from typing import Tuple, Final, TypeAlias, Callable, Union, Any

from iris_systems import ColorSystem

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",

    # --- Constants ---
    "REC709_THRESHOLD",
    "REC709_EXPONENT",
    "REC709_SCALE",
    "REC709_OFFSET",
    "REC709_SLOPE",

    # --- Configuration ---
    "set_strict_ieee",

    # --- Decorators ---
    "handle_shapes",

    # --- Kernels ---
    "_white_needed",
    "_rec709_oetf",
    "_power_oetf",

    # --- Classes ---
    "BasisChange",
    "GamutMapping",
    "TransferFunction",
    "ChromaticityCoords",

    # --- Functional aliases ---
    "xyz_to_rgb_matrix",
    "xyz_to_rgb",
    "inside_gamut",
    "constrain_rgb",
    "norm_rgb",
    "gamma_correct",
    "gamma_correct_rgb",
    "xy_to_upvp",
    "upvp_to_xy",
]

logger = logging.getLogger(__name__)

# --- Type Aliases ---
ArrayFloat: TypeAlias = np.typing.NDArray[np.floating]

# --- Rec. 709 Transfer Curve ---
# V = 1.099 * L^0.45 - 0.099 above the threshold, linear below it.  The
# linear slope is chosen so both branches meet at the threshold (about 4.51).
REC709_THRESHOLD: Final[float] = 0.018
REC709_EXPONENT: Final[float] = 0.45
REC709_SCALE: Final[float] = 1.099
REC709_OFFSET: Final[float] = 0.099
REC709_SLOPE: Final[float] = (
    (REC709_SCALE * REC709_THRESHOLD ** REC709_EXPONENT) - REC709_OFFSET
) / REC709_THRESHOLD


# --- Runtime Configuration ---
# When True, the transfer-function kernels use fastmath=False variants
# that keep strict IEEE 754 semantics (inf / NaN propagation, no
# reassociation).
_STRICT_IEEE: bool = False

def set_strict_ieee(enabled: bool = True) -> None:
    """
    Toggle between fast (default) and strict IEEE 754 transfer kernels.

    Args:
        enabled: If True, use strict IEEE mode.
    """
    global _STRICT_IEEE
    _STRICT_IEEE = bool(enabled)
    logger.debug("Strict IEEE transfer kernels %s", "enabled" if _STRICT_IEEE else "disabled")


# =============================================================================
# 1. SHAPE HANDLING
# =============================================================================

def _as_rows(arr: Any, width: int = 3) -> ArrayFloat:
    """Returns *arr* as a C-contiguous (N, width) float64 array."""
    arr_in = np.ascontiguousarray(np.atleast_2d(arr), dtype=np.float64)
    if arr_in.ndim != 2 or arr_in.shape[-1] != width:
        raise ValueError(f"Expected shape ({width},) or (N, {width}), got {np.shape(arr)}")
    return arr_in

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Decorator to normalize inputs to (N, 3) and restore the caller's shape.

    - If input is (3,), returns (3,)
    - If input is (N, 3), returns (N, 3)
    """
    @functools.wraps(func)
    def wrapper(arr: ArrayFloat, *args: Any, **kwargs: Any) -> ArrayFloat:
        res = func(_as_rows(arr), *args, **kwargs)
        if np.ndim(arr) == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 2. LOW-LEVEL KERNELS (Numba)
# =============================================================================

@njit(float64(float64, float64, float64), cache=True, fastmath=True)
def _white_needed(r: float, g: float, b: float) -> float:
    """Amount of white w = -min(0, r, g, b) that lifts all weights to >= 0."""
    w = 0.0
    if r < w:
        w = r
    if g < w:
        w = g
    if b < w:
        w = b
    return -w

@njit(float64(float64), cache=True, fastmath=True)
def _rec709_oetf(v: float) -> float:
    """Rec. 709 transfer curve for one channel."""
    if v < REC709_THRESHOLD:
        return v * REC709_SLOPE
    return REC709_SCALE * v ** REC709_EXPONENT - REC709_OFFSET

@njit(float64(float64, float64), cache=True, fastmath=True)
def _power_oetf(v: float, gamma: float) -> float:
    """Power-law transfer for one channel: v^(1/gamma)."""
    return v ** (1.0 / gamma)

@njit(cache=True, fastmath=True)
def _transfer_kernel(flat: ArrayFloat, gamma: float) -> ArrayFloat:
    """Applies the transfer curve to a 1D array.  gamma == 0 selects Rec. 709."""
    out = np.empty_like(flat)
    for i in range(flat.shape[0]):
        if gamma == 0.0:
            out[i] = _rec709_oetf(flat[i])
        else:
            out[i] = _power_oetf(flat[i], gamma)
    return out

# --- Strict IEEE 754 variants (fastmath=False) ---

@njit(float64(float64), cache=True, fastmath=False)
def _rec709_oetf_strict(v: float) -> float:
    """Rec. 709 transfer curve, strict IEEE 754 variant."""
    if v < REC709_THRESHOLD:
        return v * REC709_SLOPE
    return REC709_SCALE * v ** REC709_EXPONENT - REC709_OFFSET

@njit(float64(float64, float64), cache=True, fastmath=False)
def _power_oetf_strict(v: float, gamma: float) -> float:
    """Power-law transfer, strict IEEE 754 variant."""
    return v ** (1.0 / gamma)

@njit(cache=True, fastmath=False)
def _transfer_kernel_strict(flat: ArrayFloat, gamma: float) -> ArrayFloat:
    out = np.empty_like(flat)
    for i in range(flat.shape[0]):
        if gamma == 0.0:
            out[i] = _rec709_oetf_strict(flat[i])
        else:
            out[i] = _power_oetf_strict(flat[i], gamma)
    return out

def _transfer(flat: ArrayFloat, gamma: float) -> ArrayFloat:
    """Dispatch the transfer curve to the fast or strict kernel."""
    if _STRICT_IEEE:
        return _transfer_kernel_strict(flat, gamma)
    return _transfer_kernel(flat, gamma)

@njit(cache=True, fastmath=True)
def _constrain_kernel(rgb: ArrayFloat) -> Tuple[ArrayFloat, np.ndarray]:
    """Adds white to every row with a negative weight.  Returns (rgb, modified)."""
    n = rgb.shape[0]
    out = np.empty_like(rgb)
    modified = np.zeros(n, dtype=np.bool_)
    for i in range(n):
        r = rgb[i, 0]
        g = rgb[i, 1]
        b = rgb[i, 2]
        w = _white_needed(r, g, b)
        if w > 0.0:
            r += w
            g += w
            b += w
            modified[i] = True
        out[i, 0] = r
        out[i, 1] = g
        out[i, 2] = b
    return out, modified

@njit(cache=True, fastmath=False)
def _norm_kernel(rgb: ArrayFloat) -> ArrayFloat:
    """Scales each row so its largest component is 1 (rows with max <= 0 untouched)."""
    n = rgb.shape[0]
    out = rgb.copy()
    for i in range(n):
        greatest = max(rgb[i, 0], max(rgb[i, 1], rgb[i, 2]))
        if greatest > 0.0:
            out[i, 0] = rgb[i, 0] / greatest
            out[i, 1] = rgb[i, 1] / greatest
            out[i, 2] = rgb[i, 2] / greatest
    return out

@njit(cache=True, fastmath=True)
def _xy_to_upvp_kernel(xy: ArrayFloat) -> ArrayFloat:
    """
    Kernel for CIE 1931 (x, y) -> CIE 1976 (u', v').
    Input: (N, 2), Output: (N, 2)
    """
    n = xy.shape[0]
    uv = np.zeros_like(xy)
    for i in range(n):
        x = xy[i, 0]
        y = xy[i, 1]
        # Denominator: -2x + 12y + 3
        denom = -2.0 * x + 12.0 * y + 3.0
        if abs(denom) > 1e-12:
            inv_d = 1.0 / denom
            uv[i, 0] = 4.0 * x * inv_d
            uv[i, 1] = 9.0 * y * inv_d
    return uv

@njit(cache=True, fastmath=True)
def _upvp_to_xy_kernel(uv_prime: ArrayFloat) -> ArrayFloat:
    """
    Kernel for CIE 1976 (u', v') -> CIE 1931 (x, y).
    Input: (N, 2), Output: (N, 2)
    """
    n = uv_prime.shape[0]
    xy = np.zeros_like(uv_prime)
    for i in range(n):
        up = uv_prime[i, 0]
        vp = uv_prime[i, 1]
        # Denominator: 6u' - 16v' + 12
        denom = 6.0 * up - 16.0 * vp + 12.0
        if abs(denom) > 1e-12:
            inv_d = 1.0 / denom
            xy[i, 0] = 9.0 * up * inv_d
            xy[i, 1] = 4.0 * vp * inv_d
    return xy


# =============================================================================
# 3. BASIS CHANGE
# =============================================================================

@functools.lru_cache(maxsize=16)
def _get_cached_rgb_matrix(system: ColorSystem) -> ArrayFloat:
    """
    Cached worker deriving the white-scaled XYZ -> RGB matrix.

    Derivation:
        Rows of the unscaled inverse are the cross products of primary
        pairs, cross(g, b), cross(b, r), cross(r, g).  Each row is then
        divided by (row . white) / y_w, so white with luminance Y = 1
        maps to RGB (1, 1, 1).
    """
    red, green, blue = system.primaries_xyz()
    xw, yw = system.white
    white = np.array([xw, yw, 1.0 - (xw + yw)], dtype=np.float64)

    m = np.stack((np.cross(green, blue), np.cross(blue, red), np.cross(red, green)))
    scale = np.dot(m, white) / yw
    m = m / scale[:, np.newaxis]
    m.setflags(write=False)
    logger.debug("Derived XYZ->RGB matrix for %s:\n%s", system.name, m)
    return m

class BasisChange:
    """XYZ -> linear RGB projection for a given colour system."""

    @staticmethod
    def matrix(system: ColorSystem) -> ArrayFloat:
        """
        Computes the XYZ -> RGB matrix of *system* (row form, read-only).

        Args:
            system: Validated colour system.

        Returns:
            3x3 matrix; row k gives the weight of primary k.
        """
        return _get_cached_rgb_matrix(system)

    @staticmethod
    @handle_shapes
    def xyz_to_rgb(xyz_array: ArrayFloat, system: ColorSystem) -> ArrayFloat:
        """
        Weights of each primary in a linear combination reproducing *xyz_array*.

        A chromaticity outside the triangle of primaries produces a
        negative weight; no clipping or scaling is applied here.

        Args:
            xyz_array: Chromaticities or tristimulus values, (3,) or (N, 3).
            system: Target colour system.

        Returns:
            Linear RGB with the input's shape.
        """
        return np.dot(xyz_array, BasisChange.matrix(system).T)


# =============================================================================
# 4. GAMUT MAPPING & NORMALISATION
# =============================================================================

class GamutMapping:
    """Fits linear RGB into the range a display can reproduce."""

    @staticmethod
    def inside_gamut(rgb: ArrayFloat) -> Union[bool, np.ndarray]:
        """
        True where all primary weights are non-negative.

        Returns:
            ``bool`` for (3,) input, boolean array (N,) for (N, 3).
        """
        rows = _as_rows(rgb)
        res = np.all(rows >= 0.0, axis=-1)
        if np.ndim(rgb) == 1:
            return bool(res[0])
        return res

    @staticmethod
    def constrain_rgb(rgb: ArrayFloat) -> Tuple[ArrayFloat, Union[bool, np.ndarray]]:
        """
        Desaturates out-of-gamut colours by adding equal parts of R, G and B.

        Exactly w = -min(0, r, g, b) is added, so the most negative weight
        becomes zero.  The result may exceed 1; see ``norm_rgb``.

        Returns:
            (rgb, modified) where *modified* is ``bool`` for (3,) input and
            a boolean array for (N, 3).
        """
        out, modified = _constrain_kernel(_as_rows(rgb))
        if np.ndim(rgb) == 1:
            return out[0], bool(modified[0])
        return out, modified

    @staticmethod
    @handle_shapes
    def norm_rgb(rgb: ArrayFloat) -> ArrayFloat:
        """Normalise so the most intense component (unless all are <= 0) is 1."""
        return _norm_kernel(rgb)


# =============================================================================
# 5. TRANSFER FUNCTIONS
# =============================================================================

class TransferFunction:
    """Linear light -> non-linear signal (gamma correction)."""

    @staticmethod
    def gamma_correct(c: Union[float, ArrayFloat], system: ColorSystem) -> Union[float, ArrayFloat]:
        """
        Applies the transfer function of *system* to channel value(s).

        Rec. 709 systems use 1.099 * c^0.45 - 0.099 above 0.018 and a
        linear segment below; other systems use c^(1/gamma).  Inputs are
        expected in [0, 1]; negative values trigger a ``RuntimeWarning``.

        Args:
            c: Scalar or array of linear channel values.
            system: Colour system providing the gamma.

        Returns:
            Value(s) of the same shape; ``float`` for scalar input.
        """
        arr = np.asarray(c, dtype=np.float64)
        if np.any(arr < 0.0):
            warnings.warn(
                "Gamma correction of negative channel values is undefined; "
                "normalise before correcting",
                RuntimeWarning,
                stacklevel=2,
            )
        flat = np.ascontiguousarray(arr.reshape(-1))
        res = _transfer(flat, system.gamma).reshape(arr.shape)
        if arr.ndim == 0:
            return float(res)
        return res

    @staticmethod
    @handle_shapes
    def gamma_correct_rgb(rgb: ArrayFloat, system: ColorSystem) -> ArrayFloat:
        """Applies ``gamma_correct`` to every channel of (3,) or (N, 3) RGB."""
        return TransferFunction.gamma_correct(rgb, system)


# =============================================================================
# 6. CHROMATICITY COORDINATES
# =============================================================================

class ChromaticityCoords:
    """CIE 1931 (x, y) <-> CIE 1976 (u', v')."""

    @staticmethod
    def xy_to_upvp(xy_array: ArrayFloat) -> ArrayFloat:
        """
        Converts CIE 1931 (x, y) to CIE 1976 (u', v').

        Args:
            xy_array: Input data, shape (N, 2) or (2,).

        Returns:
            u'v' coordinates, shape (N, 2) or (2,).
        """
        res = _xy_to_upvp_kernel(_as_rows(xy_array, width=2))
        if np.ndim(xy_array) == 1:
            return res[0]
        return res

    @staticmethod
    def upvp_to_xy(uv_prime_array: ArrayFloat) -> ArrayFloat:
        """
        Converts CIE 1976 (u', v') to CIE 1931 (x, y).

        Args:
            uv_prime_array: Input data, shape (N, 2) or (2,).

        Returns:
            xy coordinates, shape (N, 2) or (2,).
        """
        res = _upvp_to_xy_kernel(_as_rows(uv_prime_array, width=2))
        if np.ndim(uv_prime_array) == 1:
            return res[0]
        return res


# --- Functional aliases ---
xyz_to_rgb_matrix = BasisChange.matrix
xyz_to_rgb = BasisChange.xyz_to_rgb
inside_gamut = GamutMapping.inside_gamut
constrain_rgb = GamutMapping.constrain_rgb
norm_rgb = GamutMapping.norm_rgb
gamma_correct = TransferFunction.gamma_correct
gamma_correct_rgb = TransferFunction.gamma_correct_rgb
xy_to_upvp = ChromaticityCoords.xy_to_upvp
upvp_to_xy = ChromaticityCoords.upvp_to_xy


# =============================================================================
# Validation Block
# =============================================================================
if __name__ == "__main__":
    from iris_systems import COLOR_SYSTEMS, SMPTE

    print("--- Iris Colour Engine Validation ---")

    # 1. White point invariant
    print("1. White (Y = 1) -> RGB (1, 1, 1)...")
    for cs in COLOR_SYSTEMS.values():
        rgb = xyz_to_rgb(cs.white_xyz(), cs)
        status = "[PASS]" if np.allclose(rgb, 1.0, atol=1e-9) else "[FAIL]"
        print(f"   {status} {cs.name:<16} {rgb}")

    # 2. Gamut guard agrees with constraint
    print("2. inside_gamut vs constrain_rgb...")
    samples = np.random.default_rng(0).normal(size=(1000, 3))
    _, modified = constrain_rgb(samples)
    print(f"   {'[PASS]' if np.array_equal(inside_gamut(samples), ~modified) else '[FAIL]'}")

    # 3. Rec. 709 continuity
    print("3. Rec. 709 continuity at threshold...")
    lo = gamma_correct(np.nextafter(REC709_THRESHOLD, 0.0), SMPTE)
    hi = gamma_correct(REC709_THRESHOLD, SMPTE)
    print(f"   {'[PASS]' if abs(hi - lo) < 1e-9 else '[FAIL]'} |delta| = {abs(hi - lo):.2e}")

    # 4. Strict vs fast kernels
    print("4. Strict IEEE transfer kernels...")
    ramp = np.linspace(0.0, 1.0, 1025)
    fast = gamma_correct(ramp, SMPTE)
    set_strict_ieee(True)
    strict = gamma_correct(ramp, SMPTE)
    set_strict_ieee(False)
    print(f"   {'[PASS]' if np.allclose(fast, strict, rtol=1e-9) else '[FAIL]'} max diff = {np.max(np.abs(fast - strict)):.2e}")
