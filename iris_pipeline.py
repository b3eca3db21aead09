# -*- coding: utf-8 -*-
"""
Iris: Rendering the colours of visible light
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Spectral Rendering Pipeline
===========================
Composes the colour engine stages into a single wavelength -> display
colour conversion:

    wavelength -> chromaticity -> linear RGB -> gamut constrained
               -> normalised -> (optional) gamma corrected -> 8 bit

The renderer owns no mutable state after construction.  Batches of
wavelengths are converted by one fused Numba loop running in parallel
(``prange``) over samples; the shared colour-matching table and the
system matrix are only read.

Output is handed to a *sink*, any callable ``sink(r, g, b)`` accepting
three ints in [0, 255].  How the sink paints them (ANSI escape codes,
pixel buffers, ...) is up to the caller; ``emit`` only guarantees that
samples arrive in the order they were requested.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple, TypeAlias, Union

import numpy as np
from numba import njit, prange

from iris_cmf import (
    CIE1931_1NM,
    CIE1931_5NM,
    ColorMatchTable,
    spectrum_to_xyz,
    wavelength_to_xyz,
)
from iris_colorengine import (
    ArrayFloat,
    BasisChange,
    GamutMapping,
    TransferFunction,
    _as_rows,
    _white_needed,
)
from iris_systems import ColorSystem, get_color_system

__all__ = [
    "Sink",
    "RenderConfig",
    "StageTrace",
    "SpectralRenderer",
    "quantize",
]

logger = logging.getLogger(__name__)

Sink: TypeAlias = Callable[[int, int, int], None]


# =============================================================================
# 1. CONFIGURATION
# =============================================================================

@dataclass(slots=True, frozen=True)
class RenderConfig:
    """
    Settings for a ``SpectralRenderer``.

    Attributes:
        system: Target colour system, or the name of a registered one.
        apply_gamma: Gamma correct before quantising.
        table: Colour-matching table used for wavelength lookups.
    """
    system: Union[ColorSystem, str] = "SMPTE"
    apply_gamma: bool = False
    table: ColorMatchTable = CIE1931_1NM

    def __post_init__(self) -> None:
        if isinstance(self.system, str):
            object.__setattr__(self, "system", get_color_system(self.system))
        elif not isinstance(self.system, ColorSystem):
            raise TypeError(f"Unsupported colour system type: {type(self.system)}")


@dataclass(slots=True, frozen=True, eq=False)
class StageTrace:
    """Intermediate values of one conversion, in pipeline order."""
    wavelength: float
    chromaticity: ArrayFloat
    linear: ArrayFloat
    constrained: ArrayFloat
    gamut_modified: bool
    normalized: ArrayFloat
    corrected: Optional[ArrayFloat]
    display: np.ndarray


# =============================================================================
# 2. KERNELS
# =============================================================================

# fastmath stays off: normalisation must give exactly 1.0 for the
# strongest channel so it quantises to 255.
@njit(cache=True, fastmath=False, parallel=True)
def _linear_band_kernel(chroma: ArrayFloat, m_t: ArrayFloat) -> Tuple[ArrayFloat, np.ndarray]:
    """Fused basis change, gamut constraint and normalisation over (N, 3) rows."""
    n = chroma.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    modified = np.zeros(n, dtype=np.bool_)
    for i in prange(n):
        x = chroma[i, 0]
        y = chroma[i, 1]
        z = chroma[i, 2]
        r = x * m_t[0, 0] + y * m_t[1, 0] + z * m_t[2, 0]
        g = x * m_t[0, 1] + y * m_t[1, 1] + z * m_t[2, 1]
        b = x * m_t[0, 2] + y * m_t[1, 2] + z * m_t[2, 2]

        w = _white_needed(r, g, b)
        if w > 0.0:
            r += w
            g += w
            b += w
            modified[i] = True

        greatest = max(r, max(g, b))
        if greatest > 0.0:
            r /= greatest
            g /= greatest
            b /= greatest

        out[i, 0] = r
        out[i, 1] = g
        out[i, 2] = b
    return out, modified


def quantize(rgb: ArrayFloat) -> np.ndarray:
    """
    Scales [0, 1] RGB to 8 bit.

    Values are multiplied by 255 and truncated toward zero (never rounded
    up), then clipped to [0, 255].

    Returns:
        uint8 array with the input's shape.
    """
    scaled = np.trunc(np.asarray(rgb, dtype=np.float64) * 255.0)
    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


# =============================================================================
# 3. RENDERER
# =============================================================================

class SpectralRenderer:
    """
    Converts wavelengths, chromaticities and spectra to display RGB.

    Example:
        renderer = SpectralRenderer(RenderConfig("SMPTE"))
        renderer.render_wavelength(550.0)       # green dominant, uint8 (3,)
        renderer.emit(np.arange(380, 750, 2), sink)
    """

    __slots__ = ("config", "_m_t")

    def __init__(self, config: Optional[RenderConfig] = None) -> None:
        self.config: RenderConfig = config if config is not None else RenderConfig()
        self._m_t = np.ascontiguousarray(BasisChange.matrix(self.system).T)
        logger.debug(
            "SpectralRenderer for %s (gamma %s, table %r)",
            self.system.name,
            "on" if self.config.apply_gamma else "off",
            self.config.table,
        )

    def __repr__(self) -> str:
        return (
            f"SpectralRenderer(system={self.system.name!r}, "
            f"apply_gamma={self.config.apply_gamma})"
        )

    @property
    def system(self) -> ColorSystem:
        return self.config.system  # type: ignore[return-value]

    # -- internal ----------------------------------------------------------
    def _render_rows(self, chroma: ArrayFloat) -> np.ndarray:
        linear, modified = _linear_band_kernel(chroma, self._m_t)
        if len(modified):
            logger.debug(
                "Rendered %d samples, %d desaturated into gamut",
                len(modified), int(np.count_nonzero(modified)),
            )
        if self.config.apply_gamma:
            linear = TransferFunction.gamma_correct_rgb(linear, self.system)
        return quantize(linear)

    # -- public ------------------------------------------------------------
    def render_chromaticity(self, xyz: ArrayFloat) -> np.ndarray:
        """
        Display colour(s) for chromaticity (3,) or (N, 3).

        Any tristimulus scaling is normalised away, so XYZ works as well.
        """
        res = self._render_rows(_as_rows(xyz))
        if np.ndim(xyz) == 1:
            return res[0]
        return res

    def render_wavelength(self, wavelength: Union[float, ArrayFloat]) -> np.ndarray:
        """
        Display colour of a spectral line.

        Returns:
            uint8 (3,) for scalar input, (N, 3) for an array of wavelengths.

        Raises:
            WavelengthRangeError: Wavelength outside the table or with zero
                colour-matching response.
        """
        chroma = wavelength_to_xyz(wavelength, self.config.table)
        return self.render_chromaticity(chroma)

    def render_band(self, wavelengths: Iterable[float]) -> np.ndarray:
        """Display colours (N, 3) for a sequence of wavelengths."""
        if not isinstance(wavelengths, np.ndarray):
            wavelengths = list(wavelengths)
        wl = np.asarray(wavelengths, dtype=np.float64).reshape(-1)
        return self._render_rows(_as_rows(wavelength_to_xyz(wl, self.config.table)))

    def render_spectrum(self, spec_intens: Callable[[float], float],
                        table: ColorMatchTable = CIE1931_5NM) -> np.ndarray:
        """
        Display colour of a light source with emission spectrum *spec_intens*.

        The spectrum is summed over the classical 5 nm table by default.
        """
        chroma = spectrum_to_xyz(spec_intens, table)
        return self.render_chromaticity(chroma)

    def trace(self, wavelength: float) -> StageTrace:
        """Runs one wavelength through each stage separately, keeping every result."""
        chroma = wavelength_to_xyz(wavelength, self.config.table)
        linear = BasisChange.xyz_to_rgb(chroma, self.system)
        constrained, modified = GamutMapping.constrain_rgb(linear)
        normalized = GamutMapping.norm_rgb(constrained)
        corrected = None
        final = normalized
        if self.config.apply_gamma:
            corrected = TransferFunction.gamma_correct_rgb(normalized, self.system)
            final = corrected
        return StageTrace(
            wavelength=float(wavelength),
            chromaticity=chroma,
            linear=linear,
            constrained=constrained,
            gamut_modified=modified,
            normalized=normalized,
            corrected=corrected,
            display=quantize(final),
        )

    def emit(self, wavelengths: Iterable[float], sink: Sink) -> int:
        """
        Renders *wavelengths* and feeds each colour to *sink* in order.

        The whole band is validated and converted before the first sink
        call, so an out-of-range wavelength aborts without partial output.

        Returns:
            Number of samples emitted.
        """
        colors = self.render_band(wavelengths)
        for r, g, b in colors.tolist():
            sink(r, g, b)
        return len(colors)


# =============================================================================
# Validation Block
# =============================================================================
if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)
    print("--- Iris Spectral Pipeline Validation ---")

    renderer = SpectralRenderer(RenderConfig("SMPTE"))

    print("1. Rainbow 380-748 nm (SMPTE, no gamma):")
    def ansi_sink(r: int, g: int, b: int) -> None:
        sys.stdout.write(f"\033[48;2;{r};{g};{b}m \033[0m")
    count = renderer.emit(np.arange(380.0, 750.0, 2.0), ansi_sink)
    print(f"\n   {count} samples")

    print("2. Spot checks...")
    green = renderer.render_wavelength(550.0)
    red = renderer.render_wavelength(700.0)
    print(f"   550 nm -> {green} {'[PASS]' if green[1] > max(green[0], green[2]) else '[FAIL]'}")
    print(f"   700 nm -> {red} {'[PASS]' if red[0] > max(red[1], red[2]) else '[FAIL]'}")

    print("3. Batch vs single...")
    band = renderer.render_band(np.arange(400.0, 700.0, 10.0))
    single = np.array([renderer.render_wavelength(w) for w in np.arange(400.0, 700.0, 10.0)])
    print(f"   {'[PASS]' if np.array_equal(band, single) else '[FAIL]'}")
