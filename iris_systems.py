# -*- coding: utf-8 -*-
"""
Iris: Rendering the colours of visible light
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Colour System Registry
======================
A colour system is defined by the CIE 1931 (x, y) chromaticities of its
three primaries, the chromaticity of its reference white and the gamma
of its transfer function.  Systems carry data only; every transform that
uses them lives in ``iris_colorengine``.

Systems are validated on construction, so a degenerate definition
(collinear primaries, a white point with zero luminance, ...) fails at
import time rather than on the first converted pixel.

References:
    - C. Poynton, "Frequently Asked Questions about Color" (ColorFAQ)
    - ITU-R BT.709, EBU Tech. 3213, SMPTE RP 145
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Mapping, Tuple, TypeAlias

import numpy as np

__all__ = [
    "Chromaticity",
    "ColorSystemError",
    "ColorSystem",
    "GAMMA_REC709",
    "ILLUMINANT_C",
    "ILLUMINANT_D65",
    "ILLUMINANT_E",
    "NTSC",
    "EBU",
    "SMPTE",
    "HDTV",
    "CIE",
    "REC709",
    "COLOR_SYSTEMS",
    "get_color_system",
    "list_color_systems",
]

logger = logging.getLogger(__name__)

Chromaticity: TypeAlias = Tuple[float, float]

# Gamma value selecting the Rec. 709 transfer curve instead of a power law.
GAMMA_REC709: Final[float] = 0.0

# Determinant below which the primaries are treated as collinear.
_DEGENERATE_EPS: Final[float] = 1e-12

# --- White point chromaticities ---
ILLUMINANT_C: Final[Chromaticity] = (0.3101, 0.3162)            # NTSC television
ILLUMINANT_D65: Final[Chromaticity] = (0.3127, 0.3291)          # EBU and SMPTE
ILLUMINANT_E: Final[Chromaticity] = (0.33333333, 0.33333333)    # CIE equal-energy


class ColorSystemError(ValueError):
    """A colour system definition cannot produce a valid XYZ -> RGB basis."""


def _xyz_column(xy: Chromaticity) -> Tuple[float, float, float]:
    x, y = xy
    return (x, y, 1.0 - (x + y))


@dataclass(slots=True, frozen=True)
class ColorSystem:
    """
    Immutable description of an additive RGB display system.

    Attributes:
        name: Display label.
        red, green, blue: CIE (x, y) chromaticities of the primaries.
        white: CIE (x, y) chromaticity of the reference white.
        gamma: ``GAMMA_REC709`` for the Rec. 709 curve, otherwise the
            exponent of a plain power law.
    """
    name: str
    red: Chromaticity
    green: Chromaticity
    blue: Chromaticity
    white: Chromaticity
    gamma: float = GAMMA_REC709

    def __post_init__(self) -> None:
        for label in ("red", "green", "blue", "white"):
            xy = tuple(float(v) for v in getattr(self, label))
            if len(xy) != 2:
                raise ColorSystemError(f"{self.name}: {label} must be an (x, y) pair, got {xy}")
            if not all(math.isfinite(v) and 0.0 <= v <= 1.0 for v in xy):
                raise ColorSystemError(f"{self.name}: {label} chromaticity {xy} outside [0, 1]")
            object.__setattr__(self, label, xy)

        gamma = float(self.gamma)
        if not math.isfinite(gamma) or gamma < 0.0:
            raise ColorSystemError(f"{self.name}: gamma must be GAMMA_REC709 or positive, got {gamma}")
        object.__setattr__(self, "gamma", gamma)

        if self.white[1] == 0.0:
            raise ColorSystemError(f"{self.name}: white point y must be nonzero")

        primaries = self.primaries_xyz()
        det = np.linalg.det(primaries)
        if abs(det) < _DEGENERATE_EPS:
            raise ColorSystemError(f"{self.name}: primaries are collinear (det={det:.3e})")

        # Every primary must contribute to white, otherwise its row of the
        # white-scaled matrix divides by zero.
        weights = np.linalg.solve(primaries.T, np.asarray(_xyz_column(self.white)))
        if np.any(np.abs(weights) < _DEGENERATE_EPS):
            raise ColorSystemError(
                f"{self.name}: white point {self.white} lies on a primary edge (weights={weights})"
            )

    @property
    def uses_rec709(self) -> bool:
        """True if the Rec. 709 transfer curve is used for gamma correction."""
        return self.gamma == GAMMA_REC709

    def primaries_xyz(self) -> np.ndarray:
        """(3, 3) array whose rows are the (x, y, z) of red, green and blue."""
        return np.array(
            [_xyz_column(self.red), _xyz_column(self.green), _xyz_column(self.blue)],
            dtype=np.float64,
        )

    def white_xyz(self) -> np.ndarray:
        """Tristimulus XYZ of the white point scaled to luminance Y = 1."""
        xw, yw = self.white
        return np.array([xw / yw, 1.0, (1.0 - xw - yw) / yw], dtype=np.float64)


# =============================================================================
# REGISTRY
# =============================================================================
NTSC: Final = ColorSystem("NTSC", (0.67, 0.33), (0.21, 0.71), (0.14, 0.08), ILLUMINANT_C)
EBU: Final = ColorSystem("EBU (PAL/SECAM)", (0.64, 0.33), (0.29, 0.60), (0.15, 0.06), ILLUMINANT_D65)
SMPTE: Final = ColorSystem("SMPTE", (0.630, 0.340), (0.310, 0.595), (0.155, 0.070), ILLUMINANT_D65)
HDTV: Final = ColorSystem("HDTV", (0.670, 0.330), (0.210, 0.710), (0.150, 0.060), ILLUMINANT_D65)
CIE: Final = ColorSystem("CIE", (0.7355, 0.2645), (0.2658, 0.7243), (0.1669, 0.0085), ILLUMINANT_E)
REC709: Final = ColorSystem("CIE REC 709", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), ILLUMINANT_D65)

COLOR_SYSTEMS: Final[Mapping[str, ColorSystem]] = MappingProxyType(
    {cs.name: cs for cs in (NTSC, EBU, SMPTE, HDTV, CIE, REC709)}
)

_ALIASES: Final[Mapping[str, str]] = MappingProxyType({
    **{name.upper(): name for name in COLOR_SYSTEMS},
    "EBU": EBU.name,
    "PAL": EBU.name,
    "SECAM": EBU.name,
    "PAL/SECAM": EBU.name,
    "REC709": REC709.name,
    "REC.709": REC709.name,
    "REC 709": REC709.name,
    "BT709": REC709.name,
})

logger.debug("Colour system registry loaded: %s", ", ".join(COLOR_SYSTEMS))


def get_color_system(name: str) -> ColorSystem:
    """
    Look up a registered system by name (case-insensitive, aliases allowed).

    Raises:
        KeyError: If no system matches *name*.
    """
    key = _ALIASES.get(name.strip().upper())
    if key is None:
        raise KeyError(
            f"Unknown colour system {name!r}; expected one of {list(COLOR_SYSTEMS)}"
        )
    return COLOR_SYSTEMS[key]


def list_color_systems() -> list[str]:
    """Canonical names of all registered systems."""
    return list(COLOR_SYSTEMS)
