# -*- coding: utf-8 -*-
"""
Iris: Rendering the colours of visible light
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Emission spectra usable as input to ``iris_cmf.spectrum_to_xyz``.

Every generator takes the wavelength in nanometres and returns emittance
in arbitrary units.  Parameters such as the black-body temperature are
explicit arguments; ``black_body`` binds them into a one-argument
callable when a plain ``intensity(wavelength)`` function is needed.
"""

from __future__ import annotations

import math
from typing import Callable, Final

from scipy import constants

__all__ = [
    "RADIATION_C1",
    "RADIATION_C2",
    "bb_spectrum",
    "black_body",
    "white_spectrum",
]

# First and second radiation constants of Planck's law.
RADIATION_C1: Final[float] = 2.0 * math.pi * constants.h * constants.c ** 2     # W m^2
RADIATION_C2: Final[float] = constants.h * constants.c / constants.k           # m K


def bb_spectrum(wavelength: float, temperature: float) -> float:
    """
    Spectral emittance of a black body (Planck's radiation law).

    Args:
        wavelength: Wavelength in nm.
        temperature: Absolute temperature in K.

    Returns:
        Emittance in W m^-3.

    Raises:
        ValueError: For non-positive wavelength or temperature.
    """
    if temperature <= 0.0:
        raise ValueError(f"Temperature must be positive, got {temperature} K")
    if wavelength <= 0.0:
        raise ValueError(f"Wavelength must be positive, got {wavelength} nm")
    wlm = wavelength * 1e-9
    try:
        denom = math.expm1(RADIATION_C2 / (wlm * temperature))
    except OverflowError:
        # Emittance underflows to zero for very cold bodies.
        return 0.0
    return (RADIATION_C1 * wlm ** -5.0) / denom


def black_body(temperature: float) -> Callable[[float], float]:
    """Returns ``intensity(wavelength_nm)`` for a black body at *temperature* K."""
    if temperature <= 0.0:
        raise ValueError(f"Temperature must be positive, got {temperature} K")

    def intensity(wavelength: float) -> float:
        return bb_spectrum(wavelength, temperature)

    intensity.__name__ = f"black_body_{temperature:g}K"
    return intensity


def white_spectrum(wavelength: float) -> float:
    """Equal-energy spectrum."""
    return 1.0
