"""Tests for iris_systems: colour system definitions and registry."""

import dataclasses

import numpy as np
import pytest

from iris_systems import (
    CIE,
    COLOR_SYSTEMS,
    EBU,
    HDTV,
    ILLUMINANT_C,
    ILLUMINANT_D65,
    NTSC,
    REC709,
    SMPTE,
    ColorSystem,
    ColorSystemError,
    get_color_system,
    list_color_systems,
)


def test_registry_contents():
    assert list_color_systems() == [
        "NTSC", "EBU (PAL/SECAM)", "SMPTE", "HDTV", "CIE", "CIE REC 709",
    ]
    assert COLOR_SYSTEMS["SMPTE"] is SMPTE


def test_reference_values_preserved():
    assert NTSC.red == (0.67, 0.33)
    assert NTSC.green == (0.21, 0.71)
    assert NTSC.blue == (0.14, 0.08)
    assert NTSC.white == ILLUMINANT_C
    assert SMPTE.green == (0.310, 0.595)
    assert HDTV.blue == (0.150, 0.060)
    assert CIE.blue == (0.1669, 0.0085)
    assert CIE.white == (0.33333333, 0.33333333)
    assert EBU.white == ILLUMINANT_D65
    assert REC709.green == (0.30, 0.60)
    assert all(cs.uses_rec709 for cs in COLOR_SYSTEMS.values())


@pytest.mark.parametrize("name, expected", [
    ("smpte", SMPTE),
    ("  NTSC ", NTSC),
    ("PAL", EBU),
    ("secam", EBU),
    ("ebu (pal/secam)", EBU),
    ("Rec.709", REC709),
    ("cie rec 709", REC709),
    ("hdtv", HDTV),
])
def test_lookup_by_name_and_alias(name, expected):
    assert get_color_system(name) is expected


def test_unknown_name_raises():
    with pytest.raises(KeyError):
        get_color_system("sRGB-ish")


def test_registry_and_systems_are_immutable():
    with pytest.raises(TypeError):
        COLOR_SYSTEMS["X"] = SMPTE  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        SMPTE.name = "changed"  # type: ignore[misc]


def test_systems_are_hashable_values():
    twin = ColorSystem("SMPTE", (0.630, 0.340), (0.310, 0.595), (0.155, 0.070), ILLUMINANT_D65)
    assert twin == SMPTE
    assert hash(twin) == hash(SMPTE)


def test_primaries_and_white_xyz():
    prim = SMPTE.primaries_xyz()
    assert prim.shape == (3, 3)
    np.testing.assert_allclose(prim.sum(axis=1), 1.0)
    white = SMPTE.white_xyz()
    assert white[1] == 1.0
    assert white[0] == pytest.approx(0.3127 / 0.3291)


def test_collinear_primaries_rejected():
    with pytest.raises(ColorSystemError):
        ColorSystem("flat", (0.1, 0.1), (0.2, 0.2), (0.3, 0.3), ILLUMINANT_D65)


def test_zero_luminance_white_rejected():
    with pytest.raises(ColorSystemError):
        ColorSystem("dark", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), (0.3, 0.0))


def test_white_on_primary_edge_rejected():
    # Midpoint of red and green leaves blue with zero weight.
    with pytest.raises(ColorSystemError):
        ColorSystem("edge", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), (0.47, 0.465))


@pytest.mark.parametrize("bad", [(1.2, 0.3), (-0.1, 0.3), (float("nan"), 0.3)])
def test_chromaticity_outside_unit_range_rejected(bad):
    with pytest.raises(ColorSystemError):
        ColorSystem("bad", bad, (0.30, 0.60), (0.15, 0.06), ILLUMINANT_D65)


def test_gamma_validation():
    with pytest.raises(ColorSystemError):
        ColorSystem("neg", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), ILLUMINANT_D65, gamma=-2.2)
    power = ColorSystem("pow", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), ILLUMINANT_D65, gamma=2.2)
    assert not power.uses_rec709
    assert power.gamma == 2.2


def test_system_error_is_value_error():
    assert issubclass(ColorSystemError, ValueError)
