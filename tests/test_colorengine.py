"""Tests for iris_colorengine: basis change, gamut, normalisation, gamma.

Known values:
    - Any system's white (Y = 1) -> linear RGB (1, 1, 1)
    - Rec. 709 curve: 0 -> 0, 1 -> 1, continuous at 0.018
    - D65 (0.3127, 0.3291) -> u'v' (0.1978, 0.4684)
"""

import numpy as np
import pytest

from iris_colorengine import (
    REC709_EXPONENT,
    REC709_OFFSET,
    REC709_SCALE,
    REC709_SLOPE,
    REC709_THRESHOLD,
    BasisChange,
    ChromaticityCoords,
    GamutMapping,
    TransferFunction,
    set_strict_ieee,
)
from iris_systems import COLOR_SYSTEMS, ILLUMINANT_D65, SMPTE, ColorSystem

ALL_SYSTEMS = list(COLOR_SYSTEMS.values())
POWER_22 = ColorSystem("power 2.2", (0.64, 0.33), (0.30, 0.60), (0.15, 0.06), ILLUMINANT_D65, gamma=2.2)


# --- Basis change ------------------------------------------------------------

@pytest.mark.parametrize("system", ALL_SYSTEMS, ids=lambda cs: cs.name)
def test_white_point_maps_to_unit_rgb(system):
    rgb = BasisChange.xyz_to_rgb(system.white_xyz(), system)
    np.testing.assert_allclose(rgb, [1.0, 1.0, 1.0], atol=1e-9)


@pytest.mark.parametrize("system", ALL_SYSTEMS, ids=lambda cs: cs.name)
def test_white_chromaticity_maps_to_equal_channels(system):
    xw, yw = system.white
    rgb = BasisChange.xyz_to_rgb(np.array([xw, yw, 1.0 - xw - yw]), system)
    np.testing.assert_allclose(rgb, [yw, yw, yw], atol=1e-9)


@pytest.mark.parametrize("system", ALL_SYSTEMS, ids=lambda cs: cs.name)
def test_primaries_map_to_single_channels(system):
    rgb = BasisChange.xyz_to_rgb(system.primaries_xyz(), system)
    off_diagonal = rgb[~np.eye(3, dtype=bool)]
    np.testing.assert_allclose(off_diagonal, 0.0, atol=1e-12)
    assert np.all(np.diag(rgb) > 0.0)


def test_matrix_is_cached_and_read_only():
    m = BasisChange.matrix(SMPTE)
    assert m is BasisChange.matrix(SMPTE)
    assert m.shape == (3, 3)
    with pytest.raises(ValueError):
        m[0, 0] = 0.0


def test_batch_matches_single():
    xyz = np.array([[0.3, 0.6, 0.1], [0.64, 0.33, 0.03], [0.2, 0.2, 0.6]])
    batch = BasisChange.xyz_to_rgb(xyz, SMPTE)
    assert batch.shape == (3, 3)
    for row, expected in zip(xyz, batch):
        np.testing.assert_allclose(BasisChange.xyz_to_rgb(row, SMPTE), expected)


def test_bad_shape_raises():
    with pytest.raises(ValueError):
        BasisChange.xyz_to_rgb(np.zeros((4, 2)), SMPTE)


# --- Gamut mapping ------------------------------------------------------------

def test_inside_gamut():
    assert GamutMapping.inside_gamut(np.array([0.1, 0.0, 0.3])) is True
    assert GamutMapping.inside_gamut(np.array([0.1, -1e-9, 0.3])) is False
    res = GamutMapping.inside_gamut(np.array([[0.1, 0.2, 0.3], [-0.1, 0.2, 0.3]]))
    np.testing.assert_array_equal(res, [True, False])


def test_constrain_adds_white():
    rgb, modified = GamutMapping.constrain_rgb(np.array([-0.2, 0.5, 1.0]))
    assert modified is True
    np.testing.assert_allclose(rgb, [0.0, 0.7, 1.2])


def test_constrain_leaves_in_gamut_untouched():
    original = np.array([0.2, 0.5, 1.7])
    rgb, modified = GamutMapping.constrain_rgb(original)
    assert modified is False
    np.testing.assert_array_equal(rgb, original)


def test_inside_gamut_agrees_with_constrain():
    rng = np.random.default_rng(7)
    samples = rng.normal(size=(500, 3))
    _, modified = GamutMapping.constrain_rgb(samples)
    np.testing.assert_array_equal(GamutMapping.inside_gamut(samples), ~modified)
    for row in samples[:20]:
        assert GamutMapping.inside_gamut(row) == (not GamutMapping.constrain_rgb(row)[1])


def test_norm_scales_max_to_one():
    np.testing.assert_allclose(GamutMapping.norm_rgb(np.array([0.5, 1.0, 2.0])), [0.25, 0.5, 1.0])


def test_norm_leaves_black_and_negative_untouched():
    np.testing.assert_array_equal(GamutMapping.norm_rgb(np.zeros(3)), np.zeros(3))
    neg = np.array([-0.1, -0.5, -0.2])
    np.testing.assert_array_equal(GamutMapping.norm_rgb(neg), neg)


def test_norm_is_idempotent():
    rng = np.random.default_rng(11)
    samples = rng.uniform(0.0, 5.0, size=(200, 3))
    once = GamutMapping.norm_rgb(samples)
    np.testing.assert_allclose(once.max(axis=1), 1.0)
    np.testing.assert_allclose(GamutMapping.norm_rgb(once), once, rtol=1e-15)


# --- Transfer functions -------------------------------------------------------

def test_rec709_slope_makes_curve_continuous():
    power_branch = REC709_SCALE * REC709_THRESHOLD ** REC709_EXPONENT - REC709_OFFSET
    assert REC709_SLOPE * REC709_THRESHOLD == pytest.approx(power_branch, abs=1e-12)
    below = TransferFunction.gamma_correct(np.nextafter(REC709_THRESHOLD, 0.0), SMPTE)
    at = TransferFunction.gamma_correct(REC709_THRESHOLD, SMPTE)
    assert below == pytest.approx(at, abs=1e-9)


def test_rec709_known_values():
    assert TransferFunction.gamma_correct(0.0, SMPTE) == 0.0
    assert TransferFunction.gamma_correct(1.0, SMPTE) == pytest.approx(1.0)
    assert TransferFunction.gamma_correct(0.01, SMPTE) == pytest.approx(0.01 * REC709_SLOPE)
    assert TransferFunction.gamma_correct(0.5, SMPTE) == pytest.approx(1.099 * 0.5 ** 0.45 - 0.099)


def test_power_law():
    assert TransferFunction.gamma_correct(0.5, POWER_22) == pytest.approx(0.5 ** (1.0 / 2.2))
    assert TransferFunction.gamma_correct(1.0, POWER_22) == pytest.approx(1.0)


def test_gamma_scalar_and_shapes():
    assert isinstance(TransferFunction.gamma_correct(0.3, SMPTE), float)
    grid = np.linspace(0.0, 1.0, 12).reshape(4, 3)
    assert TransferFunction.gamma_correct(grid, SMPTE).shape == (4, 3)
    assert TransferFunction.gamma_correct_rgb(np.array([0.1, 0.2, 0.3]), SMPTE).shape == (3,)


def test_gamma_is_monotonic():
    ramp = np.linspace(0.001, 1.0, 1000)
    for system in (SMPTE, POWER_22):
        out = TransferFunction.gamma_correct(ramp, system)
        assert np.all(np.diff(out) > 0.0)


def test_gamma_warns_on_negative_input():
    with pytest.warns(RuntimeWarning):
        TransferFunction.gamma_correct(np.array([-0.1, 0.5]), SMPTE)


def test_strict_ieee_matches_fast_kernels():
    ramp = np.linspace(0.0, 1.0, 257)
    fast = TransferFunction.gamma_correct(ramp, SMPTE)
    set_strict_ieee(True)
    try:
        strict = TransferFunction.gamma_correct(ramp, SMPTE)
    finally:
        set_strict_ieee(False)
    np.testing.assert_allclose(fast, strict, rtol=1e-9, atol=1e-12)


# --- Chromaticity coordinates ---------------------------------------------------

def test_xy_to_upvp_d65():
    up, vp = ChromaticityCoords.xy_to_upvp(np.array(ILLUMINANT_D65))
    assert up == pytest.approx(0.1978, abs=1e-4)
    assert vp == pytest.approx(0.4684, abs=1e-4)


def test_upvp_inverts_xy():
    xy = np.array([[0.3127, 0.3291], [0.64, 0.33], [0.15, 0.06]])
    back = ChromaticityCoords.upvp_to_xy(ChromaticityCoords.xy_to_upvp(xy))
    np.testing.assert_allclose(back, xy, atol=1e-10)


def test_uv_shape_validation():
    with pytest.raises(ValueError):
        ChromaticityCoords.xy_to_upvp(np.zeros((2, 3)))


def test_functional_aliases():
    import iris_colorengine as ce

    assert ce.xyz_to_rgb_matrix(SMPTE) is BasisChange.matrix(SMPTE)
    np.testing.assert_allclose(ce.xyz_to_rgb(SMPTE.white_xyz(), SMPTE), [1.0, 1.0, 1.0], atol=1e-9)
    assert ce.inside_gamut(np.array([0.2, 0.3, 0.4])) is True
    assert ce.gamma_correct(1.0, SMPTE) == pytest.approx(1.0)
