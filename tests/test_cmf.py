"""Tests for iris_cmf: colour-matching tables and chromaticity lookup.

Run:
    pytest tests/test_cmf.py -v
"""

import numpy as np
import pytest

from iris_cmf import (
    CIE1931_1NM,
    CIE1931_5NM,
    ColorMatchTable,
    WavelengthRangeError,
    spectrum_to_xyz,
    wavelength_to_xyz,
)
from iris_spectra import white_spectrum


def test_table_layout():
    assert len(CIE1931_1NM) == 401
    assert CIE1931_1NM.start == 380.0
    assert CIE1931_1NM.end == 780.0
    assert len(CIE1931_5NM) == 81
    assert CIE1931_5NM.step == 5.0
    assert CIE1931_5NM.end == 780.0


def test_five_nm_table_matches_classical_rows():
    np.testing.assert_array_equal(CIE1931_5NM.entry(385.0), [0.0022, 0.0001, 0.0105])
    np.testing.assert_array_equal(CIE1931_5NM.entry(550.0), [0.4334, 0.9950, 0.0087])
    np.testing.assert_array_equal(CIE1931_1NM.entry(550.0), CIE1931_5NM.entry(550.0))


def test_table_is_read_only():
    with pytest.raises(ValueError):
        CIE1931_1NM.data[0, 0] = 1.0
    writable = np.ones((4, 3))
    table = ColorMatchTable(400.0, 1.0, writable)
    assert not table.data.flags.writeable
    # The caller's array is copied, not frozen in place.
    assert writable.flags.writeable


def test_table_rejects_bad_shape_and_step():
    with pytest.raises(ValueError):
        ColorMatchTable(380.0, 1.0, np.ones((5, 2)))
    with pytest.raises(ValueError):
        ColorMatchTable(380.0, 0.0, np.ones((5, 3)))
    with pytest.raises(ValueError):
        CIE1931_1NM.decimate(0)


def test_index_of_truncates():
    assert CIE1931_1NM.index_of(380.0) == 0
    assert CIE1931_1NM.index_of(550.7) == 170
    assert CIE1931_1NM.index_of(780.0) == 400
    assert CIE1931_5NM.index_of(387.0) == 1
    np.testing.assert_array_equal(CIE1931_1NM.index_of(np.array([380.0, 381.5, 400.0])), [0, 1, 20])


def test_chromaticity_sums_to_one():
    wavelengths = np.arange(380.0, 778.0)
    xyz = wavelength_to_xyz(wavelengths)
    assert xyz.shape == (398, 3)
    np.testing.assert_allclose(xyz.sum(axis=1), 1.0, atol=1e-9)


def test_chromaticity_values_at_550():
    xyz = wavelength_to_xyz(550.0)
    assert xyz.shape == (3,)
    raw = np.array([0.4334, 0.9950, 0.0087])
    np.testing.assert_allclose(xyz, raw / raw.sum(), rtol=1e-12)


def test_fractional_wavelength_uses_lower_row():
    np.testing.assert_array_equal(wavelength_to_xyz(550.7), wavelength_to_xyz(550.0))


@pytest.mark.parametrize("wavelength", [379.9, 780.1, 200.0, 1000.0, float("nan"), float("inf")])
def test_out_of_range_wavelength_raises(wavelength):
    with pytest.raises(WavelengthRangeError):
        wavelength_to_xyz(wavelength)


def test_out_of_range_in_batch_raises():
    with pytest.raises(WavelengthRangeError):
        wavelength_to_xyz(np.array([500.0, 790.0]))


def test_range_error_is_value_error():
    assert issubclass(WavelengthRangeError, ValueError)


def test_zero_response_raises_instead_of_nan():
    # 778-780 nm rows are all zero in the 1 nm table.
    with pytest.raises(WavelengthRangeError):
        wavelength_to_xyz(779.0)


def test_equal_energy_spectrum_is_near_white():
    xyz = spectrum_to_xyz(white_spectrum)
    assert xyz.sum() == pytest.approx(1.0)
    assert xyz[0] == pytest.approx(1.0 / 3.0, abs=0.01)
    assert xyz[1] == pytest.approx(1.0 / 3.0, abs=0.01)


def test_line_spectrum_matches_point_sample():
    xyz = spectrum_to_xyz(lambda wl: 1.0 if wl == 550.0 else 0.0)
    np.testing.assert_allclose(xyz, wavelength_to_xyz(550.0), rtol=1e-12)


def test_dark_or_invalid_spectrum_raises():
    with pytest.raises(ValueError):
        spectrum_to_xyz(lambda wl: 0.0)
    with pytest.raises(ValueError):
        spectrum_to_xyz(lambda wl: float("nan"))
