"""
光束拟合模块测试
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gaussian_beam_bench import Beam, Fit, FitDataType, FitWarning, fit_beam
from gaussian_beam_bench.fit import to_radius


WAVELENGTH = 461e-9
POSITIONS = [0.05, 0.15, 0.25, 0.35, 0.45]


@pytest.fixture
def source():
    return Beam(100e-6, 0.22, WAVELENGTH)


def sampled_fit(beam, positions=POSITIONS, data_type=FitDataType.Radius_e2):
    fit = Fit("test", data_type=data_type)
    factor = 2.0 if data_type == FitDataType.Diameter_e2 else 1.0
    for z in positions:
        fit.add_data(z, factor * beam.radius(z))
    return fit


class TestToRadius:

    def test_conversions(self):
        assert to_radius(2.0, FitDataType.Radius_e2) == 2.0
        assert to_radius(2.0, FitDataType.Diameter_e2) == 1.0
        assert to_radius(2.0, FitDataType.StandardDeviation) == 4.0
        assert_allclose(to_radius(np.sqrt(2 * np.log(2)), FitDataType.FWHM), 1.0, rtol=1e-12)
        assert_allclose(
            to_radius(np.sqrt(np.log(2) / 2), FitDataType.HWHM), 1.0, rtol=1e-12
        )


class TestFitBeam:

    def test_exact_samples_recovered(self, source):
        """测试由精确光束半径拟合回原光束"""
        radii = [source.radius(z) for z in POSITIONS]
        result = fit_beam(POSITIONS, radii, WAVELENGTH)
        assert_allclose(result.beam.waist(), 100e-6, rtol=1e-6)
        assert_allclose(result.beam.waist_position(), 0.22, rtol=1e-6)
        assert result.residue < 1e-16

    def test_far_field_is_linear(self):
        """测试远场数据的线性相关系数接近 1"""
        beam = Beam(20e-6, 0.0, WAVELENGTH)
        z = [0.1, 0.2, 0.3, 0.4, 0.5]
        result = fit_beam(z, [beam.radius(p) for p in z], WAVELENGTH)
        assert result.rho2 > 0.999

    def test_not_enough_points_warns(self):
        with pytest.warns(FitWarning):
            result = fit_beam([0.1], [100e-6], WAVELENGTH)
        assert not result.beam.valid

    def test_same_position_warns(self):
        with pytest.warns(FitWarning):
            result = fit_beam([0.1, 0.1], [100e-6, 120e-6], WAVELENGTH)
        assert not result.beam.valid

    def test_zero_radius_ignored(self, source):
        """测试零值占位数据不参与拟合"""
        radii = [source.radius(z) for z in POSITIONS]
        with_placeholder = fit_beam(POSITIONS + [0.3], radii + [0.0], WAVELENGTH)
        assert_allclose(with_placeholder.beam.waist(), 100e-6, rtol=1e-6)


class TestFitData:

    def test_diameter_data(self, source):
        fit = sampled_fit(source, data_type=FitDataType.Diameter_e2)
        assert_allclose(fit.beam(WAVELENGTH).waist(), 100e-6, rtol=1e-6)

    def test_default_data_type_is_diameter(self):
        assert Fit().data_type == FitDataType.Diameter_e2

    def test_set_data_pads_with_zeros(self):
        fit = Fit()
        fit.set_data(2, 0.3, 200e-6)
        assert fit.size() == 3
        assert fit.non_zero_size() == 1
        assert fit.value(0) == 0.0
        assert fit.position(2) == 0.3

    def test_remove_and_clear(self, source):
        fit = sampled_fit(source)
        fit.remove_data(0)
        assert fit.size() == len(POSITIONS) - 1
        assert fit.position(0) == POSITIONS[1]
        fit.clear()
        assert fit.size() == 0


class TestFitCache:

    def test_result_refreshed_after_edit(self, source):
        fit = sampled_fit(source)
        before = fit.beam(WAVELENGTH)
        fit.set_data(0, POSITIONS[0], 2 * source.radius(POSITIONS[0]))
        after = fit.beam(WAVELENGTH)
        assert after != before

    def test_data_type_change_refreshes(self, source):
        fit = sampled_fit(source)
        radius_waist = fit.beam(WAVELENGTH).waist()
        fit.data_type = FitDataType.Diameter_e2
        assert fit.radius(0) == fit.value(0) / 2
        assert fit.beam(WAVELENGTH).waist() < radius_waist

    def test_wavelength_change_refreshes(self, source):
        fit = sampled_fit(source)
        assert fit.beam(WAVELENGTH).wavelength == WAVELENGTH
        assert fit.beam(2 * WAVELENGTH).wavelength == 2 * WAVELENGTH

    def test_returned_beam_is_copy(self, source):
        fit = sampled_fit(source)
        fit.beam(WAVELENGTH).set_waist(1.0)
        assert_allclose(fit.beam(WAVELENGTH).waist(), 100e-6, rtol=1e-6)
