"""
高斯光束拟合模块

由一组 (位置, 测量值) 数据拟合高斯光束的束腰和束腰位置。

测量值可以是 1/e² 半径、1/e² 直径、标准差、FWHM 或 HWHM，
内部统一换算为 1/e² 半径。半径不大于 1e-50 的数据点视为"无数据"占位，
不参与拟合。

拟合分两步：
1. 线性拟合：对 w(z) 做最小二乘直线拟合 w ≈ m·z + p，在数据平均位置 z̄ 处
   f = m·z̄ + p，α = π·f·m/λ，得到 w0 = f/sqrt(1+α²)，zw = z̄ - zR·α；
2. 非线性细化：以线性结果（以及更小的最小测量值，如果它小于线性束腰）
   为初值，用 Levenberg-Marquardt 法最小化 Σ(w_i - w(z_i))²。

作者：高斯光束平台项目
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence
import numpy as np
from scipy.optimize import least_squares

from .beam import Beam, Orientation
from .exceptions import FitWarning


# 半径小于此值的数据点视为无数据
ZERO_RADIUS = 1e-50


class FitDataType(Enum):
    """测量值的类型"""
    Radius_e2 = "radius_e2"
    Diameter_e2 = "diameter_e2"
    StandardDeviation = "standard_deviation"
    FWHM = "fwhm"
    HWHM = "hwhm"


def to_radius(value: float, data_type: FitDataType) -> float:
    """把测量值换算为 1/e² 半径"""
    if data_type == FitDataType.Diameter_e2:
        return value / 2.0
    if data_type == FitDataType.StandardDeviation:
        return value * 2.0
    if data_type == FitDataType.FWHM:
        return value / np.sqrt(2.0 * np.log(2.0))
    if data_type == FitDataType.HWHM:
        return value * np.sqrt(2.0 / np.log(2.0))
    return value


@dataclass
class FitResult:
    """拟合结果

    属性:
        beam: 拟合光束（数据不足时为无效光束）
        rho2: 线性拟合的相关系数平方
        residue: 非线性拟合的残差平方和（m²）
    """
    beam: Beam
    rho2: float = 0.0
    residue: float = 0.0


def _linear_fit(positions: np.ndarray, radii: np.ndarray, wavelength: float):
    m, p = np.polyfit(positions, radii, 1)
    z = float(np.mean(positions))
    fz = m * z + p
    alpha = np.pi * fz * m / wavelength
    beam = Beam(float(abs(fz) / np.sqrt(1.0 + alpha * alpha)), 0.0, wavelength)
    beam.set_waist_position(float(z - beam.rayleigh() * alpha))

    sx, sy = np.std(positions), np.std(radii)
    if sx == 0.0 or sy == 0.0:
        rho2 = 0.0
    else:
        covariance = np.mean((positions - z) * (radii - np.mean(radii)))
        rho2 = float((covariance / (sx * sy)) ** 2)
    return beam, rho2


def fit_beam(
    positions: Sequence[float],
    radii: Sequence[float],
    wavelength: float,
) -> FitResult:
    """由位置和 1/e² 半径拟合高斯光束

    参数:
        positions: 测量位置（m）
        radii: 1/e² 半径（m）
        wavelength: 波长（m）

    返回:
        FitResult

    示例:
        >>> source = Beam(100e-6, 0.2, 461e-9)
        >>> z = [0.0, 0.1, 0.3, 0.4]
        >>> result = fit_beam(z, [source.radius(p) for p in z], 461e-9)
        >>> round(result.beam.waist() / 100e-6, 6)
        1.0
    """
    z = np.asarray(positions, dtype=float)
    w = np.asarray(radii, dtype=float)
    mask = w > ZERO_RADIUS
    z, w = z[mask], w[mask]

    if len(z) < 2 or np.ptp(z) == 0.0 or wavelength <= 0.0:
        warnings.warn(f"有效数据点不足（{len(z)} 个），无法拟合光束", FitWarning)
        return FitResult(Beam(wavelength=wavelength))

    linear, rho2 = _linear_fit(z, w, wavelength)

    def residuals(parameters: np.ndarray) -> np.ndarray:
        beam = Beam(abs(parameters[0]), parameters[1], wavelength)
        return w - np.array([beam.radius(p) for p in z])

    seeds = [np.array([linear.waist(), linear.waist_position()])]
    smallest = int(np.argmin(w))
    if w[smallest] < linear.waist():
        seeds.append(np.array([w[smallest], z[smallest]]))

    best = None
    for seed in seeds:
        result = least_squares(
            residuals, seed, method="lm", x_scale="jac",
            ftol=1e-15, xtol=1e-15, gtol=1e-15,
        )
        if best is None or result.cost < best.cost:
            best = result

    if best.status <= 0:
        warnings.warn(f"非线性拟合未收敛：{best.message}，使用线性拟合结果", FitWarning)
        residue = float(np.sum(residuals(seeds[0]) ** 2))
        return FitResult(linear, rho2, residue)

    beam = Beam(float(abs(best.x[0])), float(best.x[1]), wavelength)
    return FitResult(beam, rho2, float(np.sum(best.fun ** 2)))


class Fit:
    """一组光束测量数据及其缓存的拟合结果

    数据修改后拟合结果被标记为过期，下次访问 beam()、rho2()、residue()
    时（或波长改变时）重新计算。

    参数:
        name: 名称
        data_type: 测量值类型，默认 1/e² 直径
        orientation: 测量的轴
        color: 显示颜色（整数 RGB）
    """

    def __init__(
        self,
        name: str = "",
        data_type: FitDataType = FitDataType.Diameter_e2,
        orientation: Orientation = Orientation.Spherical,
        color: int = 0,
    ) -> None:
        self.name = name
        self._data_type = data_type
        self.orientation = orientation
        self.color = color
        self._positions: List[float] = []
        self._values: List[float] = []
        self._dirty = True
        self._last_wavelength = 0.0
        self._result = FitResult(Beam())

    # ========================================================================
    # 数据
    # ========================================================================

    @property
    def data_type(self) -> FitDataType:
        return self._data_type

    @data_type.setter
    def data_type(self, data_type: FitDataType) -> None:
        self._data_type = data_type
        self._dirty = True

    def size(self) -> int:
        return len(self._positions)

    def non_zero_size(self) -> int:
        return sum(1 for i in range(self.size()) if self.radius(i) > ZERO_RADIUS)

    def position(self, index: int) -> float:
        return self._positions[index]

    def value(self, index: int) -> float:
        return self._values[index]

    def radius(self, index: int) -> float:
        return to_radius(self._values[index], self._data_type)

    def set_data(self, index: int, position: float, value: float) -> None:
        """设置第 index 个数据点，必要时用零值补齐"""
        if index >= self.size():
            padding = index + 1 - self.size()
            self._positions.extend([0.0] * padding)
            self._values.extend([0.0] * padding)
        self._positions[index] = position
        self._values[index] = value
        self._dirty = True

    def add_data(self, position: float, value: float) -> None:
        self._positions.append(position)
        self._values.append(value)
        self._dirty = True

    def remove_data(self, index: int) -> None:
        del self._positions[index]
        del self._values[index]
        self._dirty = True

    def clear(self) -> None:
        self._positions.clear()
        self._values.clear()
        self._dirty = True

    # ========================================================================
    # 拟合结果
    # ========================================================================

    def _fit(self, wavelength: float) -> FitResult:
        if self._dirty or wavelength != self._last_wavelength:
            radii = [self.radius(i) for i in range(self.size())]
            self._result = fit_beam(self._positions, radii, wavelength)
            self._dirty = False
            self._last_wavelength = wavelength
        return self._result

    def beam(self, wavelength: float) -> Beam:
        return self._fit(wavelength).beam.copy()

    def rho2(self, wavelength: float) -> float:
        return self._fit(wavelength).rho2

    def residue(self, wavelength: float) -> float:
        return self._fit(wavelength).residue
