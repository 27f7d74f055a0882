"""
高斯光束定义模块

本模块定义高斯光束的参数、沿光轴的演化以及两光束之间的模式重叠。

高斯光束参数（每个横向轴各一组）：
- 束腰半径 w0
- 束腰位置 zw
- 波长 λ（真空波长）
- 折射率 n
- M² 因子（光束质量因子）

理论基础：
- 瑞利距离    zR = n·π·w0² / (λ·M²)
- 光束半径    w(z) = w0·sqrt(1 + ((z - zw)/zR)²)
- 曲率半径    R(z) = (z - zw) + zR²/(z - zw)
- Gouy 相位   φ(z) = arctan((z - zw)/zR)
- 复光束参数  q(z) = (z - zw) + i·zR

光束可以是球对称的（两轴相同），也可以是椭圆的（水平轴 H 与竖直轴 V
各有独立的束腰参数）。所有访问方法都接受一个 Orientation 参数，
默认 Spherical 读取水平轴、写入两轴。

所有量均为国际单位制（m、rad）。

作者：高斯光束平台项目
"""

from __future__ import annotations

from enum import Enum
from typing import List, Tuple
import numpy as np


class Orientation(Enum):
    """光束或元件的取向

    - Spherical: 球对称，两轴相同
    - Horizontal: 仅水平轴
    - Vertical: 仅竖直轴
    - Ellipsoidal: 椭圆光束，两轴独立
    """
    Spherical = "spherical"
    Horizontal = "horizontal"
    Vertical = "vertical"
    Ellipsoidal = "ellipsoidal"


def _axis(orientation: Orientation) -> int:
    """读取时使用的轴下标（Spherical、Ellipsoidal 读取水平轴）"""
    return 1 if orientation == Orientation.Vertical else 0


def _axes(orientation: Orientation) -> Tuple[int, ...]:
    """写入时涉及的轴下标"""
    if orientation == Orientation.Horizontal:
        return (0,)
    if orientation == Orientation.Vertical:
        return (1,)
    return (0, 1)


class Beam:
    """高斯光束

    参数:
        waist: 束腰半径（m）
        waist_position: 束腰位置（m）
        wavelength: 真空波长（m）
        index: 介质折射率，默认 1.0
        M2: 光束质量因子，默认 1.0

    属性:
        origin: 光轴上对应轴向坐标 start 的二维点 (x, y)
        angle: 光轴方向角（rad）
        start: 光束段起始轴向坐标
        stop: 光束段终止轴向坐标（默认 +inf）

    示例:
        >>> beam = Beam(waist=100e-6, waist_position=0.0, wavelength=461e-9)
        >>> beam.radius(beam.rayleigh())  # doctest: +ELLIPSIS
        0.000141...
    """

    def __init__(
        self,
        waist: float = 0.0,
        waist_position: float = 0.0,
        wavelength: float = 0.0,
        index: float = 1.0,
        M2: float = 1.0,
    ) -> None:
        self._waist: List[float] = [waist, waist]
        self._waist_position: List[float] = [waist_position, waist_position]
        self._orientation = Orientation.Spherical
        self.wavelength = wavelength
        self.index = index
        self.M2 = M2
        self.origin: Tuple[float, float] = (0.0, 0.0)
        self.angle = 0.0
        self.start = 0.0
        self.stop = np.inf

    @classmethod
    def from_q(
        cls,
        q: complex,
        z: float,
        wavelength: float,
        index: float = 1.0,
        M2: float = 1.0,
    ) -> "Beam":
        """由位置 z 处的复光束参数构造光束"""
        beam = cls(wavelength=wavelength, index=index, M2=M2)
        beam.set_q(q, z)
        return beam

    # ========================================================================
    # 取向
    # ========================================================================

    @property
    def orientation(self) -> Orientation:
        """光束取向（Spherical 或 Ellipsoidal）"""
        return self._orientation

    @property
    def is_spherical(self) -> bool:
        return self._orientation == Orientation.Spherical

    @property
    def valid(self) -> bool:
        """光束是否有效（默认构造或拟合失败的光束无效）"""
        return self.wavelength > 0.0 and min(self._waist) > 0.0

    def set_orientation(self, orientation: Orientation) -> None:
        """设置光束取向

        设为 Spherical 时，竖直轴参数被水平轴参数覆盖。
        """
        if orientation == Orientation.Spherical:
            self._waist[1] = self._waist[0]
            self._waist_position[1] = self._waist_position[0]
            self._orientation = Orientation.Spherical
        else:
            self._orientation = Orientation.Ellipsoidal

    def _update_orientation(self, orientation: Orientation) -> None:
        if orientation in (Orientation.Horizontal, Orientation.Vertical):
            self._orientation = Orientation.Ellipsoidal
        elif (self._waist[0] == self._waist[1]
              and self._waist_position[0] == self._waist_position[1]):
            self._orientation = Orientation.Spherical

    # ========================================================================
    # 束腰参数
    # ========================================================================

    def waist(self, orientation: Orientation = Orientation.Spherical) -> float:
        return self._waist[_axis(orientation)]

    def set_waist(
        self, waist: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        for axis in _axes(orientation):
            self._waist[axis] = waist
        self._update_orientation(orientation)

    def waist_position(
        self, orientation: Orientation = Orientation.Spherical
    ) -> float:
        return self._waist_position[_axis(orientation)]

    def set_waist_position(
        self, position: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        for axis in _axes(orientation):
            self._waist_position[axis] = position
        self._update_orientation(orientation)

    def rayleigh(self, orientation: Orientation = Orientation.Spherical) -> float:
        """瑞利距离 zR = n·π·w0²/(λ·M²)，波长为零时返回 0"""
        if self.wavelength == 0.0:
            return 0.0
        w0 = self.waist(orientation)
        return self.index * np.pi * w0 * w0 / (self.wavelength * self.M2)

    def set_rayleigh(
        self, rayleigh: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        """通过瑞利距离设置束腰（非正值被忽略）"""
        if rayleigh <= 0.0:
            return
        waist = np.sqrt(rayleigh * self.wavelength * self.M2 / (self.index * np.pi))
        self.set_waist(float(waist), orientation)

    def divergence(self, orientation: Orientation = Orientation.Spherical) -> float:
        """远场发散半角 θ = arctan(λ·M²/(n·π·w0))，束腰为零时返回 0"""
        w0 = self.waist(orientation)
        if w0 == 0.0:
            return 0.0
        return float(np.arctan(self.wavelength * self.M2 / (self.index * np.pi * w0)))

    def set_divergence(
        self, divergence: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        """通过发散角设置束腰（仅接受 0 < θ < π/2）"""
        if not 0.0 < divergence < np.pi / 2.0:
            return
        waist = self.wavelength * self.M2 / (self.index * np.pi * np.tan(divergence))
        self.set_waist(float(waist), orientation)

    # ========================================================================
    # 沿光轴的演化
    # ========================================================================

    def _reduced(self, z: float, orientation: Orientation) -> float:
        """归一化距离 (z - zw)/zR"""
        zR = self.rayleigh(orientation)
        if zR == 0.0:
            return 0.0
        return (z - self.waist_position(orientation)) / zR

    def radius(self, z: float, orientation: Orientation = Orientation.Spherical) -> float:
        """位置 z 处的 1/e² 光束半径"""
        zred = self._reduced(z, orientation)
        return float(self.waist(orientation) * np.sqrt(1.0 + zred * zred))

    def radius_derivative(
        self, z: float, orientation: Orientation = Orientation.Spherical
    ) -> float:
        """光束半径对 z 的一阶导数 dw/dz（束腰前为负）"""
        zR = self.rayleigh(orientation)
        if zR == 0.0:
            return 0.0
        zred = self._reduced(z, orientation)
        return float(self.waist(orientation) / zR * zred / np.sqrt(1.0 + zred * zred))

    def radius_second_derivative(
        self, z: float, orientation: Orientation = Orientation.Spherical
    ) -> float:
        """光束半径对 z 的二阶导数 d²w/dz²"""
        zR = self.rayleigh(orientation)
        if zR == 0.0:
            return 0.0
        zred = self._reduced(z, orientation)
        return float(self.waist(orientation) / (zR * zR) / (1.0 + zred * zred) ** 1.5)

    def curvature(self, z: float, orientation: Orientation = Orientation.Spherical) -> float:
        """波前曲率半径 R(z)，在束腰处为无穷大"""
        dz = z - self.waist_position(orientation)
        if dz == 0.0:
            return np.inf
        zR = self.rayleigh(orientation)
        return dz + zR * zR / dz

    def gouy_phase(self, z: float, orientation: Orientation = Orientation.Spherical) -> float:
        return float(np.arctan(self._reduced(z, orientation)))

    def q(self, z: float, orientation: Orientation = Orientation.Spherical) -> complex:
        """复光束参数 q(z) = (z - zw) + i·zR"""
        return complex(z - self.waist_position(orientation), self.rayleigh(orientation))

    def set_q(
        self, q: complex, z: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        """由位置 z 处的复光束参数设置束腰（q(z) 的精确逆运算）

        虚部取绝对值：行列式为负的通用 ABCD 矩阵会翻转虚部符号。
        """
        rayleigh = abs(q.imag)
        waist = 0.0
        if self.wavelength > 0.0 and rayleigh > 0.0:
            waist = float(np.sqrt(rayleigh * self.wavelength * self.M2 / (self.index * np.pi)))
        for axis in _axes(orientation):
            self._waist[axis] = waist
            self._waist_position[axis] = z - q.real
        self._update_orientation(orientation)

    def point(self, z: float) -> Tuple[float, float]:
        """轴向坐标 z 对应的二维平面点"""
        distance = z - self.start
        return (
            self.origin[0] + distance * float(np.cos(self.angle)),
            self.origin[1] + distance * float(np.sin(self.angle)),
        )

    # ========================================================================
    # 杂项
    # ========================================================================

    def copy(self) -> "Beam":
        beam = Beam.__new__(type(self))
        beam.__dict__.update(self.__dict__)
        beam._waist = list(self._waist)
        beam._waist_position = list(self._waist_position)
        return beam

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Beam):
            return NotImplemented
        return (
            self._waist == other._waist
            and self._waist_position == other._waist_position
            and self._orientation == other._orientation
            and self.wavelength == other.wavelength
            and self.index == other.index
            and self.M2 == other.M2
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.is_spherical:
            return (
                f"Beam(waist={self._waist[0]:.6g}, "
                f"waist_position={self._waist_position[0]:.6g}, "
                f"wavelength={self.wavelength:.6g}, index={self.index:g}, M2={self.M2:g})"
            )
        return (
            f"Beam(waist=({self._waist[0]:.6g}, {self._waist[1]:.6g}), "
            f"waist_position=({self._waist_position[0]:.6g}, {self._waist_position[1]:.6g}), "
            f"wavelength={self.wavelength:.6g}, index={self.index:g}, M2={self.M2:g})"
        )


class TargetBeam(Beam):
    """目标光束

    在 Beam 基础上增加优化判据：

    参数:
        overlap_criterion: True 时以重叠积分 > min_overlap 为成功判据，
            False 时以束腰和束腰位置的容差为判据
        min_overlap: 最小重叠积分，默认 0.98
        waist_tolerance: 束腰相对容差，默认 0.05
        position_tolerance: 束腰位置容差（以瑞利距离为单位），默认 0.1
    """

    def __init__(
        self,
        waist: float = 0.0,
        waist_position: float = 0.0,
        wavelength: float = 0.0,
        index: float = 1.0,
        M2: float = 1.0,
        overlap_criterion: bool = True,
        min_overlap: float = 0.98,
        waist_tolerance: float = 0.05,
        position_tolerance: float = 0.1,
    ) -> None:
        super().__init__(waist, waist_position, wavelength, index, M2)
        self.overlap_criterion = overlap_criterion
        self.min_overlap = min_overlap
        self.waist_tolerance = waist_tolerance
        self.position_tolerance = position_tolerance

    @classmethod
    def from_beam(cls, beam: Beam, **criteria) -> "TargetBeam":
        """由普通光束构造目标光束"""
        target = cls(**criteria)
        target._waist = list(beam._waist)
        target._waist_position = list(beam._waist_position)
        target._orientation = beam.orientation
        target.wavelength = beam.wavelength
        target.index = beam.index
        target.M2 = beam.M2
        return target


# ============================================================================
# 模式重叠
# ============================================================================

def overlap_1d(
    beam1: Beam,
    beam2: Beam,
    z: float = 0.0,
    orientation: Orientation = Orientation.Horizontal,
) -> float:
    """单轴模式重叠

    η = 4ρ / ((1+ρ)² + (zred1 - zred2·ρ)²)，ρ = (w1/w2)²，
    zred = (z - zw)/zR。光束半径或瑞利距离为零时返回 0。
    """
    r1 = beam1.radius(z, orientation)
    r2 = beam2.radius(z, orientation)
    zR1 = beam1.rayleigh(orientation)
    zR2 = beam2.rayleigh(orientation)
    if r1 == 0.0 or r2 == 0.0 or zR1 == 0.0 or zR2 == 0.0:
        return 0.0
    rho = (r1 / r2) ** 2
    zred1 = (z - beam1.waist_position(orientation)) / zR1
    zred2 = (z - beam2.waist_position(orientation)) / zR2
    return 4.0 * rho / ((1.0 + rho) ** 2 + (zred1 - zred2 * rho) ** 2)


def overlap(beam1: Beam, beam2: Beam, z: float = 0.0) -> float:
    """两光束的模式重叠积分 η ∈ [0, 1]

    两个球对称光束直接返回单轴重叠；否则返回两轴振幅重叠之积
    sqrt(η_H)·sqrt(η_V)。

    示例:
        >>> beam = Beam(100e-6, 0.0, 461e-9)
        >>> overlap(beam, beam)
        1.0
    """
    if beam1.is_spherical and beam2.is_spherical:
        return overlap_1d(beam1, beam2, z, Orientation.Horizontal)
    eta_h = overlap_1d(beam1, beam2, z, Orientation.Horizontal)
    eta_v = overlap_1d(beam1, beam2, z, Orientation.Vertical)
    return float(np.sqrt(eta_h) * np.sqrt(eta_v))
