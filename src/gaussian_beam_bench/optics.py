"""
光学元件定义模块

本模块以"带标签的变体"表示光学元件：所有元件共用一个 Optics 数据类，
由 OpticsType 标签区分种类，种类特有的物理参数保存在各自的参数数据类中。
ABCD 系数和折射率跳变由单一分派函数 abcd() / index_jump() 根据标签计算。

支持的元件类型：
- CreateBeam：光源（平台第 0 个元件），不是 ABCD 变换
- FreeSpace：自由空间，[[1, L], [0, 1]]
- Lens：薄透镜，[[1, 0], [-1/f, 1]]
- FlatMirror：平面镜，单位矩阵（附加光轴反射）
- CurvedMirror：球面镜，[[1, 0], [-2/R, 1]]
- FlatInterface：平面界面，[[1, 0], [0, 1/n]]，折射率跳变 n
- CurvedInterface：球面界面，[[1, 0], [(1/n - 1)/R, 1/n]]，折射率跳变 n
- DielectricSlab：介质平板，[[1, L/n], [0, 1]]
- GenericABCD：任意 ABCD 矩阵

ABCD 矩阵法：
复光束参数 q 经过元件后：q' = (A·q + B) / (C·q + D)
逆变换：               q  = (B - D·q') / (C·q' - A)

参数设置遵循"静默守卫"：非法的物理参数（焦距为零、曲率半径非正等）
被忽略，保留原来的有效值。

作者：高斯光束平台项目
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Any, List, Optional, Tuple, Union
import numpy as np
from numpy.typing import NDArray

from .beam import Beam, Orientation


class OpticsType(Enum):
    """光学元件种类（值用作文档中的类型标签）"""
    CreateBeam = "inputBeam"
    FreeSpace = "freeSpace"
    Lens = "lens"
    FlatMirror = "flatMirror"
    CurvedMirror = "curvedMirror"
    FlatInterface = "flatInterface"
    CurvedInterface = "curvedInterface"
    DielectricSlab = "dielectricSlab"
    GenericABCD = "genericABCD"


# 宽度恒为零的薄元件
THIN_TYPES = frozenset({
    OpticsType.CreateBeam,
    OpticsType.Lens,
    OpticsType.FlatMirror,
    OpticsType.CurvedMirror,
    OpticsType.FlatInterface,
    OpticsType.CurvedInterface,
})

# 改变折射率的元件，始终为球对称
INDEX_CHANGING_TYPES = frozenset({
    OpticsType.FlatInterface,
    OpticsType.CurvedInterface,
})


# ============================================================================
# 种类参数
# ============================================================================

@dataclass
class EmptyParams:
    """无种类参数（FreeSpace、FlatMirror）"""
    pass


@dataclass
class LensParams:
    """薄透镜参数

    参数:
        focal: 焦距（m），不能为零
    """
    focal: float

    def set_focal(self, focal: float) -> None:
        if focal != 0.0:
            self.focal = focal


@dataclass
class CurvedMirrorParams:
    """球面镜参数

    参数:
        curvature_radius: 曲率半径（m），必须为正值
    """
    curvature_radius: float

    def set_curvature_radius(self, curvature_radius: float) -> None:
        if curvature_radius > 0.0:
            self.curvature_radius = curvature_radius


@dataclass
class InterfaceParams:
    """平面界面参数

    参数:
        index_ratio: 出射侧与入射侧折射率之比 n2/n1，必须为正值
    """
    index_ratio: float

    def set_index_ratio(self, index_ratio: float) -> None:
        if index_ratio > 0.0:
            self.index_ratio = index_ratio


@dataclass
class CurvedInterfaceParams(InterfaceParams):
    """球面界面参数

    参数:
        index_ratio: 折射率之比 n2/n1
        surface_radius: 界面曲率半径（m），必须为正值
    """
    surface_radius: float

    def set_surface_radius(self, surface_radius: float) -> None:
        if surface_radius > 0.0:
            self.surface_radius = surface_radius


@dataclass
class DielectricSlabParams(InterfaceParams):
    """介质平板参数（厚度保存在 Optics.width 中）"""
    pass


@dataclass
class ABCDParams:
    """通用 ABCD 矩阵系数"""
    A: float = 1.0
    B: float = 0.0
    C: float = 0.0
    D: float = 1.0

    def set_coefficients(self, A: float, B: float, C: float, D: float) -> None:
        self.A, self.B, self.C, self.D = A, B, C, D


@dataclass
class CreateBeamParams:
    """光源参数

    光源的水平束腰位置就是元件位置；竖直束腰位置以相对偏移保存，
    这样移动光源时两轴一起移动。

    参数:
        waist: 水平、竖直束腰半径（m），必须为正值
        vertical_offset: 竖直束腰位置相对水平束腰位置的偏移（m）
        index: 介质折射率，必须为正值
        M2: 光束质量因子，必须 >= 1
        orientation: 光束取向（Spherical 或 Ellipsoidal）
    """
    waist: List[float] = field(default_factory=lambda: [180e-6, 180e-6])
    vertical_offset: float = 0.0
    index: float = 1.0
    M2: float = 1.0
    orientation: Orientation = Orientation.Spherical

    def set_waist(
        self, waist: float, orientation: Orientation = Orientation.Spherical
    ) -> None:
        if waist <= 0.0:
            return
        if orientation != Orientation.Vertical:
            self.waist[0] = waist
        if orientation != Orientation.Horizontal:
            self.waist[1] = waist
        if orientation in (Orientation.Horizontal, Orientation.Vertical):
            self.orientation = Orientation.Ellipsoidal

    def set_index(self, index: float) -> None:
        if index > 0.0:
            self.index = index

    def set_M2(self, M2: float) -> None:
        if M2 >= 1.0:
            self.M2 = M2

    def beam(self, position: float, wavelength: float) -> Beam:
        """在给定元件位置和波长下生成配置的光束"""
        beam = Beam(self.waist[0], position, wavelength, self.index, self.M2)
        if self.orientation != Orientation.Spherical:
            beam.set_waist(self.waist[1], Orientation.Vertical)
            beam.set_waist_position(position + self.vertical_offset, Orientation.Vertical)
        return beam

    def set_beam(self, beam: Beam) -> None:
        """由光束重新推导光源参数（元件位置由调用方设置为水平束腰位置）"""
        h, v = Orientation.Horizontal, Orientation.Vertical
        self.index = beam.index
        self.M2 = beam.M2
        self.waist = [beam.waist(h), beam.waist(v)]
        self.vertical_offset = beam.waist_position(v) - beam.waist_position(h)
        self.orientation = (
            Orientation.Spherical if beam.is_spherical else Orientation.Ellipsoidal
        )


OpticsParams = Union[
    EmptyParams,
    LensParams,
    CurvedMirrorParams,
    InterfaceParams,
    CurvedInterfaceParams,
    DielectricSlabParams,
    ABCDParams,
    CreateBeamParams,
]


# ============================================================================
# 元件
# ============================================================================

@dataclass
class Optics:
    """光学元件

    参数:
        type: 元件种类
        params: 种类参数
        position: 元件左边缘的轴向坐标（m）
        width: 元件宽度（m），薄元件为 0
        name: 元件名称（平台内唯一）
        angle: 光轴方向角（rad），平面镜用于计算反射
        orientation: 元件作用的轴（Spherical、Horizontal 或 Vertical）
        absolute_lock: 绝对锁定（不可移动）
        lock_parent: 相对锁定父元件的 id
        lock_children: 相对锁定子元件的 id 列表
        id: 平台内唯一的元件标识
    """
    type: OpticsType
    params: Any = field(default_factory=EmptyParams)
    position: float = 0.0
    width: float = 0.0
    name: str = ""
    angle: float = 0.0
    orientation: Orientation = Orientation.Spherical
    absolute_lock: bool = False
    lock_parent: Optional[int] = None
    lock_children: List[int] = field(default_factory=list)
    id: int = -1

    @property
    def end_position(self) -> float:
        return self.position + self.width

    @property
    def is_thin(self) -> bool:
        return self.type in THIN_TYPES

    @property
    def changes_index(self) -> bool:
        return self.type in INDEX_CHANGING_TYPES

    @property
    def is_abcd(self) -> bool:
        """是否为 ABCD 变换元件（光源不是）"""
        return self.type != OpticsType.CreateBeam

    def set_width(self, width: float) -> None:
        """设置宽度（负值以及薄元件被忽略）"""
        if width >= 0.0 and not self.is_thin:
            self.width = width

    def set_orientation(self, orientation: Orientation) -> None:
        """设置元件作用的轴（改变折射率的元件始终为球对称）"""
        if self.changes_index or orientation == Orientation.Ellipsoidal:
            return
        self.orientation = orientation

    def image(self, beam: Beam) -> Beam:
        return image(self, beam)

    def antecedent(self, beam: Beam) -> Beam:
        return antecedent(self, beam)


# ============================================================================
# ABCD 分派
# ============================================================================

def abcd(optics: Optics) -> Tuple[float, float, float, float]:
    """元件的 ABCD 系数 (A, B, C, D)

    示例:
        >>> abcd(Optics(OpticsType.Lens, LensParams(focal=0.1)))
        (1.0, 0.0, -10.0, 1.0)
    """
    kind = optics.type
    p = optics.params
    if kind == OpticsType.FreeSpace:
        return (1.0, optics.width, 0.0, 1.0)
    if kind == OpticsType.Lens:
        return (1.0, 0.0, -1.0 / p.focal, 1.0)
    if kind == OpticsType.CurvedMirror:
        return (1.0, 0.0, -2.0 / p.curvature_radius, 1.0)
    if kind == OpticsType.FlatInterface:
        return (1.0, 0.0, 0.0, 1.0 / p.index_ratio)
    if kind == OpticsType.CurvedInterface:
        return (1.0, 0.0, (1.0 / p.index_ratio - 1.0) / p.surface_radius, 1.0 / p.index_ratio)
    if kind == OpticsType.DielectricSlab:
        return (1.0, optics.width / p.index_ratio, 0.0, 1.0)
    if kind == OpticsType.GenericABCD:
        return (p.A, p.B, p.C, p.D)
    return (1.0, 0.0, 0.0, 1.0)


def index_jump(optics: Optics) -> float:
    """出射折射率与入射折射率之比"""
    if optics.changes_index:
        return optics.params.index_ratio
    return 1.0


def _axis_abcd(
    optics: Optics, orientation: Orientation
) -> Tuple[float, float, float, float]:
    """元件对某一轴的 ABCD 系数，不作用的轴视为同宽度的自由空间"""
    if optics.orientation in (Orientation.Spherical, orientation):
        return abcd(optics)
    return (1.0, optics.width, 0.0, 1.0)


def _beam_axes(beam: Beam, optics: Optics) -> Tuple[Orientation, ...]:
    if beam.is_spherical and optics.orientation == Orientation.Spherical:
        return (Orientation.Spherical,)
    return (Orientation.Horizontal, Orientation.Vertical)


def _normalize_angle(angle: float) -> float:
    return float(np.mod(angle, 2.0 * np.pi))


def _reflects(mirror_angle: float, beam_angle: float) -> bool:
    """光束是否从反射面一侧入射（相对角不在 (π/2, 3π/2) 内）"""
    relative = _normalize_angle(mirror_angle - beam_angle)
    return not (np.pi / 2.0 < relative < 3.0 * np.pi / 2.0)


def image(optics: Optics, beam: Beam) -> Beam:
    """光束经过元件后的像

    q 在元件入口 position 处取值，结果位于出口 end_position。
    输出光束段从 end_position 开始，原点为输入光束在该处的平面点。

    参数:
        optics: 光学元件
        beam: 入射光束

    返回:
        出射光束（新对象）
    """
    if optics.type == OpticsType.CreateBeam:
        result = optics.params.beam(optics.position, beam.wavelength)
        result.start = optics.position
        result.origin = beam.point(optics.position)
        result.angle = optics.angle
        return result

    result = Beam(wavelength=beam.wavelength, index=beam.index * index_jump(optics), M2=beam.M2)
    for orientation in _beam_axes(beam, optics):
        A, B, C, D = _axis_abcd(optics, orientation)
        q_in = beam.q(optics.position, orientation)
        q_out = (A * q_in + B) / (C * q_in + D)
        result.set_q(q_out, optics.end_position, orientation)

    result.start = optics.end_position
    result.origin = beam.point(optics.end_position)
    result.angle = beam.angle
    if optics.type == OpticsType.FlatMirror and _reflects(optics.angle, beam.angle):
        relative = _normalize_angle(optics.angle - beam.angle)
        result.angle = _normalize_angle(beam.angle + 2.0 * relative + np.pi)
    return result


def antecedent(optics: Optics, beam: Beam) -> Beam:
    """产生给定出射光束的入射光束（image 的逆运算）

    平面镜的入射方向由反射公式反推；从背面穿过与反射两种情况
    无法仅由出射方向区分，此处按反射处理。
    """
    if optics.type == OpticsType.CreateBeam:
        return beam.copy()

    result = Beam(wavelength=beam.wavelength, index=beam.index / index_jump(optics), M2=beam.M2)
    for orientation in _beam_axes(beam, optics):
        A, B, C, D = _axis_abcd(optics, orientation)
        q_out = beam.q(optics.end_position, orientation)
        q_in = (B - D * q_out) / (C * q_out - A)
        result.set_q(q_in, optics.position, orientation)

    result.angle = beam.angle
    if optics.type == OpticsType.FlatMirror:
        incoming = _normalize_angle(2.0 * optics.angle - beam.angle + np.pi)
        if _reflects(optics.angle, incoming):
            result.angle = incoming
    result.start = optics.position
    result.origin = beam.point(optics.position)
    return result


# ============================================================================
# 矩阵代数
# ============================================================================

def matrix(optics: Optics) -> NDArray:
    """元件的 2×2 ABCD 矩阵"""
    A, B, C, D = abcd(optics)
    return np.array([[A, B], [C, D]], dtype=float)


def free_space_matrix(distance: float) -> NDArray:
    """自由空间传播矩阵 [[1, d], [0, 1]]"""
    return np.array([[1.0, distance], [0.0, 1.0]], dtype=float)


def compose(*matrices: NDArray) -> NDArray:
    """按书写顺序相乘：compose(M2, M1) = M2·M1（M1 先作用）"""
    return reduce(np.matmul, matrices, np.eye(2))


def generic_abcd(
    m: NDArray, width: float = 0.0, position: float = 0.0, name: str = ""
) -> Optics:
    """由 2×2 矩阵构造 GenericABCD 元件"""
    optics = Optics(
        OpticsType.GenericABCD,
        ABCDParams(float(m[0, 0]), float(m[0, 1]), float(m[1, 0]), float(m[1, 1])),
        position=position,
        name=name,
    )
    optics.set_width(width)
    return optics


def stability_criterion1(m: NDArray) -> bool:
    """稳定性判据 1：|(A + D)/2| < 1"""
    return bool(abs((m[0, 0] + m[1, 1]) / 2.0) < 1.0)


def stability_criterion2(m: NDArray) -> bool:
    """稳定性判据 2：(D - A)² + 4·C·B < 0"""
    return bool(_discriminant(m) < 0.0)


def _discriminant(m: NDArray) -> float:
    A, B, C, D = m[0, 0], m[0, 1], m[1, 0], m[1, 1]
    return float((D - A) ** 2 + 4.0 * C * B)


def eigen_q(m: NDArray) -> Optional[complex]:
    """往返矩阵的自洽复光束参数 q = (A·q + B)/(C·q + D)

    取虚部为正的根：q = -(D - A)/(2C) + i·sqrt(-Δ)/(2|C|)。
    判据 2 不成立时返回 None。
    """
    discriminant = _discriminant(m)
    C = float(m[1, 0])
    if discriminant >= 0.0 or C == 0.0:
        return None
    A, D = float(m[0, 0]), float(m[1, 1])
    return complex(-(D - A) / (2.0 * C), np.sqrt(-discriminant) / (2.0 * abs(C)))


def eigen_mode(m: NDArray, wavelength: float, z: float = 0.0) -> Optional[Beam]:
    """往返矩阵在参考面 z 处的本征光束，不稳定时返回 None"""
    q = eigen_q(m)
    if q is None:
        return None
    return Beam.from_q(q, z, wavelength)
