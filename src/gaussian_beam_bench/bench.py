"""
光学平台模块

OpticsBench 拥有一组按位置排序的光学元件（第 0 个元件总是 CreateBeam 光源，
不参与排序）以及与之一一对应的光束列表：beams[i] 是光束经过 optics[i]
之后的状态。任何修改操作结束时都会同步调用 compute_beams() 重新计算光束，
保证 beams[i] == optics[i].image(beams[i-1]) 始终成立。

传播协议：
- 正向模式（默认）：从 changed_index 开始依次成像
- 反向模式（直接编辑某一行光束时）：以编辑后的光束为种子，用 antecedent
  逐个反推到光源，改写光源参数，再从光源正向重新成像整条光路

平台还持有波长、优化搜索区间、目标光束、拟合数据和一个谐振腔。
监听者（BenchListener）在元件增删、数据变化、目标光束变化和拟合数据
变化时得到通知。

作者：高斯光束平台项目
"""

from __future__ import annotations

import bisect
from typing import Any, Dict, List, Optional

import numpy as np

from . import locking
from .beam import Beam, Orientation, TargetBeam
from .cavity import Cavity
from .exceptions import OpticsConfigurationError
from .fit import Fit
from .function import (
    OpticsFunction,
    OptimizerConfig,
    local_optimum,
    magic_waist,
    sensitivity,
    sort_optics,
)
from .optics import (
    ABCDParams,
    CreateBeamParams,
    CurvedInterfaceParams,
    CurvedMirrorParams,
    DielectricSlabParams,
    EmptyParams,
    InterfaceParams,
    LensParams,
    Optics,
    OpticsType,
)


# 自动命名前缀
NAME_PREFIXES: Dict[OpticsType, str] = {
    OpticsType.CreateBeam: "W",
    OpticsType.FreeSpace: "F",
    OpticsType.Lens: "L",
    OpticsType.FlatMirror: "M",
    OpticsType.CurvedMirror: "R",
    OpticsType.FlatInterface: "I",
    OpticsType.CurvedInterface: "C",
    OpticsType.DielectricSlab: "S",
    OpticsType.GenericABCD: "G",
}

# 构造各类元件所需的参数
REQUIRED_PARAMS: Dict[OpticsType, tuple] = {
    OpticsType.CreateBeam: ("waist",),
    OpticsType.FreeSpace: ("width",),
    OpticsType.Lens: ("focal",),
    OpticsType.FlatMirror: (),
    OpticsType.CurvedMirror: ("curvature_radius",),
    OpticsType.FlatInterface: ("index_ratio",),
    OpticsType.CurvedInterface: ("index_ratio", "surface_radius"),
    OpticsType.DielectricSlab: ("index_ratio", "width"),
    OpticsType.GenericABCD: ("A", "B", "C", "D", "width"),
}

OPTIONAL_PARAMS: Dict[OpticsType, tuple] = {
    OpticsType.CreateBeam: ("index", "M2"),
}

# 参数取值约束
_PARAM_CHECKS = {
    "focal": (lambda v: v != 0.0, "不能为零"),
    "curvature_radius": (lambda v: v > 0.0, "必须为正值"),
    "surface_radius": (lambda v: v > 0.0, "必须为正值"),
    "index_ratio": (lambda v: v > 0.0, "必须为正值"),
    "width": (lambda v: v >= 0.0, "不能为负值"),
    "waist": (lambda v: v > 0.0, "必须为正值"),
    "index": (lambda v: v > 0.0, "必须为正值"),
    "M2": (lambda v: v >= 1.0, "必须 >= 1.0"),
}

DEFAULT_WAVELENGTH = 461e-9
DEFAULT_LEFT_BOUNDARY = -0.1
DEFAULT_RIGHT_BOUNDARY = 0.7
DEFAULT_INPUT_WAIST = 180e-6
DEFAULT_INPUT_POSITION = 10e-3


class BenchListener:
    """光学平台监听者基类，所有回调默认什么都不做"""

    def optics_added(self, index: int) -> None:
        pass

    def optics_removed(self, index: int, count: int) -> None:
        pass

    def data_changed(self, start: int, end: int) -> None:
        pass

    def target_beam_changed(self) -> None:
        pass

    def fit_data_changed(self, index: int) -> None:
        pass

    def wavelength_changed(self) -> None:
        pass


def _build_params(kind: OpticsType, params: Dict[str, Any]) -> Any:
    if kind == OpticsType.CreateBeam:
        return CreateBeamParams(
            waist=[params["waist"], params["waist"]],
            index=params.get("index", 1.0),
            M2=params.get("M2", 1.0),
        )
    if kind == OpticsType.Lens:
        return LensParams(params["focal"])
    if kind == OpticsType.CurvedMirror:
        return CurvedMirrorParams(params["curvature_radius"])
    if kind == OpticsType.FlatInterface:
        return InterfaceParams(params["index_ratio"])
    if kind == OpticsType.CurvedInterface:
        return CurvedInterfaceParams(params["index_ratio"], params["surface_radius"])
    if kind == OpticsType.DielectricSlab:
        return DielectricSlabParams(params["index_ratio"])
    if kind == OpticsType.GenericABCD:
        return ABCDParams(params["A"], params["B"], params["C"], params["D"])
    return EmptyParams()


class OpticsBench:
    """光学平台

    参数:
        wavelength: 波长（m），默认 461 nm
        config: 优化器配置

    属性:
        left_boundary, right_boundary: 优化搜索区间（m）
        target_beam: 目标光束
        cavity: 谐振腔

    示例:
        >>> bench = OpticsBench()
        >>> lens = bench.create_optics(OpticsType.Lens, 0.12, focal=0.021)
        >>> index = bench.add_optics(lens)
        >>> bench.beam(index).waist()  # doctest: +SKIP
    """

    def __init__(
        self,
        wavelength: float = DEFAULT_WAVELENGTH,
        config: Optional[OptimizerConfig] = None,
    ) -> None:
        self._wavelength = wavelength
        self.config = config or OptimizerConfig()
        self.left_boundary = DEFAULT_LEFT_BOUNDARY
        self.right_boundary = DEFAULT_RIGHT_BOUNDARY
        self.target_beam = TargetBeam(wavelength=wavelength)
        self._optics: List[Optics] = []
        self._beams: List[Beam] = []
        self._registry: Dict[int, Optics] = {}
        self._sensitivity: List[float] = []
        self._fits: List[Fit] = []
        self._listeners: List[BenchListener] = []
        self._last_id = 0
        self._name_counters: Dict[OpticsType, int] = {kind: 0 for kind in OpticsType}
        self.cavity = Cavity(self)

        source = self.create_optics(
            OpticsType.CreateBeam,
            DEFAULT_INPUT_POSITION,
            name="w0",
            waist=DEFAULT_INPUT_WAIST,
        )
        source.absolute_lock = True
        self._insert(0, source)
        self.compute_beams(0)

    # ========================================================================
    # 监听者
    # ========================================================================

    def register_listener(self, listener: BenchListener) -> None:
        """注册监听者，并为已有元件补发 optics_added 通知"""
        self._listeners.append(listener)
        for index in range(self.n_optics):
            listener.optics_added(index)

    def unregister_listener(self, listener: BenchListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_change(self, start: int, end: int) -> None:
        for listener in self._listeners:
            listener.data_changed(start, end)

    # ========================================================================
    # 元件构造与查询
    # ========================================================================

    def _name_in_use(self, name: str) -> bool:
        return any(optics.name == name for optics in self._optics)

    def _next_name(self, kind: OpticsType) -> str:
        while True:
            self._name_counters[kind] += 1
            name = f"{NAME_PREFIXES[kind]}{self._name_counters[kind]}"
            if not self._name_in_use(name):
                return name

    def create_optics(
        self,
        kind: OpticsType,
        position: float,
        name: Optional[str] = None,
        **params: float,
    ) -> Optics:
        """构造一个元件（尚未加入平台）

        参数:
            kind: 元件种类
            position: 位置（m）
            name: 名称，默认自动生成 <前缀><序号>
            **params: 种类参数，例如 Lens 需要 focal，
                DielectricSlab 需要 index_ratio 和 width

        返回:
            新元件，带有平台内唯一的 id

        异常:
            OpticsConfigurationError: 种类未知、缺少参数、参数多余或参数取值非法
        """
        if not isinstance(kind, OpticsType):
            raise OpticsConfigurationError(f"未知的元件类型：{kind!r}")

        required = REQUIRED_PARAMS[kind]
        allowed = set(required) | set(OPTIONAL_PARAMS.get(kind, ()))
        missing = [key for key in required if key not in params]
        if missing:
            raise OpticsConfigurationError(
                f"元件类型 '{kind.name}' 缺少参数：{', '.join(missing)}"
            )
        unexpected = sorted(set(params) - allowed)
        if unexpected:
            raise OpticsConfigurationError(
                f"元件类型 '{kind.name}' 不接受参数：{', '.join(unexpected)}"
            )
        for key, value in params.items():
            check, requirement = _PARAM_CHECKS.get(key, (None, ""))
            if check is not None and not check(value):
                raise OpticsConfigurationError(
                    f"元件类型 '{kind.name}' 的参数 '{key}' {requirement}，实际为 {value}"
                )

        self._last_id += 1
        optics = Optics(
            kind,
            _build_params(kind, params),
            position=position,
            name=name if name is not None else self._next_name(kind),
            id=self._last_id,
        )
        optics.set_width(params.get("width", 0.0))
        return optics

    @property
    def n_optics(self) -> int:
        return len(self._optics)

    def optics(self, index: int) -> Optics:
        return self._optics[index]

    def optics_list(self) -> List[Optics]:
        return list(self._optics)

    def optics_by_id(self, optics_id: int) -> Optional[Optics]:
        return self._registry.get(optics_id)

    def optics_by_name(self, name: str) -> Optional[Optics]:
        for optics in self._optics:
            if optics.name == name:
                return optics
        return None

    def optics_index(self, optics: Optics) -> int:
        """元件在平台中的下标，不在平台中时返回 -1"""
        for index, element in enumerate(self._optics):
            if element.id == optics.id:
                return index
        return -1

    # ========================================================================
    # 元件增删与移动
    # ========================================================================

    def _insert(self, index: int, optics: Optics) -> None:
        self._optics.insert(index, optics)
        self._beams.insert(index, Beam())
        self._registry[optics.id] = optics
        for listener in self._listeners:
            listener.optics_added(index)

    def add_optics(self, optics: Optics) -> int:
        """按位置插入元件，返回其下标

        名称为空或与已有元件重复时自动重新命名。

        异常:
            OpticsConfigurationError: 试图加入第二个光源，或元件已在平台中
        """
        if optics.type == OpticsType.CreateBeam:
            raise OpticsConfigurationError("平台只能有一个 CreateBeam 光源")
        if self._registry.get(optics.id) is optics:
            raise OpticsConfigurationError(f"元件 '{optics.name}' 已在平台中")
        # 其他平台创建的元件可能与本平台的 id 冲突
        if optics.id in self._registry or optics.id < 0 or optics.id > self._last_id:
            self._last_id += 1
            optics.id = self._last_id
        if not optics.name or self._name_in_use(optics.name):
            optics.name = self._next_name(optics.type)

        positions = [element.position for element in self._optics[1:]]
        index = 1 + bisect.bisect_right(positions, optics.position)
        self._insert(index, optics)
        self.compute_beams(index)
        return index

    def remove_optics(self, index: int, count: int = 1) -> bool:
        """删除从 index 开始的 count 个元件（光源不可删除）"""
        if index < 1 or count < 1 or index + count > self.n_optics:
            return False

        removed = self._optics[index:index + count]
        for optics in removed:
            locking.detach(self._registry, optics)
        for optics in removed:
            self.cavity.remove_optics(optics.id)
            del self._registry[optics.id]
        del self._optics[index:index + count]
        del self._beams[index:index + count]

        for listener in self._listeners:
            listener.optics_removed(index, count)
        self.compute_beams(index)
        return True

    def _sort(self) -> None:
        self._optics = sort_optics(self._optics)

    def set_optics_position(
        self, index: int, position: float, respect_absolute_lock: bool = True
    ) -> int:
        """考虑锁定关系移动元件，返回该元件排序后的新下标"""
        optics = self._optics[index]
        tree_ids = {member.id for member in locking.lock_tree(self._registry, optics)}
        old_indices = [i for i, element in enumerate(self._optics) if element.id in tree_ids]
        if not locking.set_position_check_lock(
            self._registry, optics, position, respect_absolute_lock
        ):
            return index

        self._sort()
        new_indices = [i for i, element in enumerate(self._optics) if element.id in tree_ids]
        self.compute_beams(min(old_indices + new_indices))
        return self.optics_index(optics)

    def set_optics_name(self, index: int, name: str) -> bool:
        """重命名元件，名称已被使用时返回 False"""
        if not name or self._name_in_use(name):
            return False
        self._optics[index].name = name
        self._emit_change(0, self.n_optics - 1)
        return True

    # ========================================================================
    # 锁定
    # ========================================================================

    def lock_to(self, index: int, parent_name: str) -> bool:
        """把元件相对锁定到名为 parent_name 的元件"""
        parent = self.optics_by_name(parent_name)
        if parent is None:
            return False
        locked = locking.relative_lock_to(self._registry, self._optics[index], parent)
        if locked:
            self._emit_change(0, self.n_optics - 1)
        return locked

    def relative_unlock(self, index: int) -> bool:
        unlocked = locking.relative_unlock(self._registry, self._optics[index])
        if unlocked:
            self._emit_change(0, self.n_optics - 1)
        return unlocked

    def set_absolute_lock(self, index: int, absolute_lock: bool) -> None:
        locking.set_absolute_lock(self._registry, self._optics[index], absolute_lock)
        self._emit_change(0, self.n_optics - 1)

    def lock_root(self, index: int) -> Optics:
        return locking.lock_root(self._registry, self._optics[index])

    # ========================================================================
    # 元件属性修改
    # ========================================================================

    def optics_for_property_change(self, index: int) -> Optics:
        """返回可直接修改参数的元件，修改后必须调用 optics_property_changed()

        位置必须通过 set_optics_position() 修改。
        """
        return self._optics[index]

    def optics_property_changed(self, index: int) -> None:
        self.compute_beams(index)

    # ========================================================================
    # 波长、区间与目标光束
    # ========================================================================

    @property
    def wavelength(self) -> float:
        return self._wavelength

    def set_wavelength(self, wavelength: float) -> None:
        """设置波长（非正值被忽略），目标光束的波长随之改变"""
        if wavelength <= 0.0:
            return
        self._wavelength = wavelength
        self.target_beam.wavelength = wavelength
        for listener in self._listeners:
            listener.wavelength_changed()
            listener.target_beam_changed()
        self.compute_beams(0)

    def set_left_boundary(self, position: float) -> None:
        self.left_boundary = position
        self._emit_change(0, self.n_optics - 1)

    def set_right_boundary(self, position: float) -> None:
        self.right_boundary = position
        self._emit_change(0, self.n_optics - 1)

    def set_target_beam(self, target: Beam) -> None:
        """设置目标光束；普通 Beam 以默认判据转换为 TargetBeam"""
        if isinstance(target, TargetBeam):
            self.target_beam = target.copy()
        else:
            self.target_beam = TargetBeam.from_beam(target)
        for listener in self._listeners:
            listener.target_beam_changed()

    # ========================================================================
    # 光束
    # ========================================================================

    def beam(self, index: int) -> Beam:
        """optics[index] 之后的光束（副本）"""
        return self._beams[index].copy()

    def beams(self) -> List[Beam]:
        return [beam.copy() for beam in self._beams]

    def set_input_beam(self, beam: Beam) -> None:
        """设置光源光束，光源连同其锁定树一起移动到新的束腰位置"""
        source = self._optics[0]
        source.params.set_beam(beam)
        locking.set_position_check_lock(
            self._registry, source, beam.waist_position(Orientation.Horizontal), False
        )
        self._sort()
        self.compute_beams(0)

    def set_beam(self, beam: Beam, index: int) -> None:
        """直接设置 optics[index] 之后的光束（反向模式传播）"""
        self._beams[index] = beam.copy()
        self.compute_beams(index, backward=True)

    def compute_beams(self, changed_index: int = 0, backward: bool = False) -> None:
        """重新计算光束

        参数:
            changed_index: 第一个发生变化的元件下标
            backward: 反向模式，以 beams[changed_index] 为种子反推光源
        """
        n = self.n_optics
        if n == 0:
            return

        start = changed_index
        if backward:
            beam = self._beams[changed_index]
            for i in range(changed_index, 0, -1):
                beam = self._optics[i].antecedent(beam)
            source = self._optics[0]
            source.params.set_beam(beam)
            source.position = beam.waist_position(Orientation.Horizontal)
            start = 0

        for i in range(start, n):
            previous = self._beams[i - 1] if i > 0 else Beam(wavelength=self._wavelength)
            if i > 0:
                previous.stop = self._optics[i].position
            self._beams[i] = self._optics[i].image(previous)

        self._sensitivity = sensitivity(
            self._optics, self._wavelength, self.config.sensitivity_step
        )
        self.cavity.compute_matrix()
        self._emit_change(min(start, changed_index), n - 1)

    def sensitivity(self, index: int) -> float:
        """元件位置灵敏度，重叠积分约为 1 - s·δ²"""
        return self._sensitivity[index]

    # ========================================================================
    # 拟合
    # ========================================================================

    @property
    def n_fit(self) -> int:
        return len(self._fits)

    def fit(self, index: int) -> Fit:
        return self._fits[index]

    def add_fit(self, name: Optional[str] = None) -> int:
        """新增一组拟合数据，返回其下标"""
        index = len(self._fits)
        self._fits.append(Fit(name if name is not None else f"Fit {index + 1}"))
        self.notify_fit_change(index)
        return index

    def remove_fit(self, index: int) -> bool:
        if not 0 <= index < len(self._fits):
            return False
        del self._fits[index]
        self.notify_fit_change(index)
        return True

    def notify_fit_change(self, index: int) -> None:
        for listener in self._listeners:
            listener.fit_data_changed(index)

    # ========================================================================
    # 优化
    # ========================================================================

    def _optimizable(self) -> bool:
        return self.target_beam.valid and self.left_boundary < self.right_boundary

    def _apply_positions(self, positions: Dict[int, float]) -> None:
        for optics_id, position in positions.items():
            self._registry[optics_id].position = position
        self._sort()
        self.compute_beams(0)

    def optics_function(self) -> OpticsFunction:
        return OpticsFunction(self._optics, self._wavelength)

    def magic_waist(
        self,
        config: Optional[OptimizerConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> bool:
        """随机搜索使出射光束满足目标光束判据的元件位置

        失败时平台状态不变。
        """
        if not self._optimizable():
            return False
        found, positions = magic_waist(
            self.optics_function(),
            self.target_beam,
            self.left_boundary,
            self.right_boundary,
            config or self.config,
            rng,
        )
        if found:
            self._apply_positions(positions)
        return found

    def local_optimum(self, config: Optional[OptimizerConfig] = None) -> bool:
        """从当前位置出发局部优化，失败时平台状态不变"""
        if not self._optimizable():
            return False
        success, positions = local_optimum(
            self.optics_function(),
            self.target_beam,
            self.left_boundary,
            self.right_boundary,
            config or self.config,
        )
        if success:
            self._apply_positions(positions)
        return success

    # ========================================================================
    # 谐振腔
    # ========================================================================

    def is_cavity_stable(self) -> bool:
        return self.cavity.is_stable()

    def cavity_eigen_beam(self, index: int) -> Optional[Beam]:
        """谐振腔本征光束传播到 optics[index] 之后的状态

        腔不稳定或 index 不在腔内时返回 None。
        """
        if not self.cavity.is_stable():
            return None
        elements = self.cavity.elements()
        first = self.optics_index(elements[0])
        last = self.optics_index(elements[-1])
        ring_end = self.cavity.ring_cavity and last > first and index >= last
        if index < first or ring_end or index > last:
            return None
        beam = self.cavity.eigen_mode(self._wavelength)
        if beam is None:
            return None
        for i in range(first + 1, index + 1):
            beam = self._optics[i].image(beam)
        return beam
