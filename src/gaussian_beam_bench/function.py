"""
光学优化模块

本模块提供光学平台的目标函数和元件位置优化：

- propagate()：沿元件序列传播光束
- OpticsFunction：以可移动元件位置为自变量的目标函数，
  作用于平台元件的深拷贝，不修改平台本身
- magic_waist()：有界随机搜索，寻找使出射光束满足目标判据的元件位置
- local_optimum()：从当前位置出发的有界局部优化
- sensitivity()：各元件位置对重叠积分的灵敏度（重叠积分的曲率）

可移动元件是未被绝对锁定的锁定树根元件；移动根元件时整棵锁定树随之平移。

作者：高斯光束平台项目
"""

from __future__ import annotations

import copy
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize

from .beam import Beam, TargetBeam, overlap
from .exceptions import OptimizationWarning
from .locking import set_position_check_lock
from .optics import Optics


@dataclass
class OptimizerConfig:
    """优化器配置

    参数:
        max_tries: 随机搜索的最大尝试次数，默认 500000
        sensitivity_step: 计算灵敏度时的位置有限差分步长（m），默认 1e-6
        local_max_iterations: 局部优化的最大迭代次数，默认 200
        local_tolerance: 局部优化的收敛容差，默认 1e-12
    """
    max_tries: int = 500_000
    sensitivity_step: float = 1e-6
    local_max_iterations: int = 200
    local_tolerance: float = 1e-12


def propagate(optics: Sequence[Optics], wavelength: float) -> List[Beam]:
    """依次计算每个元件之后的光束

    第一个元件（光源）的入射光束是只有波长的空光束。
    """
    beams = []
    beam = Beam(wavelength=wavelength)
    for element in optics:
        beam = element.image(beam)
        beams.append(beam)
    return beams


def sort_optics(optics: Sequence[Optics]) -> List[Optics]:
    """第 0 个元件（光源）保持不动，其余按位置排序"""
    if not optics:
        return []
    return [optics[0]] + sorted(optics[1:], key=lambda element: element.position)


def is_success(beam: Beam, target: TargetBeam) -> bool:
    """出射光束是否满足目标光束判据

    重叠判据：overlap(beam, target) > min_overlap
    容差判据：|w - wt| < waist_tolerance·wt 且 |zw - zt| < position_tolerance·zRt
    """
    if target.overlap_criterion:
        return overlap(beam, target) > target.min_overlap
    return (
        abs(beam.waist() - target.waist()) < target.waist_tolerance * target.waist()
        and abs(beam.waist_position() - target.waist_position())
        < target.position_tolerance * target.rayleigh()
    )


class OpticsFunction:
    """可移动元件位置 -> 出射光束 的目标函数

    参数:
        optics: 平台元件序列（将被深拷贝）
        wavelength: 波长（m）

    属性:
        movable_ids: 可移动元件（未绝对锁定的锁定树根）的 id 列表，
            自变量 x 的各分量依次对应这些元件的位置
    """

    def __init__(self, optics: Sequence[Optics], wavelength: float) -> None:
        self._optics = copy.deepcopy(list(optics))
        self._registry = {element.id: element for element in self._optics}
        self.wavelength = wavelength
        self.movable_ids = [
            element.id for element in self._optics
            if not element.absolute_lock and element.lock_parent is None
        ]

    @property
    def optics(self) -> List[Optics]:
        return self._optics

    def current_position(self) -> NDArray:
        return np.array([self._registry[i].position for i in self.movable_ids], dtype=float)

    def set_position(self, x: NDArray) -> None:
        for optics_id, position in zip(self.movable_ids, x):
            set_position_check_lock(self._registry, self._registry[optics_id], float(position))
        self._optics = sort_optics(self._optics)

    def positions(self) -> Dict[int, float]:
        """所有元件的位置（id -> position），包括随根元件移动的子元件"""
        return {element.id: element.position for element in self._optics}

    def beam(self, x: NDArray) -> Beam:
        """元件位于 x 时的出射光束"""
        self.set_position(x)
        return propagate(self._optics, self.wavelength)[-1]

    def overlap(self, x: NDArray, target: TargetBeam) -> float:
        return overlap(self.beam(x), target)

    def error(self, x: NDArray, target: TargetBeam) -> float:
        """待最小化的误差：重叠判据下为 1 - η，容差判据下为归一化的平方偏差"""
        beam = self.beam(x)
        if target.overlap_criterion:
            return 1.0 - overlap(beam, target)
        waist_error = (beam.waist() - target.waist()) / target.waist()
        position_error = (beam.waist_position() - target.waist_position()) / target.rayleigh()
        return waist_error ** 2 + position_error ** 2

    def is_success(self, beam: Beam, target: TargetBeam) -> bool:
        return is_success(beam, target)

    def sensitivity(self, step: float) -> List[float]:
        """当前位置下各元件的灵敏度"""
        return sensitivity(self._optics, self.wavelength, step)


def _refine(
    function: OpticsFunction,
    target: TargetBeam,
    x0: NDArray,
    left: float,
    right: float,
    config: OptimizerConfig,
) -> Tuple[bool, NDArray]:
    """L-BFGS-B 有界局部优化，返回 (是否收敛且不劣于起点, 最优位置)"""
    start_error = function.error(x0, target)
    result = minimize(
        function.error,
        x0,
        args=(target,),
        method="L-BFGS-B",
        bounds=[(left, right)] * len(x0),
        options={
            "maxiter": config.local_max_iterations,
            "ftol": config.local_tolerance,
        },
    )
    x = np.asarray(result.x, dtype=float)
    success = bool(result.success) and function.error(x, target) <= start_error
    return success, x


def magic_waist(
    function: OpticsFunction,
    target: TargetBeam,
    left: float,
    right: float,
    config: Optional[OptimizerConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[bool, Optional[Dict[int, float]]]:
    """随机搜索满足目标判据的元件位置

    每次尝试先随机选取一个可移动元件，再在 [left, right] 内均匀随机选取
    其位置，直到出射光束满足判据或尝试次数用尽。找到解之后总是在该解
    附近做一次局部优化，优化后的解仍满足判据时才采用。

    参数:
        function: 目标函数
        target: 目标光束
        left, right: 搜索区间（m）
        config: 优化器配置
        rng: 随机数生成器，默认 np.random.default_rng()

    返回:
        (是否找到, 所有元件的位置 id -> position)；未找到时位置为 None
    """
    config = config or OptimizerConfig()
    rng = rng if rng is not None else np.random.default_rng()
    n_movable = len(function.movable_ids)
    if n_movable == 0:
        return False, None

    x = function.current_position()
    found = False
    for _ in range(config.max_tries):
        x[rng.integers(n_movable)] = rng.uniform(left, right)
        if is_success(function.beam(x), target):
            found = True
            break

    if not found:
        warnings.warn(
            f"在 {config.max_tries} 次尝试内未找到满足目标光束判据的元件位置",
            OptimizationWarning,
        )
        return False, None

    refined, x_refined = _refine(function, target, x.copy(), left, right, config)
    if refined and is_success(function.beam(x_refined), target):
        x = x_refined
    function.set_position(x)
    return True, function.positions()


def local_optimum(
    function: OpticsFunction,
    target: TargetBeam,
    left: float,
    right: float,
    config: Optional[OptimizerConfig] = None,
) -> Tuple[bool, Optional[Dict[int, float]]]:
    """从当前位置出发做局部优化

    返回:
        (是否成功, 所有元件的位置)；失败时位置为 None
    """
    config = config or OptimizerConfig()
    if not function.movable_ids:
        return False, None
    success, x = _refine(function, target, function.current_position(), left, right, config)
    if not success:
        return False, None
    function.set_position(x)
    return True, function.positions()


def sensitivity(optics: Sequence[Optics], wavelength: float, step: float) -> List[float]:
    """各元件位置的灵敏度 s = -½·d²η/dx²

    η 为出射光束与移动元件 ±step 后出射光束的重叠积分，
    使得 η ≈ 1 - s·δ²。移动时不考虑锁定关系，也不重新排序。
    """
    if not optics:
        return []
    reference = propagate(optics, wavelength)[-1]
    result = []
    for element in optics:
        initial = element.position
        try:
            element.position = initial + step
            eta_plus = overlap(reference, propagate(optics, wavelength)[-1])
            element.position = initial - step
            eta_minus = overlap(reference, propagate(optics, wavelength)[-1])
        finally:
            element.position = initial
        result.append((2.0 - eta_plus - eta_minus) / (2.0 * step * step))
    return result
