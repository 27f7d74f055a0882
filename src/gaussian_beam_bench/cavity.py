"""
光学谐振腔模块

谐振腔由平台上的一组 ABCD 元件组成（只保存元件 id，不拥有元件）。
元件按位置排序后依次相乘得到往返矩阵，参考面位于第一个元件之后。

设 E0..Ek 为按位置排序的元件，Fi 为 E(i-1) 与 Ei 之间的自由空间：

- 环形腔（ring_cavity=True）：
      M = E0·F_close·Ek·Fk···E1·F1
  其中 F_close 为长度 closing_length 的回程自由空间；未设置 closing_length 时
  取最后一个元件到第一个元件出口的距离（最后一个元件的 position 减去
  第一个元件的 end_position）
- 线形腔（ring_cavity=False），光束沿原路返回：
      M = E0·F1·E1···E(k-1)·Fk · Ek·Fk···E1·F1

稳定性判据：
- 判据 1：|(A + D)/2| < 1
- 判据 2：(D - A)² + 4·B·C < 0
两者对物理矩阵等价；只有一个成立时发出 CavityConsistencyWarning，视为不稳定。
空腔不稳定；单个元件（例如保存了完整往返矩阵的 GenericABCD）按判据判断。

作者：高斯光束平台项目
"""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING, List, Optional, Set
import numpy as np
from numpy.typing import NDArray

from .beam import Beam
from .exceptions import CavityConsistencyWarning
from .optics import (
    Optics,
    compose,
    eigen_mode,
    free_space_matrix,
    matrix,
    stability_criterion1,
    stability_criterion2,
)

if TYPE_CHECKING:
    from .bench import OpticsBench


class Cavity:
    """光学谐振腔

    参数:
        bench: 所属光学平台
        ring_cavity: 是否为环形腔，默认 True
        closing_length: 环形腔回程自由空间长度（m），默认 None（由元件位置决定）

    示例:
        >>> bench = OpticsBench()
        >>> m1 = bench.add_optics(bench.create_optics(OpticsType.CurvedMirror, 0.10, curvature_radius=0.1))
        >>> m2 = bench.add_optics(bench.create_optics(OpticsType.CurvedMirror, 0.15, curvature_radius=0.1))
        >>> bench.cavity.ring_cavity = False
        >>> bench.cavity.add_optics(bench.optics(m1).id)
        >>> bench.cavity.add_optics(bench.optics(m2).id)
        >>> bench.cavity.is_stable()
        True
    """

    def __init__(
        self,
        bench: "OpticsBench",
        ring_cavity: bool = True,
        closing_length: Optional[float] = None,
    ) -> None:
        self._bench = bench
        self._ids: Set[int] = set()
        self._ring_cavity = ring_cavity
        self._closing_length = closing_length
        self._matrix: NDArray = np.eye(2)

    @property
    def ring_cavity(self) -> bool:
        return self._ring_cavity

    @ring_cavity.setter
    def ring_cavity(self, ring_cavity: bool) -> None:
        self._ring_cavity = ring_cavity
        self.compute_matrix()

    @property
    def closing_length(self) -> Optional[float]:
        """用户设置的回程长度，None 表示由元件位置决定"""
        return self._closing_length

    @closing_length.setter
    def closing_length(self, closing_length: Optional[float]) -> None:
        if closing_length is None or closing_length >= 0.0:
            self._closing_length = closing_length
            self.compute_matrix()

    @property
    def matrix(self) -> NDArray:
        """往返矩阵（只读副本）"""
        return self._matrix.copy()

    @property
    def optics_ids(self) -> Set[int]:
        return set(self._ids)

    def contains(self, optics_id: int) -> bool:
        return optics_id in self._ids

    def add_optics(self, optics_id: int) -> None:
        """加入元件（光源元件被忽略）"""
        optics = self._bench.optics_by_id(optics_id)
        if optics is None or not optics.is_abcd:
            return
        self._ids.add(optics_id)
        self.compute_matrix()

    def remove_optics(self, optics_id: int) -> None:
        self._ids.discard(optics_id)
        self.compute_matrix()

    def elements(self) -> List[Optics]:
        """按位置排序的腔内元件"""
        elements = [self._bench.optics_by_id(optics_id) for optics_id in self._ids]
        return sorted(
            (element for element in elements if element is not None),
            key=lambda element: element.position,
        )

    def compute_matrix(self) -> NDArray:
        """重新计算往返矩阵"""
        elements = self.elements()
        if not elements:
            self._matrix = np.eye(2)
            return self.matrix

        forward = np.eye(2)
        for previous, current in zip(elements, elements[1:]):
            gap = free_space_matrix(current.position - previous.end_position)
            forward = compose(matrix(current), gap, forward)

        if self._ring_cavity:
            closing = self._closing_length
            if closing is None:
                closing = elements[-1].position - elements[0].end_position
            self._matrix = compose(matrix(elements[0]), free_space_matrix(closing), forward)
        else:
            backward = np.eye(2)
            for previous, current in reversed(list(zip(elements, elements[1:]))):
                gap = free_space_matrix(current.position - previous.end_position)
                backward = compose(matrix(previous), gap, backward)
            self._matrix = compose(backward, forward)
        return self.matrix

    def is_stable(self) -> bool:
        """腔是否稳定（空腔不稳定）"""
        if not self._ids:
            return False
        criterion1 = stability_criterion1(self._matrix)
        criterion2 = stability_criterion2(self._matrix)
        if criterion1 != criterion2:
            warnings.warn(
                f"腔稳定性判据不一致：判据 1 = {criterion1}，判据 2 = {criterion2}，"
                f"往返矩阵 {self._matrix.tolist()}",
                CavityConsistencyWarning,
            )
            return False
        return criterion1

    def reference_position(self) -> Optional[float]:
        """参考面位置（第一个元件出口）"""
        elements = self.elements()
        if not elements:
            return None
        return elements[0].end_position

    def eigen_mode(self, wavelength: float) -> Optional[Beam]:
        """参考面处的本征光束，判据 2 不成立时返回 None"""
        position = self.reference_position()
        if position is None:
            return None
        return eigen_mode(self._matrix, wavelength, position)
