"""
元件锁定模块测试
"""

import pytest

from gaussian_beam_bench import locking
from gaussian_beam_bench.optics import LensParams, Optics, OpticsType


@pytest.fixture
def registry():
    """四个透镜，id 1..4，位置 0.1..0.4"""
    return {
        i: Optics(OpticsType.Lens, LensParams(0.1), position=0.1 * i, name=f"L{i}", id=i)
        for i in range(1, 5)
    }


class TestRelativeLock:

    def test_lock_sets_parent_and_child(self, registry):
        assert locking.relative_lock_to(registry, registry[2], registry[1])
        assert registry[2].lock_parent == 1
        assert registry[1].lock_children == [2]

    def test_lock_cycle_rejected(self, registry):
        """测试 A 锁定到 B 后，B 锁定到 A 失败且不修改状态"""
        assert locking.relative_lock_to(registry, registry[1], registry[2])
        assert not locking.relative_lock_to(registry, registry[2], registry[1])
        assert registry[2].lock_parent is None
        assert registry[1].lock_parent == 2
        assert registry[1].lock_children == []

    def test_indirect_cycle_rejected(self, registry):
        locking.relative_lock_to(registry, registry[2], registry[1])
        locking.relative_lock_to(registry, registry[3], registry[2])
        assert not locking.relative_lock_to(registry, registry[1], registry[3])
        assert registry[1].lock_parent is None

    def test_self_lock_rejected(self, registry):
        assert not locking.relative_lock_to(registry, registry[1], registry[1])

    def test_relock_moves_to_new_parent(self, registry):
        locking.relative_lock_to(registry, registry[3], registry[1])
        locking.relative_lock_to(registry, registry[3], registry[2])
        assert registry[1].lock_children == []
        assert registry[2].lock_children == [3]

    def test_relative_lock_clears_absolute_lock(self, registry):
        registry[2].absolute_lock = True
        locking.relative_lock_to(registry, registry[2], registry[1])
        assert not registry[2].absolute_lock

    def test_absolute_lock_clears_relative_lock(self, registry):
        locking.relative_lock_to(registry, registry[2], registry[1])
        locking.set_absolute_lock(registry, registry[2], True)
        assert registry[2].lock_parent is None
        assert registry[1].lock_children == []

    def test_relative_unlock_without_parent(self, registry):
        assert not locking.relative_unlock(registry, registry[1])

    def test_root_and_tree(self, registry):
        locking.relative_lock_to(registry, registry[2], registry[1])
        locking.relative_lock_to(registry, registry[3], registry[2])
        assert locking.lock_root(registry, registry[3]).id == 1
        assert {o.id for o in locking.lock_tree(registry, registry[2])} == {1, 2, 3}
        assert locking.relative_locked_to(registry, registry[1], registry[3])
        assert not locking.relative_locked_to(registry, registry[1], registry[4])


class TestPositionCheckLock:

    def test_moves_whole_tree(self, registry):
        """测试移动子元件时整棵树平移相同距离"""
        locking.relative_lock_to(registry, registry[2], registry[1])
        locking.relative_lock_to(registry, registry[4], registry[1])
        assert locking.set_position_check_lock(registry, registry[2], 0.5)
        assert registry[2].position == 0.5
        assert registry[1].position == pytest.approx(0.4)
        assert registry[4].position == pytest.approx(0.7)
        assert registry[3].position == pytest.approx(0.3)

    def test_absolute_lock_respected(self, registry):
        locking.relative_lock_to(registry, registry[2], registry[1])
        registry[1].absolute_lock = True
        assert not locking.set_position_check_lock(registry, registry[2], 0.5)
        assert registry[2].position == pytest.approx(0.2)

    def test_absolute_lock_overridden(self, registry):
        registry[1].absolute_lock = True
        assert locking.set_position_check_lock(registry, registry[1], 0.05, False)
        assert registry[1].position == 0.05


class TestDetach:

    def test_children_become_roots(self, registry):
        locking.relative_lock_to(registry, registry[2], registry[1])
        locking.relative_lock_to(registry, registry[3], registry[2])
        locking.detach(registry, registry[2])
        assert registry[1].lock_children == []
        assert registry[3].lock_parent is None
        assert registry[2].lock_children == []
        assert locking.lock_root(registry, registry[3]).id == 3
