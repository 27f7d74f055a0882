"""
元件锁定模块

元件之间的锁定关系构成一片森林：每个元件至多有一个相对锁定父元件，
可以有任意多个子元件；绝对锁定的元件（及其整棵锁定树）不可移动。
绝对锁定与相对锁定父元件互斥，设置其中一个会清除另一个。

元件之间只通过 id 相互引用，本模块的函数都作用于 id -> Optics 的映射
（通常是平台的元件表），不持有对象引用。

作者：高斯光束平台项目
"""

from __future__ import annotations

from typing import Iterator, List, Mapping

from .optics import Optics


Registry = Mapping[int, Optics]


def lock_root(registry: Registry, optics: Optics) -> Optics:
    """锁定树的根元件"""
    root = optics
    while root.lock_parent is not None:
        root = registry[root.lock_parent]
    return root


def lock_subtree(registry: Registry, optics: Optics) -> Iterator[Optics]:
    """以 optics 为根的子树（含自身），前序遍历"""
    yield optics
    for child_id in optics.lock_children:
        yield from lock_subtree(registry, registry[child_id])


def lock_tree(registry: Registry, optics: Optics) -> List[Optics]:
    """optics 所在整棵锁定树的所有元件"""
    return list(lock_subtree(registry, lock_root(registry, optics)))


def is_lock_descendant(registry: Registry, ancestor: Optics, optics: Optics) -> bool:
    """optics 是否为 ancestor 的后代（或就是 ancestor 本身）"""
    current = optics
    while True:
        if current.id == ancestor.id:
            return True
        if current.lock_parent is None:
            return False
        current = registry[current.lock_parent]


def relative_locked_to(registry: Registry, optics1: Optics, optics2: Optics) -> bool:
    """两个元件是否属于同一棵锁定树"""
    return lock_root(registry, optics1).id == lock_root(registry, optics2).id


def lock_tree_absolute_lock(registry: Registry, optics: Optics) -> bool:
    """元件所在锁定树是否被绝对锁定"""
    return lock_root(registry, optics).absolute_lock


def relative_unlock(registry: Registry, optics: Optics) -> bool:
    """解除与父元件的相对锁定，没有父元件时返回 False"""
    if optics.lock_parent is None:
        return False
    parent = registry[optics.lock_parent]
    parent.lock_children.remove(optics.id)
    optics.lock_parent = None
    return True


def relative_lock_to(registry: Registry, optics: Optics, parent: Optics) -> bool:
    """将 optics 相对锁定到 parent

    若 parent 是 optics 本身或其后代（会形成环），返回 False 且不做任何修改。
    成功时先解除原有的父元件，并清除 optics 的绝对锁定。
    """
    if is_lock_descendant(registry, optics, parent):
        return False
    relative_unlock(registry, optics)
    optics.absolute_lock = False
    optics.lock_parent = parent.id
    parent.lock_children.append(optics.id)
    return True


def set_absolute_lock(registry: Registry, optics: Optics, absolute_lock: bool) -> None:
    """设置绝对锁定，设为 True 时解除相对锁定"""
    if absolute_lock:
        relative_unlock(registry, optics)
    optics.absolute_lock = absolute_lock


def set_position_check_lock(
    registry: Registry,
    optics: Optics,
    position: float,
    respect_absolute_lock: bool = True,
) -> bool:
    """考虑锁定关系移动元件

    计算 optics 的位移量，并把整棵锁定树（从根开始）平移同样的量。
    锁定树被绝对锁定且 respect_absolute_lock 为 True 时不做任何修改。

    返回:
        是否发生了移动
    """
    root = lock_root(registry, optics)
    if root.absolute_lock and respect_absolute_lock:
        return False
    delta = position - optics.position
    for member in lock_subtree(registry, root):
        if member.id != optics.id:
            member.position += delta
    optics.position = position
    return True


def detach(registry: Registry, optics: Optics) -> None:
    """把元件从锁定森林中摘除：子元件成为根，父元件忘记该元件"""
    relative_unlock(registry, optics)
    for child_id in optics.lock_children:
        registry[child_id].lock_parent = None
    optics.lock_children = []
