"""
光学平台属性基测试

对平台执行随机的编辑序列（添加、移动、删除、锁定元件），验证：
- 每次编辑后 beams[i] == optics[i].image(beams[i-1])
- 元件（光源除外）始终按位置排序
- 移动锁定树中的任一元件时，树内相对位置保持不变
"""

from numpy.testing import assert_allclose
from hypothesis import given, strategies as st, settings

from gaussian_beam_bench import OpticsBench, OpticsType
from gaussian_beam_bench.function import propagate


# ============================================================================
# 测试策略定义
# ============================================================================

position_strategy = st.floats(min_value=0.0, max_value=0.6, allow_nan=False)
focal_strategy = st.floats(min_value=0.02, max_value=0.5)
fraction_strategy = st.floats(min_value=0.0, max_value=1.0, exclude_max=True)

add_operation = st.tuples(st.just("add"), position_strategy, focal_strategy)
move_operation = st.tuples(st.just("move"), fraction_strategy, position_strategy)
remove_operation = st.tuples(st.just("remove"), fraction_strategy)
lock_operation = st.tuples(st.just("lock"), fraction_strategy, fraction_strategy)

operations_strategy = st.lists(
    st.one_of(add_operation, move_operation, remove_operation, lock_operation),
    min_size=1,
    max_size=12,
)


def pick(bench, fraction):
    """把 [0, 1) 内的数映射为光源之外的元件下标，没有元件时返回 None"""
    if bench.n_optics < 2:
        return None
    return 1 + int(fraction * (bench.n_optics - 1))


def apply(bench, operation):
    kind = operation[0]
    if kind == "add":
        bench.add_optics(bench.create_optics(OpticsType.Lens, operation[1], focal=operation[2]))
        return
    index = pick(bench, operation[1])
    if index is None:
        return
    if kind == "move":
        bench.set_optics_position(index, operation[2])
    elif kind == "remove":
        bench.remove_optics(index)
    elif kind == "lock":
        parent = pick(bench, operation[2])
        bench.lock_to(index, bench.optics(parent).name)


def assert_propagation_invariant(bench):
    beams = bench.beams()
    for i in range(1, bench.n_optics):
        assert beams[i] == bench.optics(i).image(beams[i - 1])
    assert beams == propagate(bench.optics_list(), bench.wavelength)


# ============================================================================
# 传播不变量
# ============================================================================

@settings(max_examples=50, deadline=None)
@given(operations=operations_strategy)
def test_propagation_invariant_after_edits(operations):
    """
    *For any* 编辑序列，每次编辑后平台光束都等于从光源重新传播的结果。
    """
    bench = OpticsBench()
    for operation in operations:
        apply(bench, operation)
        assert_propagation_invariant(bench)


@settings(max_examples=50, deadline=None)
@given(operations=operations_strategy)
def test_optics_sorted_after_edits(operations):
    bench = OpticsBench()
    for operation in operations:
        apply(bench, operation)
    positions = [bench.optics(i).position for i in range(1, bench.n_optics)]
    assert positions == sorted(positions)
    assert bench.optics(0).type == OpticsType.CreateBeam


# ============================================================================
# 锁定树刚性平移
# ============================================================================

@settings(max_examples=50, deadline=None)
@given(
    positions=st.lists(position_strategy, min_size=3, max_size=3, unique=True),
    mover=st.integers(min_value=0, max_value=2),
    target=position_strategy,
)
def test_lock_tree_moves_rigidly(positions, mover, target):
    """
    *For any* 三个元件组成的锁定链，移动其中任一元件后，
    链内两两间距保持不变。
    """
    bench = OpticsBench()
    names = []
    for position in positions:
        optics = bench.create_optics(OpticsType.Lens, position, focal=0.1)
        bench.add_optics(optics)
        names.append(optics.name)
    # 链：names[2] -> names[1] -> names[0]
    for child, parent in ((names[1], names[0]), (names[2], names[1])):
        child_index = bench.optics_index(bench.optics_by_name(child))
        assert bench.lock_to(child_index, parent)

    before = [bench.optics_by_name(name).position for name in names]
    index = bench.optics_index(bench.optics_by_name(names[mover]))
    bench.set_optics_position(index, target)
    after = [bench.optics_by_name(name).position for name in names]

    assert after[mover] == target
    delta = after[0] - before[0]
    for b, a in zip(before, after):
        assert_allclose(a - b, delta, atol=1e-12)
    assert_propagation_invariant(bench)
