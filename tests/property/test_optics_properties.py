"""
光学元件属性基测试

使用 hypothesis 库验证 image() 与 antecedent() 互为逆运算，
以及矩阵代数的基本性质。
"""

import numpy as np
from numpy.testing import assert_allclose
from hypothesis import given, strategies as st, settings

from gaussian_beam_bench.beam import Beam
from gaussian_beam_bench.optics import (
    CurvedInterfaceParams,
    CurvedMirrorParams,
    DielectricSlabParams,
    InterfaceParams,
    LensParams,
    Optics,
    OpticsType,
    compose,
    eigen_q,
    free_space_matrix,
)


# ============================================================================
# 测试策略定义
# ============================================================================

WAVELENGTH = 461e-9

# 焦距策略（单位 m），正负均可，远离零
focal_strategy = st.one_of(
    st.floats(min_value=0.01, max_value=1.0),
    st.floats(min_value=-1.0, max_value=-0.01),
)
radius_strategy = st.floats(min_value=0.01, max_value=1.0)
index_ratio_strategy = st.floats(min_value=0.3, max_value=3.0)
width_strategy = st.floats(min_value=0.0, max_value=0.1)
position_strategy = st.floats(min_value=0.05, max_value=0.5)


@st.composite
def optics_elements(draw):
    """随机种类的光学元件"""
    position = draw(position_strategy)
    kind = draw(st.sampled_from([
        OpticsType.FreeSpace,
        OpticsType.Lens,
        OpticsType.CurvedMirror,
        OpticsType.FlatInterface,
        OpticsType.CurvedInterface,
        OpticsType.DielectricSlab,
    ]))
    if kind == OpticsType.FreeSpace:
        return Optics(kind, position=position, width=draw(width_strategy))
    if kind == OpticsType.Lens:
        return Optics(kind, LensParams(draw(focal_strategy)), position=position)
    if kind == OpticsType.CurvedMirror:
        return Optics(kind, CurvedMirrorParams(draw(radius_strategy)), position=position)
    if kind == OpticsType.FlatInterface:
        return Optics(kind, InterfaceParams(draw(index_ratio_strategy)), position=position)
    if kind == OpticsType.CurvedInterface:
        return Optics(
            kind,
            CurvedInterfaceParams(draw(index_ratio_strategy), draw(radius_strategy)),
            position=position,
        )
    return Optics(
        kind,
        DielectricSlabParams(draw(index_ratio_strategy)),
        position=position,
        width=draw(width_strategy),
    )


@st.composite
def input_beams(draw):
    return Beam(
        draw(st.floats(min_value=20e-6, max_value=1e-3)),
        draw(st.floats(min_value=-0.2, max_value=0.6)),
        WAVELENGTH,
    )


# ============================================================================
# image / antecedent
# ============================================================================

@settings(max_examples=100)
@given(optics=optics_elements(), beam=input_beams())
def test_antecedent_inverts_image(optics, beam):
    """
    *For any* ABCD 元件和入射光束，antecedent(image(b)) 还原 b。
    """
    restored = optics.antecedent(optics.image(beam))
    assert_allclose(restored.waist(), beam.waist(), rtol=1e-6)
    assert_allclose(restored.waist_position(), beam.waist_position(), rtol=1e-6, atol=1e-9)
    assert_allclose(restored.index, beam.index, rtol=1e-12)


@settings(max_examples=100)
@given(optics=optics_elements(), beam=input_beams())
def test_image_keeps_wavelength_and_m2(optics, beam):
    output = optics.image(beam)
    assert output.wavelength == beam.wavelength
    assert output.M2 == beam.M2
    assert output.start == optics.end_position


# ============================================================================
# 矩阵代数
# ============================================================================

@settings(max_examples=100)
@given(d1=width_strategy, d2=width_strategy)
def test_free_space_composes_additively(d1, d2):
    assert_allclose(
        compose(free_space_matrix(d1), free_space_matrix(d2)),
        free_space_matrix(d1 + d2),
        atol=1e-15,
    )


@settings(max_examples=100)
@given(
    length=st.floats(min_value=0.01, max_value=0.19),
    radius=st.floats(min_value=0.1, max_value=0.5),
)
def test_stable_cavity_eigen_q_is_fixed_point(length, radius):
    """
    *For any* 稳定的往返矩阵，本征 q 是 (Aq+B)/(Cq+D) 的不动点且虚部为正。
    """
    mirror = np.array([[1.0, 0.0], [-2.0 / radius, 1.0]])
    m = compose(mirror, free_space_matrix(length), mirror, free_space_matrix(length))
    q = eigen_q(m)
    assert q is not None
    assert q.imag > 0
    assert_allclose((m[0, 0] * q + m[0, 1]) / (m[1, 0] * q + m[1, 1]), q, rtol=1e-9)
