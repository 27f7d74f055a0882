"""
pytest 配置文件

本文件包含 pytest 的全局配置和 fixtures。
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# 将 src 目录添加到 Python 路径
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from gaussian_beam_bench import OpticsBench, OpticsType


class RecordingListener:
    """记录所有通知的监听者"""

    def __init__(self):
        self.events = []

    def optics_added(self, index):
        self.events.append(("optics_added", index))

    def optics_removed(self, index, count):
        self.events.append(("optics_removed", index, count))

    def data_changed(self, start, end):
        self.events.append(("data_changed", start, end))

    def target_beam_changed(self):
        self.events.append(("target_beam_changed",))

    def fit_data_changed(self, index):
        self.events.append(("fit_data_changed", index))

    def wavelength_changed(self):
        self.events.append(("wavelength_changed",))


@pytest.fixture
def bench():
    """默认光学平台（光源 180 µm @ 10 mm，波长 461 nm）"""
    return OpticsBench()


@pytest.fixture
def lens_bench():
    """光源 + 一个 f = 21 mm 的透镜 @ 120 mm"""
    bench = OpticsBench()
    bench.add_optics(bench.create_optics(OpticsType.Lens, 0.12, focal=0.021))
    return bench


@pytest.fixture
def three_element_bench():
    """光源 + 两个透镜（共 3 个元件）"""
    bench = OpticsBench()
    bench.add_optics(bench.create_optics(OpticsType.Lens, 0.10, focal=0.05))
    bench.add_optics(bench.create_optics(OpticsType.Lens, 0.25, focal=0.10))
    return bench


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def rng():
    return np.random.default_rng(12345)
