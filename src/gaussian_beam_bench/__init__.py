"""
高斯光束光学平台

本包实现基于 ABCD 矩阵法的高斯光束光学平台：沿光轴布置透镜、反射镜、
界面等元件，传播高斯光束，并求解使出射光束满足目标的元件位置。

主要功能：
1. 高斯光束定义（束腰、瑞利距离、复光束参数、模式重叠）
2. 光学元件定义及 ABCD 变换（成像与逆成像）
3. 光学平台（正向/反向传播协议、元件锁定、自动命名、监听者通知）
4. 谐振腔往返矩阵、稳定性与本征模
5. 元件位置优化（随机搜索 + 局部优化）
6. 光束测量数据拟合
7. 平台文档保存与加载

所有量均为国际单位制（m、rad）。

作者：高斯光束平台项目
"""

from .beam import Beam, Orientation, TargetBeam, overlap
from .optics import Optics, OpticsType
from .cavity import Cavity
from .fit import Fit, FitDataType, fit_beam
from .function import OpticsFunction, OptimizerConfig
from .bench import BenchListener, OpticsBench
from .document import bench_from_dict, bench_to_dict, load_bench, save_bench
from .exceptions import (
    BenchError,
    CavityConsistencyWarning,
    DocumentError,
    FitWarning,
    OpticsConfigurationError,
    OptimizationWarning,
)

__all__ = [
    "Beam",
    "Orientation",
    "TargetBeam",
    "overlap",
    "Optics",
    "OpticsType",
    "Cavity",
    "Fit",
    "FitDataType",
    "fit_beam",
    "OpticsFunction",
    "OptimizerConfig",
    "BenchListener",
    "OpticsBench",
    "bench_from_dict",
    "bench_to_dict",
    "load_bench",
    "save_bench",
    "BenchError",
    "CavityConsistencyWarning",
    "DocumentError",
    "FitWarning",
    "OpticsConfigurationError",
    "OptimizationWarning",
]
