"""
光学平台异常类定义

本模块定义了光学平台中使用的异常类和警告类层次结构。
所有异常都继承自 BenchError 基类，并提供中文错误信息。

领域操作（移动元件、加锁、拟合等）遵循"静默守卫"约定：非法输入被忽略
或以返回值报告，不抛出异常。只有编程或配置错误才抛出下列异常。

异常类层次：
- BenchError（基类）
  - OpticsConfigurationError（光学元件配置错误）
  - DocumentError（平台文档读写错误）

警告类：
- CavityConsistencyWarning（腔稳定性判据不一致）
- FitWarning（光束拟合数据不足或未收敛）
- OptimizationWarning（随机搜索未找到满足目标的配置）

使用示例：
    >>> from gaussian_beam_bench.exceptions import OpticsConfigurationError
    >>> raise OpticsConfigurationError(
    ...     "元件类型 'Lens' 缺少参数 'focal'。"
    ... )
"""

from typing import Optional


class BenchError(Exception):
    """光学平台基础异常

    所有光学平台相关异常的基类。

    属性:
        message: 错误信息（中文）
    """

    def __init__(self, message: str) -> None:
        """初始化异常

        参数:
            message: 错误信息（中文）
        """
        self.message = message
        super().__init__(message)


class OpticsConfigurationError(BenchError):
    """光学元件配置错误

    常见触发条件：
    - 未知的元件类型
    - 构造元件时缺少必需参数或传入多余参数
    - 试图向平台添加第二个 CreateBeam 光源

    示例:
        >>> raise OpticsConfigurationError(
        ...     "元件类型 'CurvedMirror' 缺少参数 'curvature_radius'。"
        ... )
    """
    pass


class DocumentError(BenchError):
    """平台文档读写错误

    当保存的平台文档格式错误时抛出此异常。

    常见触发条件：
    - 不支持的文档版本
    - 未知的元件类型标签
    - 锁定父元件 id 在文档中不存在
    - 缺少必需字段

    属性:
        message: 错误信息
        file_path: 文档路径（可选）
    """

    def __init__(self, message: str, file_path: Optional[str] = None) -> None:
        self.file_path = file_path
        if file_path is not None:
            message = f"{message}（文件: {file_path}）"
        super().__init__(message)


class CavityConsistencyWarning(UserWarning):
    """腔稳定性判据不一致警告

    两个稳定性判据 |(A+D)/2| < 1 与 (D-A)² + 4BC < 0 在数学上等价
    （对 det M = 1 的往返矩阵），只有一个成立说明往返矩阵存在数值问题。
    此时腔被视为不稳定。

    示例:
        >>> import warnings
        >>> warnings.warn("腔稳定性判据不一致", CavityConsistencyWarning)
    """
    pass


class FitWarning(UserWarning):
    """光束拟合警告

    当有效测量点少于 2 个、或非线性细化未收敛时发出。
    """
    pass


class OptimizationWarning(UserWarning):
    """光学优化警告

    当随机搜索在尝试次数上限内未找到满足目标光束判据的配置时发出。
    """
    pass
