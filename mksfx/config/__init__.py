"""配置和 Schema 模块

提供构建选项模型与 YAML 配置文件的加载、验证和保存功能。
"""

from .schema import (
    BuildOptions,
    CompressionAlgorithm,
    CompressionModel,
    DeltaAlgorithm,
    UpdateOptions,
)
from .loader import (
    ConfigLoader,
    ConfigValidationError,
    ConfigError,
    load_config,
    load_config_with_overrides,
    save_config,
    validate_options,
    config_loader,
)

__all__ = [
    # 模型
    "BuildOptions",
    "CompressionAlgorithm",
    "CompressionModel",
    "DeltaAlgorithm",
    "UpdateOptions",
    "ConfigLoader",

    # 异常类
    "ConfigError",
    "ConfigValidationError",

    # 便捷函数
    "load_config",
    "load_config_with_overrides",
    "save_config",
    "validate_options",

    # 单例
    "config_loader",
]
