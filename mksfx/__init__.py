"""
mksfx - POSIX 自解压安装包构建与增量更新工具

A self-extracting installer bundle builder with delta updates.
"""

__version__ = "0.1.0"
__author__ = "Project Team"
__license__ = "MIT"

# 导出主要 API
from .config.schema import BuildOptions, UpdateOptions
from .errors import MksfxError, BuildError, UpdateError, ValidationError
from .build.builder import Builder, BuildResult, VerifyResult, InfoResult
from .update.delta import DeltaEngine, Delta
from .update.updater import Updater, UpdateResult

__all__ = [
    "__version__",
    "BuildOptions",
    "UpdateOptions",
    "MksfxError",
    "BuildError",
    "UpdateError",
    "ValidationError",
    "Builder",
    "BuildResult",
    "VerifyResult",
    "InfoResult",
    "DeltaEngine",
    "Delta",
    "Updater",
    "UpdateResult",
]
