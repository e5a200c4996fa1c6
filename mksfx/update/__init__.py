"""增量更新模块

提供载荷差异计算与增量更新包生成功能。
"""

from .delta import (
    Delta,
    DeltaEngine,
    DiffStrategy,
    WholeFileStrategy,
    files_identical,
    get_strategy,
    list_files,
)
from .package import (
    UpdateManifest,
    build_update_package,
    render_update_script,
)
from .updater import (
    Updater,
    UpdateResult,
    default_update_filename,
)

__all__ = [
    # 差异计算
    "Delta",
    "DeltaEngine",
    "DiffStrategy",
    "WholeFileStrategy",
    "files_identical",
    "get_strategy",
    "list_files",

    # 更新包
    "UpdateManifest",
    "build_update_package",
    "render_update_script",

    # 生成器
    "Updater",
    "UpdateResult",
    "default_update_filename",
]
