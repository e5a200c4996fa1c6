"""
载荷骨架生成

为新项目生成入口脚本、README 与示例构建配置。
"""

import os
from pathlib import Path
from typing import List, Union

from .config.loader import save_config
from .config.schema import DEFAULT_ENTRYPOINT, BuildOptions
from .errors import BuildError
from .templates import read_template
from .utils.logging import info, LogStage

CONFIG_NAME = "mksfx.yaml"


def create_skeleton(target: Union[str, Path], entrypoint: str = DEFAULT_ENTRYPOINT) -> List[Path]:
    """生成载荷骨架目录

    Args:
        target: 新项目目录，必须不存在
        entrypoint: 入口脚本相对路径

    Returns:
        List[Path]: 生成的文件列表

    Raises:
        BuildError: 目标已存在
    """
    target = Path(target)
    if target.exists():
        raise BuildError(f"目录已存在: {target}")

    name = target.name
    options = BuildOptions(
        output=Path(f"{name}-installer.tar.gz"),
        version="1.0.0",
        entrypoint=entrypoint,
        exclude=[CONFIG_NAME, "*-installer.tar.gz"],
    )

    (target / "files").mkdir(parents=True)

    entry_path = target / options.entrypoint
    entry_path.parent.mkdir(parents=True, exist_ok=True)
    entry_path.write_text(read_template("bootstrap.sh"), encoding="utf-8")
    os.chmod(entry_path, 0o755)

    readme_path = target / "README.md"
    readme_path.write_text(
        read_template("README.md")
        .replace("@@NAME@@", name)
        .replace("@@ENTRYPOINT@@", options.entrypoint),
        encoding="utf-8",
    )

    config_path = target / CONFIG_NAME
    save_config(options, config_path)

    info(f"已生成载荷骨架: {target}", stage=LogStage.INIT)
    return [entry_path, readme_path, config_path]
