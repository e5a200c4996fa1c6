"""
Update 命令实现

比较两个分发包并生成增量更新归档。
"""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from ...config import DeltaAlgorithm, UpdateOptions
from ...errors import MksfxError
from ...utils.paths import format_size
from . import console, fail


def update_command(
    old_bundle: Path = typer.Argument(..., help="旧版本分发包"),
    new_bundle: Path = typer.Argument(..., help="新版本分发包"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出更新包路径"),
    algorithm: DeltaAlgorithm = typer.Option(DeltaAlgorithm.AUTO, "--algorithm", "-a", help="增量算法"),
) -> None:
    """生成增量更新包

    示例:
        mksfx update app-1.0.0.tar.gz app-1.1.0.tar.gz
        mksfx update old.tar.gz new.tar.gz -o update.tar.gz
    """
    from ...update.updater import Updater

    options = UpdateOptions(output=output, algorithm=algorithm)
    try:
        result = Updater().create_update(old_bundle, new_bundle, options)
    except MksfxError as e:
        fail(e)
    except OSError as e:
        fail(f"增量更新失败: {e}")

    console.print(f"[green]✓ 增量更新已生成[/green]: {escape(str(result.output_path))}")
    console.print(f"[blue]版本[/blue]: {escape(str(result.old_version))} -> {escape(str(result.new_version))}")
    console.print(
        f"[blue]文件变化[/blue]: 新增 {result.files_added}，"
        f"变更 {result.files_changed}，删除 {result.files_removed}"
    )
    console.print(
        f"[blue]大小[/blue]: {format_size(result.size)} "
        f"(完整包 {format_size(result.full_size)}，节省 {result.savings_percent}%)"
    )
