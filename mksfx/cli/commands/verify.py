"""
Verify 命令实现

校验分发包的载荷校验和与 MANIFEST。
"""

from pathlib import Path

import typer
from rich.markup import escape

from ...errors import MksfxError
from . import console, fail


def verify_command(
    bundle: Path = typer.Argument(..., help="分发包路径"),
) -> None:
    """校验分发包

    示例:
        mksfx verify app-2.0.0.tar.gz
    """
    from ...build.builder import Builder

    try:
        result = Builder().verify(bundle)
    except MksfxError as e:
        fail(e)
    except OSError as e:
        fail(f"校验失败: {e}")

    console.print(f"[green]✓ 校验通过[/green]: {escape(str(result.bundle_path))}")
    console.print(f"[blue]版本[/blue]: {escape(str(result.version))}")
    console.print(f"[blue]入口脚本[/blue]: {escape(str(result.entrypoint))}")
    console.print(f"[blue]文件数[/blue]: {result.file_count}")
    console.print(f"[blue]校验和[/blue]: SHA256:{result.checksum}")
