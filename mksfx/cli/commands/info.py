"""
Info 命令实现

显示分发包的版本、校验和、大小与元数据，不执行任何安装逻辑。
"""

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from ...errors import MksfxError
from ...utils.paths import format_size
from . import console, fail


def info_command(
    bundle: Path = typer.Argument(..., help="分发包路径"),
    show_files: bool = typer.Option(False, "--files", help="显示载荷文件列表"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式"),
) -> None:
    """显示分发包信息

    示例:
        mksfx info app-2.0.0.tar.gz
        mksfx info app-2.0.0.tar.gz --files --json
    """
    from ...build.builder import Builder

    try:
        result = Builder().info(bundle, list_files=show_files)
    except MksfxError as e:
        fail(e)
    except OSError as e:
        fail(f"读取分发包失败: {e}")

    if json_output:
        data = {
            "bundle": str(result.bundle_path),
            "version": result.version,
            "checksum": f"SHA256:{result.checksum}",
            "manifest_checksum": result.manifest_checksum,
            "entrypoint": result.entrypoint,
            "total_size": result.total_size,
            "payload_size": result.payload_size,
            "overhead": result.overhead,
            "overhead_percent": result.overhead_percent,
            "payload_file": result.payload_file,
            "metadata": dict(result.metadata),
            "file_count": result.file_count,
        }
        if show_files:
            data["files"] = result.files
        typer.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    table = Table(title=f"分发包信息: {result.bundle_path.name}")
    table.add_column("字段", style="cyan")
    table.add_column("值", style="green")

    table.add_row("版本", escape(result.version))
    table.add_row("入口脚本", escape(result.entrypoint))
    table.add_row("校验和", f"SHA256:{result.checksum}")
    table.add_row("总大小", format_size(result.total_size))
    table.add_row("载荷大小", f"{format_size(result.payload_size)} ({result.payload_file})")
    table.add_row("开销", f"{format_size(result.overhead)} ({result.overhead_percent}%)")
    table.add_row("条目数", str(result.file_count))
    for key, value in result.metadata:
        table.add_row(escape(key), escape(value))

    console.print(table)

    if show_files:
        console.print()
        for name in result.files:
            console.print(f"  {name}", markup=False)
