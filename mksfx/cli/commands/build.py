"""
Build 命令实现

从源目录构建自解压分发包。
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape

from ...config import CompressionAlgorithm, ConfigError, load_config_with_overrides
from ...errors import MksfxError
from ...utils.paths import format_size
from . import console, fail, parse_metadata


def build_command(
    source: Path = typer.Argument(..., help="源目录"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出分发包路径"),
    payload_version: Optional[str] = typer.Option(None, "--version", help="载荷版本号"),
    entrypoint: Optional[str] = typer.Option(None, "--entrypoint", "-e", help="入口脚本（相对源目录）"),
    level: Optional[int] = typer.Option(None, "--level", "-c", help="压缩级别"),
    algo: Optional[CompressionAlgorithm] = typer.Option(None, "--algo", help="载荷压缩算法"),
    metadata: Optional[List[str]] = typer.Option(None, "--metadata", "-m", help="附加元数据 KEY=VALUE，可重复"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="排除模式（glob），可重复"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML 构建配置文件"),
    force: bool = typer.Option(False, "--force", "-f", help="强制覆盖已存在的输出文件"),
) -> None:
    """构建分发包

    示例:
        mksfx build ./payload -o app-2.0.0.tar.gz --version 2.0.0
        mksfx build . --config mksfx.yaml --algo zstd -c 19
    """
    from ...build.builder import Builder

    overrides = {
        "output": str(output) if output else None,
        "version": payload_version,
        "entrypoint": entrypoint,
        "compression": {
            "algo": algo.value if algo else None,
            "level": level,
        },
        "metadata": parse_metadata(metadata) or None,
        "exclude": list(exclude) if exclude else None,
    }

    try:
        options = load_config_with_overrides(config, overrides)
    except ConfigError as e:
        fail(e)

    if options.output.exists() and not force:
        fail(f"输出文件已存在: {options.output}（使用 --force 覆盖）")

    def progress_callback(stage: str, current: int, total: int, message: str = "") -> None:
        if total > 0:
            percentage = (current / total) * 100
            console.print(f"[blue]{stage}[/blue]: {message} ({percentage:.0f}%)")

    try:
        result = Builder(progress_callback=progress_callback).build(source, options)
    except MksfxError as e:
        fail(e)
    except OSError as e:
        fail(f"构建失败: {e}")

    console.print(f"[green]✓ 分发包构建完成[/green]: {escape(str(result.output_path))}")
    console.print(f"[blue]版本[/blue]: {escape(str(result.version))}")
    console.print(f"[blue]入口脚本[/blue]: {escape(str(result.entrypoint))}")
    console.print(f"[blue]文件数[/blue]: {result.file_count}")
    console.print(
        f"[blue]文件大小[/blue]: {format_size(result.size)} "
        f"(载荷 {format_size(result.payload_size)}，开销 {result.overhead_percent}%)"
    )
    console.print(f"[blue]校验和[/blue]: SHA256:{result.checksum}")
