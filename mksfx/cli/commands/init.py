"""
Init 命令实现

生成新的载荷骨架目录。
"""

from pathlib import Path

import typer

from ...config.schema import DEFAULT_ENTRYPOINT
from ...errors import MksfxError
from . import console, fail


def init_command(
    name: Path = typer.Argument(..., help="新项目目录"),
    entrypoint: str = typer.Option(DEFAULT_ENTRYPOINT, "--entrypoint", "-e", help="入口脚本名称"),
) -> None:
    """生成载荷骨架

    示例:
        mksfx init myapp
    """
    from ...scaffold import CONFIG_NAME, create_skeleton

    try:
        created = create_skeleton(name, entrypoint)
    except MksfxError as e:
        fail(e)
    except (OSError, ValueError) as e:
        fail(f"生成骨架失败: {e}")

    console.print(f"[green]✓ 已生成载荷骨架[/green]: {name}")
    for path in created:
        console.print(f"  {path}", markup=False)
    console.print("接下来运行:")
    console.print(f"  cd {name} && mksfx build . --config {CONFIG_NAME}", markup=False)
