"""
mksfx CLI 主入口

提供命令行接口，支持 build/update/verify/info/init/version 命令。
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .. import __version__
from ..utils.logging import OutputLevel, configure_logging
from .commands import build, fail, info, init, update, verify


# 创建主应用
app = typer.Typer(
    name="mksfx",
    help="mksfx - POSIX 自解压安装包构建与增量更新工具",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# 控制台输出
console = Console()


def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"mksfx v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="输出详细调试日志 (DEBUG 级别)"
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="日志输出文件（追加）"
    ),
) -> None:
    """mksfx - POSIX 自解压安装包构建与增量更新工具

    使用 --help 查看可用命令的详细信息。
    """
    level = OutputLevel.DEBUG if verbose else OutputLevel.WARNING
    try:
        configure_logging(level=level, log_file=log_file)
    except OSError as e:
        fail(f"无法写入日志文件 {log_file}: {e}")


# 注册子命令
app.command("build", help="构建分发包")(build.build_command)
app.command("update", help="生成增量更新包")(update.update_command)
app.command("verify", help="校验分发包")(verify.verify_command)
app.command("info", help="显示分发包信息")(info.info_command)
app.command("init", help="生成载荷骨架")(init.init_command)


@app.command("version")
def version_command() -> None:
    """显示版本信息"""
    console.print(f"mksfx v{__version__}")


if __name__ == "__main__":
    app()
