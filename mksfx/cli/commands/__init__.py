"""
子命令实现

各子命令共用的错误输出：失败时向 stderr 打印单行消息并以状态码 1 退出。
"""

from typing import NoReturn

import typer
from rich.console import Console


console = Console()
err_console = Console(stderr=True, highlight=False)


def fail(message: object) -> NoReturn:
    """打印单行错误消息并退出"""
    text = " ".join(str(message).splitlines())
    err_console.print(f"错误: {text}", markup=False, soft_wrap=True)
    raise typer.Exit(1)


def parse_metadata(items: list) -> dict:
    """解析 --metadata KEY=VALUE 参数"""
    metadata = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            fail(f"元数据格式应为 KEY=VALUE: {item}")
        metadata[key.strip()] = value
    return metadata
