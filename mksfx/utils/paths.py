"""
路径工具

提供路径处理、临时目录与原子发布相关的工具函数。
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union


def expand_path(path: Union[str, Path]) -> Path:
    """扩展路径（处理环境变量和用户目录）

    Args:
        path: 原始路径

    Returns:
        Path: 扩展后的绝对路径
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)

    return Path(path).resolve()


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在

    Args:
        path: 目录路径

    Returns:
        Path: 目录路径
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


@contextmanager
def scoped_temp_dir(prefix: str = "mksfx_") -> Iterator[Path]:
    """作用域临时目录

    退出 with 块时（无论成功或异常）整个目录都会被删除。

    Args:
        prefix: 目录前缀

    Yields:
        Path: 临时目录路径
    """
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def publish_file(source: Path, destination: Path) -> Path:
    """把临时区中的产物发布到最终路径

    先复制为目标目录下的隐藏临时文件，再原子替换，保证目标路径
    上不会出现半成品文件。同一目标路径的并发写入为后写者生效。

    Args:
        source: 临时区中的完整产物
        destination: 最终输出路径

    Returns:
        Path: 最终输出路径
    """
    destination = Path(destination)
    ensure_directory(destination.parent)

    fd, partial_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".partial", dir=destination.parent
    )
    os.close(fd)
    partial = Path(partial_name)
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, destination)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    return destination


def safe_path_join(*parts: Union[str, Path]) -> Path:
    """安全的路径拼接（防止目录穿越）

    Args:
        *parts: 路径部分

    Returns:
        Path: 拼接后的路径

    Raises:
        ValueError: 检测到目录穿越尝试
    """
    if not parts:
        return Path(".")

    result = Path(parts[0])

    for part in parts[1:]:
        part_path = Path(part)

        if any(p == ".." for p in part_path.parts):
            raise ValueError(f"检测到目录穿越尝试: {part}")

        if part_path.is_absolute():
            raise ValueError(f"不允许使用绝对路径: {part}")

        result = result / part_path

    return result


def format_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化的大小字符串
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"
