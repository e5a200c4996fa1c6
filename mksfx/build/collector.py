"""
文件收集器

扫描源目录，应用 glob 排除规则，并把结果复制到载荷目录。
"""

import fnmatch
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .codec import iter_tree


@dataclass
class FileInfo:
    """文件信息"""
    path: Path  # 绝对路径
    relative_path: Path  # 相对于源目录的路径
    size: int  # 文件大小（字节）
    mtime: float  # 修改时间（时间戳）
    is_directory: bool = False  # 是否为目录

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            'path': self.relative_path.as_posix(),
            'size': self.size,
            'mtime': self.mtime,
            'is_directory': self.is_directory,
        }


class FileCollector:
    """文件收集器

    负责扫描和收集需要打包的文件，应用排除规则。
    """

    def __init__(self, exclude_patterns: Optional[List[str]] = None):
        self.excluded_patterns: List[str] = list(exclude_patterns or [])
        self.collected_files: List[FileInfo] = []
        self.total_size: int = 0

    def collect_files(self, source_dir: Path, keep: Iterable[str] = ()) -> List[FileInfo]:
        """收集源目录下的所有条目

        Args:
            source_dir: 源目录
            keep: 无论排除规则如何都必须保留的相对路径（如入口脚本）

        Returns:
            List[FileInfo]: 按相对路径排序的文件信息列表

        Raises:
            FileNotFoundError: 源目录不存在
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise FileNotFoundError(f"源目录不存在: {source_dir}")

        keep_set = set(keep)
        self.collected_files = []
        self.total_size = 0
        excluded_dirs: List[str] = []

        for path, relative in iter_tree(source_dir):
            # 被排除目录下的内容一并排除
            excluded = relative not in keep_set and (
                any(relative.startswith(d + '/') for d in excluded_dirs)
                or self._is_excluded(relative)
            )
            if excluded:
                if path.is_dir() and not path.is_symlink():
                    excluded_dirs.append(relative)
                continue

            is_directory = path.is_dir() and not path.is_symlink()
            stat = path.lstat()
            file_info = FileInfo(
                path=path,
                relative_path=Path(relative),
                size=0 if is_directory else stat.st_size,
                mtime=stat.st_mtime,
                is_directory=is_directory,
            )
            self.collected_files.append(file_info)
            if not is_directory:
                self.total_size += file_info.size

        return self.collected_files

    def get_statistics(self) -> Dict[str, Any]:
        """获取收集统计信息"""
        file_count = sum(1 for f in self.collected_files if not f.is_directory)
        dir_count = sum(1 for f in self.collected_files if f.is_directory)

        return {
            'total_files': file_count,
            'total_directories': dir_count,
            'total_size': self.total_size,
        }

    def _is_excluded(self, relative_path: str) -> bool:
        """检查路径是否被排除"""
        if not self.excluded_patterns:
            return False

        path_str = relative_path.replace('\\', '/')
        return any(
            self._match_pattern(path_str, pattern.replace('\\', '/'))
            for pattern in self.excluded_patterns
        )

    def _match_pattern(self, path: str, pattern: str) -> bool:
        """匹配单个模式

        Args:
            path: 文件路径
            pattern: glob 模式

        Returns:
            bool: 是否匹配
        """
        # 直接 glob 匹配，或匹配最后一级名称
        if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path.rsplit('/', 1)[-1], pattern):
            return True

        # 目录模式匹配（以 / 结尾）
        if pattern.endswith('/'):
            dir_pattern = pattern.rstrip('/')
            if fnmatch.fnmatch(path, dir_pattern) or fnmatch.fnmatch(path.rsplit('/', 1)[-1], dir_pattern):
                return True
            if path.startswith(dir_pattern + '/'):
                return True

        # 路径片段匹配（包含路径分隔符）
        if '/' in pattern.rstrip('/'):
            path_parts = path.split('/')
            pattern_parts = pattern.rstrip('/').split('/')

            for i in range(len(path_parts) - len(pattern_parts) + 1):
                if all(
                    fnmatch.fnmatch(path_parts[i + j], pattern_parts[j])
                    for j in range(len(pattern_parts))
                ):
                    return True

        return False


def copy_files(files: Iterable[FileInfo], destination: Path) -> int:
    """把收集到的条目复制到目标目录，保留权限位与修改时间

    Returns:
        int: 复制的非目录条目数
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    copied = 0
    for file_info in files:
        target = destination / file_info.relative_path
        if file_info.is_directory:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if file_info.path.is_symlink():
            os.symlink(os.readlink(file_info.path), target)
        else:
            shutil.copy2(file_info.path, target)
        copied += 1
    return copied
