"""
增量计算

比较两个载荷目录树，按相对路径与内容摘要得到新增 / 删除 / 变更文件集合。
只比较大小与 SHA-256，从不参考修改时间。
"""

import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

from ..build.codec import iter_tree
from ..build.hashing import HashCalculator
from ..config.schema import DeltaAlgorithm
from ..utils.logging import get_stage_logger, LogStage


@dataclass(frozen=True)
class Delta:
    """两棵载荷树之间的差异，各集合两两不相交且已排序"""
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()
    changed: Tuple[str, ...] = ()
    unchanged: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def summary(self) -> Dict[str, int]:
        return {
            'added': len(self.added),
            'removed': len(self.removed),
            'changed': len(self.changed),
            'unchanged': len(self.unchanged),
        }


def list_files(root: Path) -> List[str]:
    """列出目录树中所有非目录条目的相对 POSIX 路径（已排序）"""
    return sorted(
        relative
        for path, relative in iter_tree(root)
        if path.is_symlink() or not path.is_dir()
    )


def files_identical(first: Path, second: Path) -> bool:
    """大小相同且 SHA-256 相同才视为相同；符号链接比较链接目标"""
    if first.is_symlink() or second.is_symlink():
        return (
            first.is_symlink() and second.is_symlink()
            and os.readlink(first) == os.readlink(second)
        )
    if first.stat().st_size != second.stat().st_size:
        return False
    return HashCalculator.hash_file(first) == HashCalculator.hash_file(second)


class DeltaEngine:
    """文件级增量计算引擎"""

    def compute_delta(self, old_root: Path, new_root: Path) -> Delta:
        """计算 old_root -> new_root 的差异

        只出现在一侧的路径不会读取内容。
        """
        logger = get_stage_logger(LogStage.DELTA)
        old_root, new_root = Path(old_root), Path(new_root)
        old_files = set(list_files(old_root))
        new_files = set(list_files(new_root))
        logger.debug(f"旧载荷 {len(old_files)} 个文件，新载荷 {len(new_files)} 个文件")

        changed: List[str] = []
        unchanged: List[str] = []
        for relative in sorted(old_files & new_files):
            if files_identical(old_root / relative, new_root / relative):
                unchanged.append(relative)
            else:
                changed.append(relative)

        return Delta(
            added=tuple(sorted(new_files - old_files)),
            removed=tuple(sorted(old_files - new_files)),
            changed=tuple(changed),
            unchanged=tuple(unchanged),
        )


class DiffStrategy(ABC):
    """单文件差异策略

    决定更新包中如何表示一个新增或变更的文件。
    """

    name: str = ""

    @abstractmethod
    def materialize(self, old_path: Optional[Path], new_path: Path, destination: Path) -> None:
        """把 new_path 的更新内容写到 destination

        Args:
            old_path: 旧版本文件（新增文件时为 None）
            new_path: 新版本文件
            destination: 更新包中的目标路径
        """
        pass


class WholeFileStrategy(DiffStrategy):
    """整文件替换：更新包中保存新版本的完整副本"""

    name = "full"

    def materialize(self, old_path: Optional[Path], new_path: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if new_path.is_symlink():
            os.symlink(os.readlink(new_path), destination)
        else:
            shutil.copy2(new_path, destination)


_STRATEGIES: Dict[DeltaAlgorithm, Type[DiffStrategy]] = {
    DeltaAlgorithm.AUTO: WholeFileStrategy,
    DeltaAlgorithm.FULL: WholeFileStrategy,
}


def get_strategy(algorithm: DeltaAlgorithm = DeltaAlgorithm.AUTO) -> DiffStrategy:
    """按算法名称获取差异策略"""
    return _STRATEGIES[DeltaAlgorithm(algorithm)]()
