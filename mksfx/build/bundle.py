"""
分发包布局

解开外层分发包并定位 installer.sh 与载荷归档，供 verify / info / update 共用。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import ValidationError
from .codec import ArchiveCodec, CodecFactory, TarGzipCodec
from .installer import INSTALLER_NAME
from .pipeline import BUNDLE_ROOT, PAYLOAD_ROOT


@dataclass
class BundleLayout:
    """已解开的分发包"""
    root: Path
    installer: Optional[Path]
    payload_archive: Optional[Path]

    @property
    def payload_codec(self) -> ArchiveCodec:
        return CodecFactory.for_archive(self.payload_archive)

    @property
    def payload_dir(self) -> Path:
        return self.root / PAYLOAD_ROOT

    def ensure_payload_tree(self) -> Path:
        """确保载荷已解开为目录树，返回载荷根目录

        已存在 payload/ 目录时直接使用，否则把载荷归档解开到分发包目录。

        Raises:
            ArchiveError: 载荷归档损坏
            ValidationError: 既没有 payload/ 目录也没有载荷归档
        """
        if self.payload_dir.is_dir():
            return self.payload_dir
        if self.payload_archive is None:
            raise ValidationError(f"分发包中既没有 {PAYLOAD_ROOT}/ 目录也没有载荷归档: {self.root}")
        self.payload_codec.extract(self.payload_archive, self.root)
        if not self.payload_dir.is_dir():
            raise ValidationError(f"载荷归档中缺少 {PAYLOAD_ROOT}/ 目录: {self.payload_archive.name}")
        return self.payload_dir


def open_bundle(bundle_path: Path, destination: Path, strict: bool = True) -> BundleLayout:
    """解开分发包并定位成员

    Args:
        bundle_path: 分发包路径
        destination: 解包目录
        strict: 为 True 时 installer.sh 与载荷归档都必须存在

    Raises:
        ArchiveError: 分发包损坏
        ValidationError: 缺少 installer.sh 或载荷归档、包含多个载荷归档，
            或严格模式下包含其它成员
    """
    TarGzipCodec().extract(bundle_path, destination)
    root = Path(destination) / BUNDLE_ROOT

    installer: Optional[Path] = root / INSTALLER_NAME
    if not installer.is_file():
        if strict:
            raise ValidationError(f"分发包中缺少 {BUNDLE_ROOT}/{INSTALLER_NAME}: {bundle_path}")
        installer = None

    candidates = [
        root / f"{PAYLOAD_ROOT}{suffix}"
        for suffix in CodecFactory.suffixes()
        if (root / f"{PAYLOAD_ROOT}{suffix}").is_file()
    ]
    if len(candidates) > 1:
        raise ValidationError(f"分发包中包含多个载荷归档: {bundle_path}")
    if not candidates and strict:
        raise ValidationError(f"分发包中缺少载荷归档: {bundle_path}")
    if strict:
        _reject_extra_members(Path(destination), {installer, *candidates}, bundle_path)

    return BundleLayout(
        root=root,
        installer=installer,
        payload_archive=candidates[0] if candidates else None,
    )


def _reject_extra_members(destination: Path, expected: set, bundle_path: Path) -> None:
    """分发包只能包含 installer.sh 与一个载荷归档"""
    extra = sorted(
        path.relative_to(destination).as_posix()
        for path in destination.rglob("*")
        if not path.is_dir() and path not in expected
    )
    if extra:
        raise ValidationError(f"分发包中包含意外成员: {', '.join(extra)} ({bundle_path})")
