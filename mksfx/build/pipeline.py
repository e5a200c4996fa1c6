"""
构建管道

两遍校验和构建的各个阶段，全部以显式输入 / 输出的函数表达：

    assemble(tree, PLACEHOLDER) -> archive₁ -> hash₁
        -> finalize(tree, hash₁) -> archive₂ -> hash₂ -> installer(hash₂) -> bundle

MANIFEST 中的 Payload-Checksum 记录 hash₁（定稿前载荷的封签）；
installer.sh 中嵌入 hash₂（实际随包分发的载荷归档的摘要），安装与 verify
都以 hash₂ 为准。
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from ..config.schema import BuildOptions, CompressionAlgorithm
from ..utils.logging import warning, LogStage
from .codec import ArchiveCodec
from .collector import FileCollector, FileInfo, copy_files
from .hashing import HashCalculator
from .installer import INSTALLER_NAME, render_installer
from .manifest import MANIFEST_NAME, Manifest

BUNDLE_ROOT = "bundle"
PAYLOAD_ROOT = "payload"


def payload_archive_name(codec: ArchiveCodec) -> str:
    return f"{PAYLOAD_ROOT}{codec.suffix}"


@dataclass(frozen=True)
class SealedArchive:
    """一次打包的结果：归档路径及其内容摘要"""
    path: Path
    checksum: str
    size: int


def write_manifest(payload_dir: Path, manifest: Manifest) -> Path:
    path = Path(payload_dir) / MANIFEST_NAME
    path.write_text(manifest.encode(), encoding="utf-8")
    return path


def assemble_payload(source_dir: Path, payload_dir: Path, options: BuildOptions) -> Tuple[Manifest, List[FileInfo]]:
    """复制源文件到载荷目录并写入占位 MANIFEST

    Returns:
        (占位 MANIFEST, 复制的条目列表)
    """
    collector = FileCollector(options.exclude)
    files = collector.collect_files(source_dir, keep=[options.entrypoint])

    if any(f.relative_path.as_posix() == MANIFEST_NAME for f in files):
        warning(f"源目录中的 {MANIFEST_NAME} 将被生成的 MANIFEST 替换", stage=LogStage.COPY)
        files = [f for f in files if f.relative_path.as_posix() != MANIFEST_NAME]

    copy_files(files, payload_dir)
    os.chmod(Path(payload_dir) / options.entrypoint, 0o755)

    manifest = Manifest(
        version=options.version,
        entrypoint=options.entrypoint,
        metadata=tuple(options.metadata.items()),
    )
    write_manifest(payload_dir, manifest)
    return manifest, files


def archive_payload(payload_dir: Path, destination: Path, codec: ArchiveCodec) -> SealedArchive:
    """打包载荷目录并计算归档摘要"""
    Path(destination).parent.mkdir(parents=True, exist_ok=True)
    codec.create(payload_dir, destination, PAYLOAD_ROOT)
    return SealedArchive(
        path=Path(destination),
        checksum=HashCalculator.hash_file(destination),
        size=Path(destination).stat().st_size,
    )


def finalize_manifest(payload_dir: Path, manifest: Manifest, seal: SealedArchive) -> Manifest:
    """用第一遍摘要替换占位符，返回定稿后的 MANIFEST 并写回载荷目录"""
    finalized = manifest.with_checksum(seal.checksum)
    write_manifest(payload_dir, finalized)
    return finalized


def write_installer(bundle_dir: Path, archive: SealedArchive, manifest: Manifest, algorithm: CompressionAlgorithm) -> Path:
    """生成嵌入最终摘要的 installer.sh"""
    path = Path(bundle_dir) / INSTALLER_NAME
    path.write_text(
        render_installer(
            checksum=archive.checksum,
            version=manifest.version,
            entrypoint=manifest.entrypoint,
            payload_file=archive.path.name,
            algorithm=algorithm,
        ),
        encoding="utf-8",
    )
    os.chmod(path, 0o755)
    return path


def assemble_bundle(bundle_dir: Path, destination: Path, codec: ArchiveCodec) -> Path:
    """把 installer.sh 与载荷归档打成外层分发包（不含目录条目）"""
    return codec.create(bundle_dir, destination, BUNDLE_ROOT, include_directories=False)
