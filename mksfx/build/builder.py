"""
构建器主类

负责两遍校验和构建流程的协调，以及分发包的 verify / info。
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from ..config.schema import BuildOptions
from ..errors import ArchiveError, BuildError, ValidationError
from ..utils.logging import info, success, debug, LogStage
from ..utils.paths import expand_path, format_size, publish_file, scoped_temp_dir
from .bundle import BundleLayout, open_bundle
from .codec import CodecFactory, TarGzipCodec
from .hashing import HashCalculator
from .installer import read_embedded_checksum
from .manifest import MANIFEST_NAME, Manifest
from .pipeline import (
    PAYLOAD_ROOT,
    archive_payload,
    assemble_bundle,
    assemble_payload,
    finalize_manifest,
    payload_archive_name,
    write_installer,
)

# 进度回调类型：(阶段, 当前, 总数, 消息)
ProgressCallback = Callable[[str, int, int, str], None]


def _overhead_percent(total_size: int, payload_size: int) -> float:
    return round((total_size - payload_size) / max(1, payload_size) * 100, 2)


@dataclass
class BuildResult:
    """构建结果"""
    output_path: Path
    size: int
    payload_size: int
    overhead: int
    overhead_percent: float
    checksum: str
    seal_checksum: str
    version: str
    entrypoint: str
    file_count: int = 0
    build_time: float = 0.0


@dataclass
class VerifyResult:
    """校验结果"""
    bundle_path: Path
    checksum: str
    manifest_checksum: str
    version: str
    entrypoint: str
    metadata: List[Tuple[str, str]] = field(default_factory=list)
    file_count: int = 0


@dataclass
class InfoResult:
    """分发包信息"""
    bundle_path: Path
    version: str
    checksum: str
    manifest_checksum: str
    entrypoint: str
    total_size: int
    payload_size: int
    overhead: int
    overhead_percent: float
    payload_file: str
    metadata: List[Tuple[str, str]] = field(default_factory=list)
    file_count: int = 0
    files: List[str] = field(default_factory=list)


class Builder:
    """分发包构建器"""

    def __init__(self, progress_callback: Optional[ProgressCallback] = None):
        self.progress_callback = progress_callback

    def _progress(self, stage: str, current: int, message: str) -> None:
        if self.progress_callback:
            self.progress_callback(stage, current, 100, message)

    def build(self, source_dir: Union[str, Path], options: Optional[BuildOptions] = None) -> BuildResult:
        """构建分发包

        Args:
            source_dir: 源目录
            options: 构建选项，缺省使用默认值

        Returns:
            BuildResult: 构建结果

        Raises:
            BuildError: 源目录或入口脚本缺失、归档失败
        """
        options = options or BuildOptions()
        source_dir = expand_path(source_dir)
        output_path = Path(options.output)
        self._validate_source(source_dir, options.entrypoint, output_path)

        start_time = time.time()
        payload_codec = CodecFactory.create_codec(options.compression.algo, options.compression.level)
        bundle_codec = TarGzipCodec(options.compression.level)

        info(f"开始构建分发包: {output_path}", stage=LogStage.INIT)
        debug(
            f"构建配置: source={source_dir} version={options.version} entrypoint={options.entrypoint} "
            f"algo={options.compression.algo.value} level={options.compression.level}",
            stage=LogStage.INIT,
        )

        try:
            with scoped_temp_dir("mksfx_build_") as tmp:
                payload_dir = tmp / PAYLOAD_ROOT
                bundle_dir = tmp / "bundle"
                bundle_dir.mkdir()

                self._progress("复制文件", 0, "复制源文件...")
                info("复制源文件", stage=LogStage.COPY)
                manifest, files = assemble_payload(source_dir, payload_dir, options)
                file_count = sum(1 for f in files if not f.is_directory)
                debug(f"已复制 {file_count} 个文件", stage=LogStage.COPY)

                self._progress("打包载荷", 20, "第一遍打包...")
                info(f"第一遍打包 (压缩级别: {payload_codec.level})", stage=LogStage.ARCHIVE)
                seal = archive_payload(payload_dir, tmp / "pass1" / payload_archive_name(payload_codec), payload_codec)
                debug(f"封签校验和: {seal.checksum}", stage=LogStage.HASH)

                self._progress("定稿清单", 45, "写入校验和...")
                info("写入 MANIFEST 校验和", stage=LogStage.FINALIZE)
                manifest = finalize_manifest(payload_dir, manifest, seal)

                self._progress("打包载荷", 55, "第二遍打包...")
                info("第二遍打包", stage=LogStage.ARCHIVE)
                final = archive_payload(payload_dir, bundle_dir / payload_archive_name(payload_codec), payload_codec)
                debug(f"最终校验和: {final.checksum}", stage=LogStage.HASH)

                self._progress("生成安装脚本", 75, "生成 installer.sh...")
                info("生成 installer.sh", stage=LogStage.INSTALLER)
                write_installer(bundle_dir, final, manifest, payload_codec.get_algorithm())

                self._progress("组装分发包", 85, "组装分发包...")
                info("组装分发包", stage=LogStage.BUNDLE)
                staged = assemble_bundle(bundle_dir, tmp / "output.tar.gz", bundle_codec)
                publish_file(staged, output_path)
        except ArchiveError as e:
            debug(f"归档失败: {e}", stage=LogStage.ARCHIVE)
            raise BuildError(f"归档失败: {e}") from e
        except OSError as e:
            debug(f"构建失败: {e}", stage=LogStage.BUNDLE)
            raise BuildError(f"构建失败: {e}") from e

        size = output_path.stat().st_size
        result = BuildResult(
            output_path=output_path,
            size=size,
            payload_size=final.size,
            overhead=size - final.size,
            overhead_percent=_overhead_percent(size, final.size),
            checksum=final.checksum,
            seal_checksum=seal.checksum,
            version=manifest.version,
            entrypoint=manifest.entrypoint,
            file_count=file_count,
            build_time=time.time() - start_time,
        )

        self._progress("完成", 100, "构建完成")
        success(f"分发包构建成功: {output_path} ({format_size(size)})", stage=LogStage.DONE)
        return result

    def _validate_source(self, source_dir: Path, entrypoint: str, output_path: Path) -> None:
        """构建前校验输入，此前不做任何文件系统修改"""
        if not source_dir.is_dir():
            raise BuildError(f"源目录不存在: {source_dir}")

        entrypoint_path = source_dir / entrypoint
        if not entrypoint_path.is_file():
            raise BuildError(f"入口脚本不存在: {entrypoint_path}")

        if output_path.is_dir():
            raise BuildError(f"输出路径是目录: {output_path}")

    def verify(self, bundle_path: Union[str, Path]) -> VerifyResult:
        """校验分发包

        解开分发包，重新计算载荷归档摘要并与 installer.sh 中嵌入的值比较，
        再检查 MANIFEST 格式与入口脚本。

        Raises:
            ValidationError: 校验和不匹配、成员缺失、MANIFEST 格式错误或归档损坏
        """
        bundle_path = Path(bundle_path)
        self._require_bundle(bundle_path)

        try:
            with scoped_temp_dir("mksfx_verify_") as tmp:
                layout = open_bundle(bundle_path, tmp)
                expected = read_embedded_checksum(layout.installer.read_text(encoding="utf-8", errors="replace"))
                actual = HashCalculator.hash_file(layout.payload_archive)
                if expected != actual:
                    raise ValidationError(
                        f"校验和不匹配: installer.sh 记录 {expected}，载荷实际为 {actual}"
                    )
                debug(f"载荷校验和一致: {actual}", stage=LogStage.VERIFY)

                # 只检查从已校验归档中解出的载荷
                extracted = layout.payload_codec.extract(layout.payload_archive, tmp / "extracted")
                payload_dir = extracted / PAYLOAD_ROOT
                if not payload_dir.is_dir():
                    raise ValidationError(f"载荷归档中缺少 {PAYLOAD_ROOT}/ 目录")
                manifest = self._read_manifest(payload_dir / MANIFEST_NAME)
                if not manifest.is_finalized:
                    raise ValidationError("MANIFEST 校验和仍为占位符")

                if not (payload_dir / manifest.entrypoint).is_file():
                    raise ValidationError(f"载荷中缺少入口脚本: {manifest.entrypoint}")

                file_count = sum(1 for p in payload_dir.rglob("*") if not p.is_dir())
        except ArchiveError as e:
            raise ValidationError(f"分发包已损坏: {e}") from e

        success(f"分发包校验通过: {bundle_path}", stage=LogStage.VERIFY)
        return VerifyResult(
            bundle_path=bundle_path,
            checksum=actual,
            manifest_checksum=manifest.checksum,
            version=manifest.version,
            entrypoint=manifest.entrypoint,
            metadata=list(manifest.metadata),
            file_count=file_count,
        )

    def info(self, bundle_path: Union[str, Path], list_files: bool = False) -> InfoResult:
        """读取分发包信息（不执行任何安装逻辑，也不校验校验和）

        Raises:
            ValidationError: 成员缺失、MANIFEST 格式错误或归档损坏
        """
        bundle_path = Path(bundle_path)
        self._require_bundle(bundle_path)

        try:
            with scoped_temp_dir("mksfx_info_") as tmp:
                layout = open_bundle(bundle_path, tmp)
                checksum = read_embedded_checksum(layout.installer.read_text(encoding="utf-8", errors="replace"))
                manifest = self._read_manifest_member(layout)
                prefix = f"{PAYLOAD_ROOT}/"
                files = sorted(
                    name[len(prefix):]
                    for name in layout.payload_codec.list_members(layout.payload_archive)
                    if name.startswith(prefix)
                )
                payload_size = layout.payload_archive.stat().st_size
                payload_file = layout.payload_archive.name
        except ArchiveError as e:
            raise ValidationError(f"分发包已损坏: {e}") from e

        total_size = bundle_path.stat().st_size
        return InfoResult(
            bundle_path=bundle_path,
            version=manifest.version,
            checksum=checksum,
            manifest_checksum=manifest.checksum,
            entrypoint=manifest.entrypoint,
            total_size=total_size,
            payload_size=payload_size,
            overhead=total_size - payload_size,
            overhead_percent=_overhead_percent(total_size, payload_size),
            payload_file=payload_file,
            metadata=list(manifest.metadata),
            file_count=len(files),
            files=files if list_files else [],
        )

    @staticmethod
    def _require_bundle(bundle_path: Path) -> None:
        if not bundle_path.is_file():
            raise ValidationError(f"分发包不存在: {bundle_path}")

    @staticmethod
    def _read_manifest(path: Path) -> Manifest:
        if not path.is_file():
            raise ValidationError(f"载荷中缺少 {MANIFEST_NAME}")
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"{MANIFEST_NAME} 不是有效的 UTF-8 文本") from e
        return Manifest.decode(text)

    @staticmethod
    def _read_manifest_member(layout: BundleLayout) -> Manifest:
        data = layout.payload_codec.read_member(layout.payload_archive, f"{PAYLOAD_ROOT}/{MANIFEST_NAME}")
        if data is None:
            raise ValidationError(f"载荷中缺少 {MANIFEST_NAME}")
        try:
            return Manifest.decode(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ValidationError(f"{MANIFEST_NAME} 不是有效的 UTF-8 文本") from e
