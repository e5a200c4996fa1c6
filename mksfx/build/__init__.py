"""构建服务模块

提供分发包构建、校验与信息读取的核心功能。
"""

from .builder import Builder, BuildResult, VerifyResult, InfoResult
from .bundle import BundleLayout, open_bundle
from .collector import FileCollector, FileInfo, copy_files
from .codec import (
    ArchiveCodec,
    CodecFactory,
    TarGzipCodec,
    TarZstdCodec,
)
from .hashing import HashCalculator, format_checksum, parse_checksum
from .installer import render_installer, read_embedded_checksum
from .manifest import Manifest, ManifestCodec

__all__ = [
    # 主构建器
    "Builder",
    "BuildResult",
    "VerifyResult",
    "InfoResult",

    # 分发包布局
    "BundleLayout",
    "open_bundle",

    # 文件收集
    "FileCollector",
    "FileInfo",
    "copy_files",

    # 归档编解码
    "ArchiveCodec",
    "CodecFactory",
    "TarGzipCodec",
    "TarZstdCodec",

    # 校验和
    "HashCalculator",
    "format_checksum",
    "parse_checksum",

    # 安装脚本与清单
    "render_installer",
    "read_embedded_checksum",
    "Manifest",
    "ManifestCodec",
]
