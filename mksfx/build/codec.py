"""
归档编解码器

把目录树打包为压缩 tar 归档，或把归档解开为目录树。
tar 成员按路径排序、属主信息归零、gzip 头时间戳固定，保证同一目录树
在同一环境下得到逐字节相同的归档。
"""

import gzip
import os
import tarfile
import zlib
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

import zstandard as zstd

from ..config.schema import CompressionAlgorithm
from ..errors import ArchiveError

CHUNK_SIZE = 64 * 1024

# 归档读写过程中可能出现的底层异常
_CODEC_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error, zstd.ZstdError)


def iter_tree(root: Path) -> Iterator[Tuple[Path, str]]:
    """按排序顺序遍历目录树

    Yields:
        (绝对路径, 相对 POSIX 路径)，不跟随符号链接目录
    """
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames.sort()
        current = Path(dirpath)
        entries = sorted(dirnames + filenames)
        for name in entries:
            path = current / name
            yield path, path.relative_to(root).as_posix()


class ArchiveCodec(ABC):
    """tar 归档编解码器基类"""

    suffix: str = ".tar"

    def __init__(self, level: int):
        self.level = level

    @abstractmethod
    def get_algorithm(self) -> CompressionAlgorithm:
        """获取压缩算法"""
        pass

    @abstractmethod
    @contextmanager
    def _compressed_writer(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        """包装原始文件为压缩写入流"""
        pass

    @abstractmethod
    @contextmanager
    def _decompressed_reader(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        """包装原始文件为解压读取流"""
        pass

    def create(
        self,
        source_dir: Path,
        destination: Path,
        arcname: str,
        include_directories: bool = True,
    ) -> Path:
        """把 source_dir 的内容打包到 destination

        所有成员位于 `arcname/` 前缀下。

        Args:
            source_dir: 源目录
            destination: 输出归档路径
            arcname: 归档内根目录名
            include_directories: 是否写入目录条目

        Raises:
            ArchiveError: 打包失败
        """
        source_dir = Path(source_dir)
        destination = Path(destination)
        try:
            with open(destination, "wb") as raw, self._compressed_writer(raw) as stream:
                with tarfile.open(fileobj=stream, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                    for path, relative in iter_tree(source_dir):
                        self._add_entry(tar, path, f"{arcname}/{relative}", include_directories)
        except _CODEC_ERRORS as e:
            raise ArchiveError(f"创建归档失败 {destination}: {e}") from e
        return destination

    def _add_entry(self, tar: tarfile.TarFile, path: Path, name: str, include_directories: bool) -> None:
        info = tar.gettarinfo(str(path), arcname=name)
        if info is None:
            # 套接字等特殊文件
            return
        if info.isdir() and not include_directories:
            return
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        info.mtime = int(info.mtime)
        if info.isreg():
            with open(path, "rb") as fh:
                tar.addfile(info, fh)
        else:
            tar.addfile(info)

    def extract(self, archive: Path, destination: Path) -> Path:
        """把归档解开到 destination

        解包前先完整解压一遍以校验压缩流完整性（CRC / 帧校验和）。

        Raises:
            ArchiveError: 归档损坏或解包失败
        """
        self.check_integrity(archive)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        try:
            with self._open_tar(archive) as tar:
                tar.extractall(destination, filter="data")
        except _CODEC_ERRORS as e:
            raise ArchiveError(f"解包归档失败 {archive}: {e}") from e
        return destination

    def check_integrity(self, archive: Path) -> None:
        """读完整个压缩流，损坏时抛出 ArchiveError"""
        try:
            with open(archive, "rb") as raw, self._decompressed_reader(raw) as stream:
                while stream.read(CHUNK_SIZE):
                    pass
        except _CODEC_ERRORS as e:
            raise ArchiveError(f"归档已损坏 {archive}: {e}") from e

    def list_members(self, archive: Path) -> List[str]:
        """列出归档中的非目录成员名"""
        try:
            with self._open_tar(archive) as tar:
                return [member.name for member in tar if not member.isdir()]
        except _CODEC_ERRORS as e:
            raise ArchiveError(f"读取归档失败 {archive}: {e}") from e

    def read_member(self, archive: Path, name: str) -> Optional[bytes]:
        """读取单个成员内容，成员不存在时返回 None"""
        try:
            with self._open_tar(archive) as tar:
                for member in tar:
                    if member.name == name and member.isreg():
                        handle = tar.extractfile(member)
                        return handle.read() if handle else None
        except _CODEC_ERRORS as e:
            raise ArchiveError(f"读取归档失败 {archive}: {e}") from e
        return None

    @contextmanager
    def _open_tar(self, archive: Path) -> Iterator[tarfile.TarFile]:
        with open(archive, "rb") as raw, self._decompressed_reader(raw) as stream:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                yield tar


class TarGzipCodec(ArchiveCodec):
    """tar + gzip 编解码器"""

    suffix = ".tar.gz"

    def __init__(self, level: int = 9):
        super().__init__(min(9, max(1, level)))

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.GZIP

    @contextmanager
    def _compressed_writer(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, compresslevel=self.level, mtime=0) as gz:
            yield gz

    @contextmanager
    def _decompressed_reader(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        with gzip.GzipFile(fileobj=raw, mode="rb") as gz:
            yield gz


class TarZstdCodec(ArchiveCodec):
    """tar + zstd 编解码器（写入帧校验和）"""

    suffix = ".tar.zst"

    def __init__(self, level: int = 10):
        super().__init__(level)
        self._cctx = zstd.ZstdCompressor(level=level, write_checksum=True)
        self._dctx = zstd.ZstdDecompressor()

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.ZSTD

    @contextmanager
    def _compressed_writer(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        with self._cctx.stream_writer(raw, closefd=False) as writer:
            yield writer

    @contextmanager
    def _decompressed_reader(self, raw: BinaryIO) -> Iterator[BinaryIO]:
        with self._dctx.stream_reader(raw, read_across_frames=True, closefd=False) as reader:
            yield reader


class CodecFactory:
    """编解码器工厂"""

    _CODECS = {
        CompressionAlgorithm.GZIP: TarGzipCodec,
        CompressionAlgorithm.ZSTD: TarZstdCodec,
    }

    @classmethod
    def create_codec(cls, algorithm: CompressionAlgorithm, level: int) -> ArchiveCodec:
        """按算法创建编解码器"""
        try:
            codec_cls = cls._CODECS[CompressionAlgorithm(algorithm)]
        except (KeyError, ValueError):
            raise ArchiveError(f"不支持的压缩算法: {algorithm}")
        return codec_cls(level)

    @classmethod
    def for_archive(cls, path: Union[str, Path]) -> ArchiveCodec:
        """按文件后缀选择解码器（级别对解码无影响）"""
        name = Path(path).name
        for codec_cls in cls._CODECS.values():
            if name.endswith(codec_cls.suffix):
                return codec_cls()
        raise ArchiveError(f"无法识别的归档格式: {name}")

    @classmethod
    def suffixes(cls) -> List[str]:
        return [codec_cls.suffix for codec_cls in cls._CODECS.values()]
