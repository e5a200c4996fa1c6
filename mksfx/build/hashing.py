"""
哈希工具

计算 SHA-256 内容摘要，并负责 `SHA256:<hex>` 校验和字面量的格式化与解析。
"""

import hashlib
import re
from pathlib import Path
from typing import BinaryIO, Union

CHECKSUM_PREFIX = "SHA256:"
CHECKSUM_PATTERN = re.compile(r"^SHA256:([0-9a-f]{64})$")


class HashCalculator:
    """哈希计算器"""

    def __init__(self, algorithm: str = "sha256"):
        """初始化哈希计算器

        Args:
            algorithm: 哈希算法名称
        """
        self.algorithm = algorithm.lower()
        if self.algorithm not in hashlib.algorithms_available:
            raise ValueError(f"不支持的哈希算法: {algorithm}")

        self._hasher = hashlib.new(self.algorithm)

    def update(self, data: Union[bytes, str]) -> None:
        """更新哈希数据"""
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._hasher.update(data)

    def update_from_file(self, file_path: Path, chunk_size: int = 64 * 1024) -> None:
        """从文件更新哈希

        Raises:
            OSError: 文件读取失败
        """
        with open(file_path, 'rb') as f:
            self.update_from_stream(f, chunk_size)

    def update_from_stream(self, stream: BinaryIO, chunk_size: int = 64 * 1024) -> None:
        """从流更新哈希，读取到流结束为止"""
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            self._hasher.update(chunk)

    def hexdigest(self) -> str:
        """获取十六进制哈希值"""
        return self._hasher.hexdigest()

    @classmethod
    def hash_data(cls, data: Union[bytes, str], algorithm: str = "sha256") -> str:
        """便捷方法：计算数据哈希"""
        calculator = cls(algorithm)
        calculator.update(data)
        return calculator.hexdigest()

    @classmethod
    def hash_file(cls, file_path: Path, algorithm: str = "sha256") -> str:
        """便捷方法：计算文件哈希"""
        calculator = cls(algorithm)
        calculator.update_from_file(file_path)
        return calculator.hexdigest()


def format_checksum(hex_digest: str) -> str:
    """把十六进制摘要格式化为 `SHA256:<hex>` 字面量"""
    literal = f"{CHECKSUM_PREFIX}{hex_digest.lower()}"
    if not CHECKSUM_PATTERN.match(literal):
        raise ValueError(f"无效的 SHA-256 摘要: {hex_digest}")
    return literal


def parse_checksum(literal: str) -> str:
    """解析 `SHA256:<hex>` 字面量，返回十六进制摘要

    Raises:
        ValueError: 字面量格式不正确
    """
    match = CHECKSUM_PATTERN.match(literal.strip())
    if not match:
        raise ValueError(f"校验和格式不正确: {literal}")
    return match.group(1)
