"""
哈希工具单元测试
"""

import hashlib
import io

import pytest

from mksfx.build.hashing import HashCalculator, format_checksum, parse_checksum


class TestHashCalculator:
    """HashCalculator 测试"""

    def test_hash_data_matches_hashlib(self):
        assert HashCalculator.hash_data(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_hash_str_as_utf8(self):
        """测试字符串按 UTF-8 编码"""
        assert HashCalculator.hash_data("中文") == hashlib.sha256("中文".encode("utf-8")).hexdigest()

    def test_hash_file(self, tmp_path):
        data = b"x" * (200 * 1024 + 7)
        path = tmp_path / "blob.bin"
        path.write_bytes(data)
        assert HashCalculator.hash_file(path) == hashlib.sha256(data).hexdigest()

    def test_incremental_update(self):
        """测试分块更新与一次性计算结果一致"""
        calculator = HashCalculator()
        calculator.update(b"hello ")
        calculator.update_from_stream(io.BytesIO(b"world"), chunk_size=2)
        assert calculator.hexdigest() == hashlib.sha256(b"hello world").hexdigest()

    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            HashCalculator("not-a-hash")


class TestChecksumLiteral:
    """SHA256:<hex> 字面量测试"""

    def test_format_and_parse(self):
        digest = hashlib.sha256(b"").hexdigest()
        literal = format_checksum(digest)
        assert literal == f"SHA256:{digest}"
        assert parse_checksum(literal) == digest

    def test_format_lowercases(self):
        assert format_checksum("AB" * 32) == "SHA256:" + "ab" * 32

    @pytest.mark.parametrize("literal", ["PLACEHOLDER", "SHA256:abc", "sha256:" + "a" * 64, "SHA256:" + "g" * 64])
    def test_parse_rejects_invalid(self, literal):
        with pytest.raises(ValueError):
            parse_checksum(literal)
