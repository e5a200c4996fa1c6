"""
MANIFEST 编解码

MANIFEST 是嵌入每个载荷中的纯文本键值文件，每行一条 `Key: Value`。
必填键为 Payload-Version、Payload-Checksum、Bootstrap-Entrypoint，其余键
作为元数据原样保留（向前兼容）。
"""

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from ..errors import ValidationError
from .hashing import CHECKSUM_PATTERN, format_checksum

MANIFEST_NAME = "MANIFEST"
CHECKSUM_PLACEHOLDER = "PLACEHOLDER"
UNKNOWN = "unknown"

KEY_VERSION = "Payload-Version"
KEY_CHECKSUM = "Payload-Checksum"
KEY_ENTRYPOINT = "Bootstrap-Entrypoint"
REQUIRED_KEYS = (KEY_VERSION, KEY_CHECKSUM, KEY_ENTRYPOINT)

SEPARATOR = ": "

Fields = List[Tuple[str, str]]


class ManifestCodec:
    """行式 `Key: Value` 编解码器"""

    @staticmethod
    def encode(fields: Iterable[Tuple[str, str]]) -> str:
        """把有序键值对编码为文本

        Raises:
            ValidationError: 键重复、键为空或含冒号/换行、值含换行
        """
        seen = set()
        lines = []
        for key, value in fields:
            value = str(value)
            if not key or key != key.strip():
                raise ValidationError(f"MANIFEST 键无效: {key!r}")
            if ":" in key or "\n" in key or "\r" in key:
                raise ValidationError(f"MANIFEST 键不能包含冒号或换行: {key!r}")
            if "\n" in value or "\r" in value:
                raise ValidationError(f"MANIFEST 值不能包含换行: {key}")
            if key in seen:
                raise ValidationError(f"MANIFEST 键重复: {key}")
            seen.add(key)
            lines.append(f"{key}{SEPARATOR}{value}")
        return "\n".join(lines) + "\n" if lines else ""

    @staticmethod
    def decode(text: str) -> Fields:
        """把文本解码为有序键值对

        空行被忽略；`Key:`（无值）表示空值；未知键保留。

        Raises:
            ValidationError: 行格式错误或键重复
        """
        fields: Fields = []
        seen = set()
        for lineno, line in enumerate(split_lines(text), start=1):
            if not line.strip():
                continue
            parsed = _split_line(line)
            if parsed is None:
                raise ValidationError(f"MANIFEST 第 {lineno} 行格式错误: {line!r}")
            key, value = parsed
            if key in seen:
                raise ValidationError(f"MANIFEST 第 {lineno} 行键重复: {key}")
            seen.add(key)
            fields.append((key, value))
        return fields

    @staticmethod
    def extract_field(text: str, key: str, default: str = UNKNOWN) -> str:
        """宽松地提取单个字段（用于展示）

        其它行格式错误不影响结果；返回第一条匹配的值，找不到时返回 default。
        """
        for line in split_lines(text):
            parsed = _split_line(line)
            if parsed and parsed[0] == key:
                return parsed[1]
        return default


def split_lines(text: str) -> List[str]:
    """按 \\n 切分行并去掉行尾 \\r

    只有 \\n 是行分隔符，值中的其它 Unicode 分行字符（\\x0c、\\u2028 等）原样保留。
    """
    return [line.rstrip("\r") for line in text.split("\n")]


def _split_line(line: str) -> Optional[Tuple[str, str]]:
    if SEPARATOR in line:
        key, value = line.split(SEPARATOR, 1)
    elif line.endswith(":"):
        key, value = line[:-1], ""
    else:
        return None
    if not key or key != key.strip() or ":" in key:
        return None
    return key, value


@dataclass(frozen=True)
class Manifest:
    """载荷 MANIFEST（不可变值对象）"""
    version: str
    entrypoint: str
    checksum: str = CHECKSUM_PLACEHOLDER
    metadata: Tuple[Tuple[str, str], ...] = ()

    @property
    def is_finalized(self) -> bool:
        return self.checksum != CHECKSUM_PLACEHOLDER

    def with_checksum(self, hex_digest: str) -> 'Manifest':
        """返回写入了 `SHA256:<hex>` 校验和的新 MANIFEST"""
        return replace(self, checksum=format_checksum(hex_digest))

    def fields(self) -> Fields:
        return [
            (KEY_VERSION, self.version),
            (KEY_CHECKSUM, self.checksum),
            (KEY_ENTRYPOINT, self.entrypoint),
            *self.metadata,
        ]

    def encode(self) -> str:
        return ManifestCodec.encode(self.fields())

    @classmethod
    def decode(cls, text: str) -> 'Manifest':
        """解析并校验 MANIFEST 文本

        Raises:
            ValidationError: 格式错误、缺少必填键或校验和字段格式不正确
        """
        return cls.from_fields(ManifestCodec.decode(text))

    @classmethod
    def from_fields(cls, fields: Sequence[Tuple[str, str]]) -> 'Manifest':
        values = dict(fields)
        missing = [key for key in REQUIRED_KEYS if key not in values]
        if missing:
            raise ValidationError(f"MANIFEST 缺少必填字段: {', '.join(missing)}")

        checksum = values[KEY_CHECKSUM]
        if checksum != CHECKSUM_PLACEHOLDER and not CHECKSUM_PATTERN.match(checksum):
            raise ValidationError(f"MANIFEST 校验和字段格式不正确: {checksum}")

        return cls(
            version=values[KEY_VERSION],
            entrypoint=values[KEY_ENTRYPOINT],
            checksum=checksum,
            metadata=tuple((k, v) for k, v in fields if k not in REQUIRED_KEYS),
        )
