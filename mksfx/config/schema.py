"""
选项 Schema 定义

使用 Pydantic 定义构建与增量更新的选项模型，支持验证和类型检查。
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_ENTRYPOINT = "bootstrap.sh"
DEFAULT_OUTPUT = "installer.tar.gz"

# MANIFEST 中由构建器写入的键，不允许通过元数据覆盖
RESERVED_MANIFEST_KEYS = ("Payload-Version", "Payload-Checksum", "Bootstrap-Entrypoint")


class CompressionAlgorithm(str, Enum):
    """载荷压缩算法枚举"""
    GZIP = "gzip"
    ZSTD = "zstd"


class DeltaAlgorithm(str, Enum):
    """增量算法枚举

    目前只有整文件替换一种实现，auto 与 full 等价。
    """
    AUTO = "auto"
    FULL = "full"


_LEVEL_LIMITS = {
    CompressionAlgorithm.GZIP: (1, 9),
    CompressionAlgorithm.ZSTD: (1, 22),
}


class CompressionModel(BaseModel):
    """压缩配置模型"""
    algo: CompressionAlgorithm = Field(CompressionAlgorithm.GZIP, description="载荷压缩算法")
    level: int = Field(9, description="压缩级别（gzip 1-9，zstd 1-22）")

    @model_validator(mode='after')
    def validate_level(self) -> 'CompressionModel':
        """按算法检查压缩级别范围"""
        low, high = _LEVEL_LIMITS[self.algo]
        if not low <= self.level <= high:
            raise ValueError(f"{self.algo.value} 压缩级别必须在 {low}-{high} 之间，当前为 {self.level}")
        return self


def _reject_newline(value: str, what: str) -> str:
    if "\n" in value or "\r" in value:
        raise ValueError(f"{what}不能包含换行符")
    return value


class BuildOptions(BaseModel):
    """构建选项模型"""
    output: Path = Field(Path(DEFAULT_OUTPUT), description="输出文件路径")
    version: str = Field("1.0.0", description="载荷版本号", min_length=1, max_length=100)
    entrypoint: str = Field(DEFAULT_ENTRYPOINT, description="入口脚本（相对源目录）", min_length=1)
    compression: CompressionModel = Field(default_factory=CompressionModel, description="压缩配置")
    metadata: Dict[str, str] = Field(default_factory=dict, description="附加 MANIFEST 元数据")
    exclude: List[str] = Field(default_factory=list, description="排除模式列表（glob 格式）")

    model_config = {
        "extra": "forbid",
        "validate_assignment": True,
        "str_strip_whitespace": True,
    }

    @field_validator('version', mode='before')
    @classmethod
    def validate_version(cls, v: Any) -> Any:
        """版本号为自由格式，但必须是单行文本（YAML 中的数字按文本处理）"""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            _reject_newline(v, "版本号")
        return v

    @field_validator('entrypoint')
    @classmethod
    def validate_entrypoint(cls, v: str) -> str:
        """入口脚本必须是源目录内的相对路径"""
        _reject_newline(v, "入口脚本")
        path = PurePosixPath(v.replace('\\', '/'))
        if path.is_absolute():
            raise ValueError(f"入口脚本必须是相对路径: {v}")
        if any(part == ".." for part in path.parts):
            raise ValueError(f"入口脚本不能包含 '..': {v}")
        if str(path) in (".", "MANIFEST"):
            raise ValueError(f"入口脚本名称无效: {v}")
        return str(path)

    @field_validator('metadata', mode='before')
    @classmethod
    def validate_metadata(cls, v: Any) -> Any:
        """元数据键值必须能写成单行 `Key: Value`"""
        if not isinstance(v, dict):
            return v
        for key, value in v.items():
            key = str(key)
            if not key or key != key.strip():
                raise ValueError(f"元数据键无效: {key!r}")
            if ":" in key:
                raise ValueError(f"元数据键不能包含冒号: {key}")
            _reject_newline(key, "元数据键")
            _reject_newline(str(value), f"元数据 {key} 的值")
            if key in RESERVED_MANIFEST_KEYS:
                raise ValueError(f"元数据键 {key} 为保留字段")
        return {str(k): str(val) for k, val in v.items()}

    def to_dict(self) -> Dict[str, Any]:
        """转换为可写入 YAML 的字典"""
        data = self.model_dump(mode="json", exclude_none=True)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BuildOptions':
        """从字典创建选项实例"""
        return cls.model_validate(data)


class UpdateOptions(BaseModel):
    """增量更新选项模型"""
    output: Optional[Path] = Field(None, description="输出文件路径，缺省时按版本号生成")
    algorithm: DeltaAlgorithm = Field(DeltaAlgorithm.AUTO, description="增量算法")

    model_config = {
        "extra": "forbid",
    }
