"""
配置加载器

负责从 YAML 文件加载构建配置并进行验证。
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import MksfxError
from .schema import BuildOptions


class ConfigError(MksfxError):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    def format_errors(self) -> str:
        """格式化错误信息为人类可读的格式"""
        formatted = []
        for error in self.errors:
            loc = " -> ".join(str(item) for item in error.get('loc', []))
            msg = error.get('msg', '未知错误')
            if loc:
                formatted.append(f"字段 '{loc}': {msg}")
            else:
                formatted.append(f"根级别: {msg}")
        return "; ".join(formatted)

    def __str__(self) -> str:
        details = self.format_errors()
        base = super().__str__()
        return f"{base}: {details}" if details else base


def validate_options(data: Dict[str, Any]) -> BuildOptions:
    """用 Pydantic 校验选项字典，错误统一转换为 ConfigValidationError"""
    try:
        return BuildOptions.from_dict(data)
    except PydanticValidationError as e:
        raise ConfigValidationError("配置验证失败", [dict(err) for err in e.errors()]) from e


class ConfigLoader:
    """构建配置加载器"""

    def __init__(self):
        self.yaml = YAML()
        self.yaml.preserve_quotes = True
        self.yaml.width = 4096

    def load_raw(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """读取 YAML 文件为普通字典（未验证）

        相对的 output 路径按配置文件所在目录解析。

        Raises:
            ConfigError: 文件缺失、格式错误或根节点不是字典
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"配置文件不存在: {config_path}")

        if not config_path.is_file():
            raise ConfigError(f"配置路径不是文件: {config_path}")

        if config_path.suffix.lower() not in ['.yaml', '.yml']:
            raise ConfigError(f"配置文件必须是 .yaml 或 .yml 格式: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw_data = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigError(f"YAML 解析错误: {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigError(f"配置文件不是有效的 UTF-8 文本: {config_path}") from e
        except OSError as e:
            raise ConfigError(f"读取配置文件失败: {e}") from e

        if raw_data is None:
            raise ConfigError("配置文件为空")

        if not isinstance(raw_data, dict):
            raise ConfigError("配置文件根级别必须是对象/字典格式")

        data = _plain(raw_data)
        output = data.get('output')
        if isinstance(output, str) and output and not Path(output).is_absolute():
            data['output'] = str((config_path.parent / output).resolve())
        return data

    def load_from_file(self, config_path: Union[str, Path]) -> BuildOptions:
        """从文件加载并验证构建配置"""
        return validate_options(self.load_raw(config_path))

    def save_to_file(self, options: BuildOptions, output_path: Union[str, Path]) -> None:
        """保存构建配置到 YAML 文件"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                self.yaml.dump(options.to_dict(), f)
        except OSError as e:
            raise ConfigError(f"保存配置文件失败: {e}") from e


def _plain(obj: Any) -> Any:
    """把 ruamel 的 CommentedMap/CommentedSeq 转换为普通容器"""
    if isinstance(obj, dict):
        return {str(k): _plain(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_plain(item) for item in obj]
    return obj


# 全局加载器实例
config_loader = ConfigLoader()


def load_config(config_path: Union[str, Path]) -> BuildOptions:
    """便捷函数：加载构建配置文件"""
    return config_loader.load_from_file(config_path)


def load_config_with_overrides(
    config_path: Optional[Union[str, Path]],
    overrides: Dict[str, Any],
) -> BuildOptions:
    """加载配置文件（可选）并用命令行参数覆盖

    overrides 中值为 None 的项视为未指定。compression 与 metadata 按键合并，
    exclude 追加到配置文件中的列表之后。
    """
    data: Dict[str, Any] = config_loader.load_raw(config_path) if config_path else {}

    for key, value in overrides.items():
        if value is None:
            continue
        if key == 'compression' and isinstance(value, dict):
            merged = dict(data.get('compression') or {})
            merged.update({k: v for k, v in value.items() if v is not None})
            data['compression'] = merged
        elif key == 'metadata' and isinstance(value, dict):
            merged = dict(data.get('metadata') or {})
            merged.update(value)
            data['metadata'] = merged
        elif key == 'exclude' and isinstance(value, list):
            data['exclude'] = list(data.get('exclude') or []) + list(value)
        else:
            data[key] = value

    return validate_options(data)


def save_config(options: BuildOptions, output_path: Union[str, Path]) -> None:
    """便捷函数：保存构建配置文件"""
    config_loader.save_to_file(options, output_path)
