"""
安装脚本生成

基于 POSIX sh 模板生成 installer.sh，并负责嵌入 / 读取校验和字面量。
"""

import re

from .. import __version__
from ..config.schema import CompressionAlgorithm
from ..errors import BuildError, ValidationError
from ..templates import read_template
from .hashing import format_checksum, parse_checksum

INSTALLER_NAME = "installer.sh"
CHECKSUM_LINE_PLACEHOLDER = 'EMBEDDED_CHECKSUM="PLACEHOLDER"'
CHECKSUM_LINE_PATTERN = re.compile(r'^EMBEDDED_CHECKSUM="([^"\n]*)"$', re.MULTILINE)

DECOMPRESS_COMMANDS = {
    CompressionAlgorithm.GZIP: "gzip -dc",
    CompressionAlgorithm.ZSTD: "zstd -dc",
}


def sh_quote(value: str) -> str:
    """转义双引号字符串中的 shell 特殊字符"""
    return re.sub(r'(["\\$`])', r'\\\1', value)


def render_installer(
    checksum: str,
    version: str,
    entrypoint: str,
    payload_file: str,
    algorithm: CompressionAlgorithm,
) -> str:
    """生成安装脚本文本

    Args:
        checksum: 最终载荷归档的十六进制 SHA-256
        version: 载荷版本号
        entrypoint: 入口脚本相对路径
        payload_file: 载荷归档文件名
        algorithm: 载荷压缩算法

    Raises:
        BuildError: 模板缺少唯一的校验和占位行
    """
    template = read_template(INSTALLER_NAME)
    if template.count(CHECKSUM_LINE_PLACEHOLDER) != 1:
        raise BuildError("安装脚本模板必须恰好包含一个校验和占位行")

    script = (
        template
        .replace("@@MKSFX_VERSION@@", __version__)
        .replace("@@PAYLOAD_VERSION@@", sh_quote(version))
        .replace("@@PAYLOAD_FILE@@", sh_quote(payload_file))
        .replace("@@DECOMPRESS@@", DECOMPRESS_COMMANDS[CompressionAlgorithm(algorithm)])
        .replace("@@ENTRYPOINT@@", sh_quote(entrypoint))
    )
    return script.replace(
        CHECKSUM_LINE_PLACEHOLDER,
        f'EMBEDDED_CHECKSUM="{format_checksum(checksum)}"',
    )


def read_embedded_checksum(script: str) -> str:
    """从安装脚本中读取嵌入的校验和

    Returns:
        str: 十六进制 SHA-256

    Raises:
        ValidationError: 缺少、重复或格式不正确
    """
    matches = CHECKSUM_LINE_PATTERN.findall(script)
    if not matches:
        raise ValidationError("安装脚本中缺少嵌入的校验和")
    if len(matches) > 1:
        raise ValidationError("安装脚本中嵌入了多个校验和")
    try:
        return parse_checksum(matches[0])
    except ValueError as e:
        raise ValidationError(f"安装脚本中的校验和无效: {matches[0]}") from e
