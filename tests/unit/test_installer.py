"""
安装脚本生成单元测试
"""

import pytest

from mksfx import __version__
from mksfx.build.installer import read_embedded_checksum, render_installer, sh_quote
from mksfx.config.schema import CompressionAlgorithm
from mksfx.errors import BuildError, ValidationError


DIGEST = "0123456789abcdef" * 4


def render(**overrides):
    params = dict(
        checksum=DIGEST,
        version="2.0.0",
        entrypoint="bootstrap.sh",
        payload_file="payload.tar.gz",
        algorithm=CompressionAlgorithm.GZIP,
    )
    params.update(overrides)
    return render_installer(**params)


class TestRenderInstaller:
    """render_installer 测试"""

    def test_embeds_checksum_once(self):
        """测试校验和字面量恰好出现一次且占位符被替换"""
        script = render()
        assert script.count(f'EMBEDDED_CHECKSUM="SHA256:{DIGEST}"') == 1
        assert 'EMBEDDED_CHECKSUM="PLACEHOLDER"' not in script
        assert read_embedded_checksum(script) == DIGEST

    def test_substitutes_tokens(self):
        script = render(version="1.0-rc1", entrypoint="setup/run.sh")
        assert script.startswith("#!/bin/sh\n")
        assert 'PAYLOAD_VERSION="1.0-rc1"' in script
        assert 'ENTRYPOINT="setup/run.sh"' in script
        assert 'PAYLOAD_FILE="payload.tar.gz"' in script
        assert 'DECOMPRESS="gzip -dc"' in script
        assert __version__ in script
        assert "@@" not in script

    def test_zstd_decompressor(self):
        script = render(payload_file="payload.tar.zst", algorithm=CompressionAlgorithm.ZSTD)
        assert 'DECOMPRESS="zstd -dc"' in script

    def test_shell_special_characters_escaped(self):
        """测试版本号中的 shell 特殊字符被转义"""
        script = render(version='1.0 "$(rm -rf /)"')
        assert 'PAYLOAD_VERSION="1.0 \\"\\$(rm -rf /)\\""' in script

    def test_template_without_placeholder(self, monkeypatch):
        """测试模板缺少占位行时报错"""
        monkeypatch.setattr("mksfx.build.installer.read_template", lambda name: "#!/bin/sh\n")
        with pytest.raises(BuildError):
            render()


class TestReadEmbeddedChecksum:
    """read_embedded_checksum 测试"""

    def test_missing(self):
        with pytest.raises(ValidationError, match="缺少"):
            read_embedded_checksum("#!/bin/sh\necho hi\n")

    def test_placeholder_is_invalid(self):
        with pytest.raises(ValidationError, match="无效"):
            read_embedded_checksum('EMBEDDED_CHECKSUM="PLACEHOLDER"\n')

    def test_duplicate(self):
        line = f'EMBEDDED_CHECKSUM="SHA256:{DIGEST}"\n'
        with pytest.raises(ValidationError, match="多个"):
            read_embedded_checksum(line + line)


class TestShQuote:
    """sh_quote 测试"""

    @pytest.mark.parametrize("raw, quoted", [
        ("plain", "plain"),
        ('a"b', 'a\\"b'),
        ("$HOME", "\\$HOME"),
        ("`id`", "\\`id\\`"),
        ("back\\slash", "back\\\\slash"),
    ])
    def test_quote(self, raw, quoted):
        assert sh_quote(raw) == quoted
