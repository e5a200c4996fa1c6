"""
构建器单元测试

测试两遍校验和构建、verify 与 info。
"""

import hashlib
import io
import shutil
import subprocess
import tarfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mksfx.build.builder import Builder
from mksfx.build.installer import read_embedded_checksum
from mksfx.config.schema import BuildOptions
from mksfx.errors import ArchiveError, BuildError, ValidationError


BOOTSTRAP = "#!/bin/sh\necho installing\n"


def read_bundle(path: Path):
    """返回 (installer.sh 文本, 载荷成员名, 载荷归档字节)"""
    with tarfile.open(path, "r:gz") as tar:
        names = tar.getnames()
        installer = tar.extractfile("bundle/installer.sh").read().decode("utf-8")
        payload_name = next(n for n in names if n.startswith("bundle/payload."))
        payload = tar.extractfile(payload_name).read()
    return installer, payload_name, payload


def read_payload_member(payload: bytes, name: str) -> bytes:
    with tarfile.open(fileobj=io.BytesIO(payload), mode="r:*") as tar:
        return tar.extractfile(name).read()


def write_bundle(path: Path, members: dict) -> Path:
    """用给定成员手工拼一个分发包"""
    with tarfile.open(path, "w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


class TestBuild:
    """Builder.build 测试"""

    def test_three_file_build_then_verify(self, source_dir, tmp_path):
        """测试三文件源目录构建后校验通过"""
        output = tmp_path / "app-2.0.0.tar.gz"
        options = BuildOptions(output=output, version="2.0.0", entrypoint="bootstrap.sh")

        result = Builder().build(source_dir, options)

        assert result.version == "2.0.0"
        assert result.entrypoint == "bootstrap.sh"
        assert result.file_count == 3
        assert output.is_file()
        assert result.size == output.stat().st_size

        verified = Builder().verify(output)
        assert verified.version == "2.0.0"
        assert verified.checksum == result.checksum

    def test_bundle_layout(self, source_dir, tmp_path):
        """测试分发包只包含 installer.sh 与载荷归档"""
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output))

        with tarfile.open(output, "r:gz") as tar:
            assert sorted(tar.getnames()) == ["bundle/installer.sh", "bundle/payload.tar.gz"]
            assert tar.getmember("bundle/installer.sh").mode & 0o111

    def test_installer_checksum_matches_payload(self, source_dir, tmp_path):
        """测试 installer.sh 中嵌入的校验和等于随包载荷归档的 SHA-256"""
        output = tmp_path / "out.tar.gz"
        result = Builder().build(source_dir, BuildOptions(output=output))

        installer, _, payload = read_bundle(output)
        embedded = read_embedded_checksum(installer)

        assert embedded == hashlib.sha256(payload).hexdigest()
        assert embedded == result.checksum

    def test_manifest_records_seal_checksum(self, source_dir, tmp_path):
        """测试 MANIFEST 记录第一遍封签摘要，与最终摘要不同"""
        output = tmp_path / "out.tar.gz"
        result = Builder().build(source_dir, BuildOptions(output=output, version="1.4"))

        _, _, payload = read_bundle(output)
        manifest = read_payload_member(payload, "payload/MANIFEST").decode("utf-8")

        assert f"Payload-Checksum: SHA256:{result.seal_checksum}" in manifest.splitlines()
        assert "PLACEHOLDER" not in manifest
        assert result.seal_checksum != result.checksum

    def test_manifest_fields_and_metadata(self, source_dir, tmp_path):
        output = tmp_path / "out.tar.gz"
        options = BuildOptions(output=output, version="3.1", metadata={"Vendor": "ACME", "Channel": "beta"})
        Builder().build(source_dir, options)

        _, _, payload = read_bundle(output)
        lines = read_payload_member(payload, "payload/MANIFEST").decode("utf-8").splitlines()

        assert lines[0] == "Payload-Version: 3.1"
        assert lines[1].startswith("Payload-Checksum: SHA256:")
        assert lines[2] == "Bootstrap-Entrypoint: bootstrap.sh"
        assert lines[3:] == ["Vendor: ACME", "Channel: beta"]

    def test_entrypoint_made_executable(self, make_tree, tmp_path):
        """测试入口脚本在载荷中具有可执行权限"""
        source = make_tree(tmp_path / "src", {"setup/install.sh": BOOTSTRAP})
        output = tmp_path / "out.tar.gz"
        Builder().build(source, BuildOptions(output=output, entrypoint="setup/install.sh"))

        _, _, payload = read_bundle(output)
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as tar:
            assert tar.getmember("payload/setup/install.sh").mode & 0o777 == 0o755

    def test_source_manifest_replaced(self, make_tree, tmp_path):
        """测试源目录中的 MANIFEST 被生成的 MANIFEST 替换"""
        source = make_tree(tmp_path / "src", {"bootstrap.sh": BOOTSTRAP, "MANIFEST": "stale: yes\n"})
        output = tmp_path / "out.tar.gz"
        Builder().build(source, BuildOptions(output=output))

        _, _, payload = read_bundle(output)
        manifest = read_payload_member(payload, "payload/MANIFEST").decode("utf-8")
        assert "stale" not in manifest

    def test_exclude_never_drops_entrypoint(self, make_tree, tmp_path):
        source = make_tree(tmp_path / "src", {"bootstrap.sh": BOOTSTRAP, "debug.sh": "x", "a.log": "log"})
        output = tmp_path / "out.tar.gz"
        Builder().build(source, BuildOptions(output=output, exclude=["*.sh", "*.log"]))

        info = Builder().info(output, list_files=True)
        assert info.files == ["MANIFEST", "bootstrap.sh"]

    def test_zstd_payload(self, source_dir, tmp_path):
        """测试 zstd 载荷构建与校验"""
        output = tmp_path / "out.tar.gz"
        options = BuildOptions(output=output, compression={"algo": "zstd", "level": 3})
        Builder().build(source_dir, options)

        installer, payload_name, payload = read_bundle(output)
        assert payload_name == "bundle/payload.tar.zst"
        assert "zstd -dc" in installer
        assert read_embedded_checksum(installer) == hashlib.sha256(payload).hexdigest()
        assert Builder().verify(output).entrypoint == "bootstrap.sh"

    def test_overwrites_existing_output(self, source_dir, tmp_path):
        output = tmp_path / "out.tar.gz"
        output.write_bytes(b"old")
        Builder().build(source_dir, BuildOptions(output=output))
        Builder().verify(output)

    def test_progress_callback(self, source_dir, tmp_path):
        callback = MagicMock()
        Builder(progress_callback=callback).build(source_dir, BuildOptions(output=tmp_path / "out.tar.gz"))

        assert callback.called
        stage, current, total, _ = callback.call_args_list[-1].args
        assert (current, total) == (100, 100)


class TestBuildErrors:
    """构建失败路径测试"""

    def test_missing_entrypoint(self, make_tree, tmp_path):
        """测试入口脚本缺失时报错且不产生输出文件"""
        source = make_tree(tmp_path / "src", {"readme.txt": "hi"})
        output = tmp_path / "out.tar.gz"

        with pytest.raises(BuildError) as exc_info:
            Builder().build(source, BuildOptions(output=output))

        assert "bootstrap.sh" in str(exc_info.value)
        assert not output.exists()

    def test_missing_source_dir(self, tmp_path):
        with pytest.raises(BuildError, match="源目录不存在"):
            Builder().build(tmp_path / "nope", BuildOptions(output=tmp_path / "out.tar.gz"))

    def test_output_is_directory(self, source_dir, tmp_path):
        output = tmp_path / "outdir"
        output.mkdir()
        with pytest.raises(BuildError, match="目录"):
            Builder().build(source_dir, BuildOptions(output=output))

    def test_archive_failure_leaves_no_output(self, source_dir, tmp_path):
        """测试归档失败转换为 BuildError 且不留下输出文件"""
        output = tmp_path / "out.tar.gz"
        with patch("mksfx.build.builder.archive_payload", side_effect=ArchiveError("disk full")):
            with pytest.raises(BuildError, match="disk full"):
                Builder().build(source_dir, BuildOptions(output=output))

        assert not output.exists()
        assert list(tmp_path.glob(".out.tar.gz.*")) == []


class TestVerify:
    """Builder.verify 测试"""

    def test_missing_bundle(self, tmp_path):
        with pytest.raises(ValidationError, match="不存在"):
            Builder().verify(tmp_path / "missing.tar.gz")

    def test_tampered_bundle_bytes(self, source_dir, tmp_path):
        """测试篡改分发包中间字节后校验失败"""
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output))

        data = bytearray(output.read_bytes())
        data[len(data) // 2] ^= 0xFF
        output.write_bytes(bytes(data))

        with pytest.raises(ValidationError):
            Builder().verify(output)

    def test_swapped_payload(self, source_dir, make_tree, tmp_path):
        """测试载荷被替换为其它合法归档时校验和不匹配"""
        first = tmp_path / "first.tar.gz"
        Builder().build(source_dir, BuildOptions(output=first, version="1"))
        other_source = make_tree(tmp_path / "other", {"bootstrap.sh": "#!/bin/sh\necho other\n"})
        second = tmp_path / "second.tar.gz"
        Builder().build(other_source, BuildOptions(output=second, version="2"))

        installer, _, _ = read_bundle(first)
        _, _, other_payload = read_bundle(second)
        forged = write_bundle(tmp_path / "forged.tar.gz", {
            "bundle/installer.sh": installer.encode("utf-8"),
            "bundle/payload.tar.gz": other_payload,
        })

        with pytest.raises(ValidationError, match="校验和不匹配"):
            Builder().verify(forged)

    def test_missing_installer(self, source_dir, tmp_path):
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output))
        _, _, payload = read_bundle(output)
        broken = write_bundle(tmp_path / "broken.tar.gz", {"bundle/payload.tar.gz": payload})

        with pytest.raises(ValidationError, match="installer.sh"):
            Builder().verify(broken)

    def test_extra_member_rejected(self, source_dir, tmp_path):
        """测试分发包中多出的成员导致校验失败"""
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output))
        installer, payload_name, payload = read_bundle(output)
        tampered = write_bundle(tmp_path / "tampered.tar.gz", {
            "bundle/installer.sh": installer.encode("utf-8"),
            payload_name: payload,
            "bundle/extra.sh": b"#!/bin/sh\nrm -rf /tmp/x\n",
        })

        with pytest.raises(ValidationError, match="bundle/extra.sh"):
            Builder().verify(tampered)

    def test_unicode_line_breaks_in_version_and_metadata(self, source_dir, tmp_path):
        """测试含 \\u2028、\\x0c 等字符的版本号与元数据构建后仍能校验通过"""
        output = tmp_path / "out.tar.gz"
        options = BuildOptions(output=output, version="1.0\u2028beta", metadata={"Note": "a\x0cb"})
        Builder().build(source_dir, options)

        result = Builder().verify(output)

        assert result.version == "1.0\u2028beta"
        assert ("Note", "a\x0cb") in result.metadata
        assert Builder().info(output).version == "1.0\u2028beta"

    def test_not_a_bundle(self, tmp_path):
        bogus = tmp_path / "bogus.tar.gz"
        bogus.write_bytes(b"plain text")
        with pytest.raises(ValidationError):
            Builder().verify(bogus)


class TestInfo:
    """Builder.info 测试"""

    def test_info_sizes(self, source_dir, tmp_path):
        """测试总大小 = 载荷大小 + 开销，百分比保留两位小数"""
        output = tmp_path / "out.tar.gz"
        result = Builder().build(source_dir, BuildOptions(output=output, version="2.0.0"))

        info = Builder().info(output)

        assert info.version == "2.0.0"
        assert info.checksum == result.checksum
        assert info.manifest_checksum == f"SHA256:{result.seal_checksum}"
        assert info.total_size == output.stat().st_size
        assert info.total_size == info.payload_size + info.overhead
        assert info.overhead_percent == round(info.overhead / info.payload_size * 100, 2)
        assert info.payload_file == "payload.tar.gz"
        assert info.files == []

    def test_info_file_list(self, source_dir, tmp_path):
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output))

        info = Builder().info(output, list_files=True)
        assert info.files == ["MANIFEST", "bootstrap.sh", "files/app.txt", "files/data/config.ini"]
        assert info.file_count == 4

    def test_info_does_not_check_checksum(self, source_dir, make_tree, tmp_path):
        """测试 info 只读取信息，不校验校验和"""
        first = tmp_path / "first.tar.gz"
        Builder().build(source_dir, BuildOptions(output=first, version="1"))
        second = tmp_path / "second.tar.gz"
        Builder().build(source_dir, BuildOptions(output=second, version="2"))

        installer, _, _ = read_bundle(first)
        _, _, other_payload = read_bundle(second)
        forged = write_bundle(tmp_path / "forged.tar.gz", {
            "bundle/installer.sh": installer.encode("utf-8"),
            "bundle/payload.tar.gz": other_payload,
        })

        assert Builder().info(forged).version == "2"


@pytest.mark.skipif(
    not all(shutil.which(tool) for tool in ("sh", "tar", "gzip"))
    or not (shutil.which("sha256sum") or shutil.which("shasum")),
    reason="需要 POSIX sh、tar、gzip 与 sha256sum/shasum",
)
class TestInstallerScript:
    """生成的 installer.sh 端到端测试"""

    def _unpack(self, source_dir, tmp_path):
        output = tmp_path / "out.tar.gz"
        Builder().build(source_dir, BuildOptions(output=output, version="2.0.0"))
        with tarfile.open(output, "r:gz") as tar:
            tar.extractall(tmp_path / "x", filter="data")
        return tmp_path / "x" / "bundle"

    def test_verify_and_run(self, source_dir, tmp_path):
        bundle_dir = self._unpack(source_dir, tmp_path)

        verify = subprocess.run(["sh", "installer.sh", "--verify"], cwd=bundle_dir, capture_output=True, text=True)
        assert verify.returncode == 0
        assert "Checksum OK" in verify.stdout

        run = subprocess.run(["sh", "installer.sh", "--run"], cwd=bundle_dir, capture_output=True, text=True)
        assert run.returncode == 0
        assert "installing" in run.stdout
        assert (bundle_dir / "payload" / "files" / "app.txt").read_text() == "hello\n"

    def test_tampered_payload_rejected(self, source_dir, tmp_path):
        """测试载荷被修改后安装脚本拒绝执行"""
        bundle_dir = self._unpack(source_dir, tmp_path)
        payload = bundle_dir / "payload.tar.gz"
        payload.write_bytes(payload.read_bytes() + b"\0")

        result = subprocess.run(["sh", "installer.sh", "--run"], cwd=bundle_dir, capture_output=True, text=True)
        assert result.returncode != 0
        assert "checksum mismatch" in result.stderr
        assert not (bundle_dir / "payload").exists()
