"""共享测试夹具"""

from pathlib import Path

import pytest

from mksfx.build.builder import Builder
from mksfx.config.schema import BuildOptions


BOOTSTRAP = "#!/bin/sh\necho installing\n"


def _make_tree(root: Path, files: dict) -> Path:
    """按 {相对路径: 内容} 创建目录树"""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    return root


@pytest.fixture
def make_tree():
    """返回目录树构造函数 make_tree(root, files)"""
    return _make_tree


@pytest.fixture
def source_dir(tmp_path):
    """包含入口脚本与两个普通文件的源目录"""
    return _make_tree(tmp_path / "src", {
        "bootstrap.sh": BOOTSTRAP,
        "files/app.txt": "hello\n",
        "files/data/config.ini": "[main]\nkey=value\n",
    })


@pytest.fixture
def build_bundle(tmp_path):
    """构建辅助函数：build_bundle(files, name, **options) -> BuildResult"""
    def _build(files: dict, name: str = "bundle.tar.gz", **options):
        source = _make_tree(tmp_path / f"src-{name}", files)
        opts = BuildOptions(output=tmp_path / name, **options)
        return Builder().build(source, opts)
    return _build
