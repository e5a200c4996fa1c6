"""安装器、更新脚本与脚手架模板"""

from importlib import resources


def read_template(name: str) -> str:
    """读取随包分发的模板文本"""
    return resources.files(__name__).joinpath(name).read_text(encoding="utf-8")
