"""
错误类型

所有对外暴露的异常都继承自 MksfxError，CLI 只需捕获该基类即可。
"""


class MksfxError(Exception):
    """mksfx 错误基类"""
    pass


class BuildError(MksfxError):
    """构建错误（源目录缺失、入口脚本缺失、归档失败）"""
    pass


class UpdateError(MksfxError):
    """增量更新错误（输入归档缺失、归档失败）"""
    pass


class ValidationError(MksfxError):
    """校验错误（MANIFEST 格式错误、校验和不匹配、归档成员缺失）"""
    pass


class ArchiveError(MksfxError):
    """归档编解码失败

    仅在内部使用，由调用方在操作边界转换为 BuildError / UpdateError /
    ValidationError。
    """
    pass
