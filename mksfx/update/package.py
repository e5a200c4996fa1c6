"""
增量更新包

组装 files/added、files/changed、UPDATE_MANIFEST 与 update.sh。
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from .. import __version__
from ..build.installer import sh_quote
from ..build.manifest import ManifestCodec, split_lines
from ..errors import UpdateError, ValidationError
from ..templates import read_template
from ..utils.logging import get_stage_logger, LogStage
from ..utils.paths import safe_path_join
from .delta import Delta, DiffStrategy

UPDATE_ROOT = "update"
UPDATE_MANIFEST_NAME = "UPDATE_MANIFEST"
UPDATE_SCRIPT_NAME = "update.sh"
ADDED_DIR = "files/added"
CHANGED_DIR = "files/changed"
REMOVED_FILES_KEY = "Removed-Files"


@dataclass(frozen=True)
class UpdateManifest:
    """UPDATE_MANIFEST 内容

    标量字段按 `Key: Value` 逐行写出，最后一行 `Removed-Files:` 之后
    每行一个被删除的相对路径。
    """
    files_added: int
    files_changed: int
    removed_files: Tuple[str, ...] = ()
    from_version: str = "unknown"
    to_version: str = "unknown"
    update_type: str = "incremental"

    @property
    def files_removed(self) -> int:
        return len(self.removed_files)

    def encode(self) -> str:
        for path in self.removed_files:
            if "\n" in path or "\r" in path:
                raise UpdateError(f"被删除的路径包含换行符，无法写入清单: {path!r}")
        header = ManifestCodec.encode([
            ("Update-Type", self.update_type),
            ("From-Version", self.from_version),
            ("To-Version", self.to_version),
            ("Files-Added", str(self.files_added)),
            ("Files-Changed", str(self.files_changed)),
            ("Files-Removed", str(self.files_removed)),
        ])
        removed = "".join(f"{path}\n" for path in self.removed_files)
        return f"{header}{REMOVED_FILES_KEY}:\n{removed}"

    @classmethod
    def decode(cls, text: str) -> 'UpdateManifest':
        """解析 UPDATE_MANIFEST

        Raises:
            ValidationError: 格式错误或计数字段不是整数
        """
        lines = split_lines(text)
        header: List[str] = []
        removed: List[str] = []
        in_removed = False
        for line in lines:
            if in_removed:
                if line:
                    removed.append(line)
            elif line == f"{REMOVED_FILES_KEY}:" or line.startswith(f"{REMOVED_FILES_KEY}: "):
                in_removed = True
                inline = line[len(REMOVED_FILES_KEY) + 1:].strip()
                if inline:
                    removed.append(inline)
            else:
                header.append(line)

        fields = dict(ManifestCodec.decode("\n".join(header)))
        try:
            files_added = int(fields.get("Files-Added", "0"))
            files_changed = int(fields.get("Files-Changed", "0"))
        except ValueError as e:
            raise ValidationError(f"{UPDATE_MANIFEST_NAME} 计数字段无效: {e}") from e

        return cls(
            files_added=files_added,
            files_changed=files_changed,
            removed_files=tuple(removed),
            from_version=fields.get("From-Version", "unknown"),
            to_version=fields.get("To-Version", "unknown"),
            update_type=fields.get("Update-Type", "incremental"),
        )


def render_update_script(from_version: str, to_version: str) -> str:
    """生成 update.sh 文本"""
    return (
        read_template(UPDATE_SCRIPT_NAME)
        .replace("@@MKSFX_VERSION@@", __version__)
        .replace("@@FROM_VERSION@@", sh_quote(from_version))
        .replace("@@TO_VERSION@@", sh_quote(to_version))
    )


def build_update_package(
    update_dir: Path,
    delta: Delta,
    old_root: Path,
    new_root: Path,
    strategy: DiffStrategy,
    from_version: str = "unknown",
    to_version: str = "unknown",
) -> UpdateManifest:
    """在 update_dir 中组装更新包目录

    Returns:
        UpdateManifest: 写入的更新清单
    """
    update_dir = Path(update_dir)
    added_dir = update_dir / ADDED_DIR
    changed_dir = update_dir / CHANGED_DIR
    added_dir.mkdir(parents=True, exist_ok=True)
    changed_dir.mkdir(parents=True, exist_ok=True)

    logger = get_stage_logger(LogStage.PACKAGE)
    for relative in delta.added:
        logger.debug(f"新增: {relative}")
        strategy.materialize(None, new_root / relative, safe_path_join(added_dir, relative))

    for relative in delta.changed:
        logger.debug(f"变更: {relative}")
        strategy.materialize(old_root / relative, new_root / relative, safe_path_join(changed_dir, relative))

    manifest = UpdateManifest(
        files_added=len(delta.added),
        files_changed=len(delta.changed),
        removed_files=delta.removed,
        from_version=from_version,
        to_version=to_version,
    )
    (update_dir / UPDATE_MANIFEST_NAME).write_text(manifest.encode(), encoding="utf-8")

    script_path = update_dir / UPDATE_SCRIPT_NAME
    script_path.write_text(render_update_script(from_version, to_version), encoding="utf-8")
    os.chmod(script_path, 0o755)
    return manifest
