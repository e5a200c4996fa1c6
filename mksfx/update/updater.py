"""
增量更新生成器

解开新旧两个分发包，计算载荷差异，组装并打包增量更新归档。
"""

import re
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Union

from ..build.bundle import open_bundle
from ..build.codec import TarGzipCodec
from ..build.manifest import KEY_VERSION, MANIFEST_NAME, UNKNOWN, ManifestCodec
from ..config.schema import UpdateOptions
from ..errors import ArchiveError, UpdateError, ValidationError
from ..utils.logging import info, success, debug, LogStage
from ..utils.paths import expand_path, format_size, publish_file, scoped_temp_dir
from .delta import Delta, DeltaEngine, get_strategy
from .package import UPDATE_ROOT, build_update_package

ProgressCallback = Callable[[str, int, int, str], None]

VERSION_PATTERN = re.compile(r"(\d+\.\d+\.\d+)")


@dataclass
class UpdateResult:
    """增量更新结果"""
    output_path: Path
    size: int
    full_size: int
    savings: int
    savings_percent: float
    old_version: str
    new_version: str
    files_added: int
    files_changed: int
    files_removed: int
    delta: Delta
    build_time: float = 0.0


def version_from_filename(path: Union[str, Path], today: Optional[date] = None) -> str:
    """从文件名中提取 x.y.z 版本号，找不到时使用日期 YYYYMMDD"""
    match = VERSION_PATTERN.search(Path(path).name)
    if match:
        return match.group(1)
    return (today or date.today()).strftime("%Y%m%d")


def default_update_filename(old_bundle: Union[str, Path], new_bundle: Union[str, Path], today: Optional[date] = None) -> str:
    """按输入文件名推导默认输出文件名（尽力而为）"""
    old_version = version_from_filename(old_bundle, today)
    new_version = version_from_filename(new_bundle, today)
    return f"update-{old_version}-to-{new_version}.tar.gz"


def read_payload_version(payload_dir: Path) -> str:
    """读取载荷版本号，MANIFEST 缺失或无此字段时返回 unknown"""
    manifest_path = Path(payload_dir) / MANIFEST_NAME
    if not manifest_path.is_file():
        return UNKNOWN
    text = manifest_path.read_text(encoding="utf-8", errors="replace")
    return ManifestCodec.extract_field(text, KEY_VERSION, UNKNOWN)


class Updater:
    """增量更新生成器"""

    def __init__(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        engine: Optional[DeltaEngine] = None,
    ):
        self.progress_callback = progress_callback
        self.engine = engine or DeltaEngine()

    def _progress(self, stage: str, current: int, message: str) -> None:
        if self.progress_callback:
            self.progress_callback(stage, current, 100, message)

    def create_update(
        self,
        old_bundle: Union[str, Path],
        new_bundle: Union[str, Path],
        options: Optional[UpdateOptions] = None,
    ) -> UpdateResult:
        """生成从 old_bundle 到 new_bundle 的增量更新归档

        Raises:
            UpdateError: 输入分发包缺失、损坏或打包失败
        """
        options = options or UpdateOptions()
        old_bundle = expand_path(old_bundle)
        new_bundle = expand_path(new_bundle)

        if not old_bundle.is_file():
            raise UpdateError(f"旧版本分发包不存在: {old_bundle}")
        if not new_bundle.is_file():
            raise UpdateError(f"新版本分发包不存在: {new_bundle}")

        output_path = Path(options.output) if options.output else Path(default_update_filename(old_bundle, new_bundle))
        strategy = get_strategy(options.algorithm)
        start_time = time.time()

        info(f"生成增量更新: {old_bundle.name} -> {new_bundle.name}", stage=LogStage.INIT)
        debug(f"增量策略: {strategy.name}", stage=LogStage.INIT)

        try:
            with scoped_temp_dir("mksfx_update_") as tmp:
                self._progress("解包", 0, "解开旧版本分发包...")
                info("解开旧版本分发包", stage=LogStage.EXTRACT)
                old_root = open_bundle(old_bundle, tmp / "old", strict=False).ensure_payload_tree()

                self._progress("解包", 20, "解开新版本分发包...")
                info("解开新版本分发包", stage=LogStage.EXTRACT)
                new_root = open_bundle(new_bundle, tmp / "new", strict=False).ensure_payload_tree()

                self._progress("计算差异", 40, "比较文件...")
                info("计算差异", stage=LogStage.DELTA)
                delta = self.engine.compute_delta(old_root, new_root)
                debug(f"差异统计: {delta.summary()}", stage=LogStage.DELTA)

                old_version = read_payload_version(old_root)
                new_version = read_payload_version(new_root)

                self._progress("组装更新包", 60, "复制新增与变更文件...")
                info("组装更新包", stage=LogStage.PACKAGE)
                update_dir = tmp / UPDATE_ROOT
                build_update_package(update_dir, delta, old_root, new_root, strategy, old_version, new_version)

                self._progress("打包", 80, "打包更新归档...")
                info("打包更新归档", stage=LogStage.PACKAGE)
                staged = TarGzipCodec(9).create(update_dir, tmp / "update.tar.gz", UPDATE_ROOT)
                publish_file(staged, output_path)
        except (ArchiveError, ValidationError) as e:
            debug(f"增量更新失败: {e}", stage=LogStage.PACKAGE)
            raise UpdateError(f"增量更新失败: {e}") from e
        except OSError as e:
            debug(f"增量更新失败: {e}", stage=LogStage.PACKAGE)
            raise UpdateError(f"增量更新失败: {e}") from e

        size = output_path.stat().st_size
        full_size = new_bundle.stat().st_size
        result = UpdateResult(
            output_path=output_path,
            size=size,
            full_size=full_size,
            savings=full_size - size,
            savings_percent=round((1 - size / max(1, full_size)) * 100, 2),
            old_version=old_version,
            new_version=new_version,
            files_added=len(delta.added),
            files_changed=len(delta.changed),
            files_removed=len(delta.removed),
            delta=delta,
            build_time=time.time() - start_time,
        )

        self._progress("完成", 100, "增量更新完成")
        success(f"增量更新已生成: {output_path} ({format_size(size)})", stage=LogStage.DONE)
        return result
