#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
同步管理器模块，负责协调 NinjaOne 和 Snipe-IT 之间的同步。

主要功能：
- 加载和验证配置
- 初始化 NinjaOne 设备来源和 Snipe-IT 客户端
- 逐台设备解析引用、对账并写入资产
- 单台设备失败不影响其他设备，记录同步结果
"""

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union

from ninja_snipe_sync.config import Config, load_config
from ninja_snipe_sync.ninja.client import NinjaClient
from ninja_snipe_sync.ninja.device_source import DeviceSource
from ninja_snipe_sync.ninja.models import CanonicalDevice
from ninja_snipe_sync.snipeit.client import SnipeITClient
from ninja_snipe_sync.sync.models import DeviceFailure, SyncResult
from ninja_snipe_sync.sync.reconciler import (
    ALWAYS_REFRESHED_FIELDS, AssetSettings, CreateAsset, PatchAsset, plan_asset, serial_key
)
from ninja_snipe_sync.sync.reference_resolver import ReferenceResolver
from ninja_snipe_sync.utils.decorators import log_function
from ninja_snipe_sync.utils.exceptions import ReconciliationError, ThrottleError, handle_exception
from ninja_snipe_sync.utils.logger import (
    LogContext, StructuredLogger, get_logger, init_default_logging, set_global_config
)

OUTCOME_CREATED = 'created'
OUTCOME_UPDATED = 'updated'
OUTCOME_UNCHANGED = 'unchanged'
OUTCOME_SKIPPED = 'skipped'


class SyncManager:
    """
    同步管理器类，负责协调 NinjaOne 和 Snipe-IT 之间的同步

    使用示例:
    ```python
    manager = SyncManager(Config.from_env())
    result = manager.run()
    print(result.to_dict())
    ```
    """

    def __init__(
        self,
        config: Union[Config, Dict[str, Any], str],
        source: Optional[DeviceSource] = None,
        target: Optional[SnipeITClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化同步管理器

        Args:
            config: 配置对象、配置字典或配置文件路径
            source: 设备来源，默认根据 ninja 配置创建
            target: Snipe-IT 客户端，默认根据 snipeit 配置创建
            logger: 日志记录器
        """
        self.logger = logger or get_logger(__name__)
        self.structured_logger = StructuredLogger(__name__)

        if isinstance(config, str):
            self.logger.debug(f"从文件加载配置: {config}")
            config = load_config(config)
        elif isinstance(config, dict):
            config = Config(config_data=config)
        self.config = config
        set_global_config(self.config)

        self.source = source or DeviceSource(NinjaClient.from_config(self.config.get('ninja', {})))
        self.target = target or SnipeITClient.from_config(self.config.get('snipeit', {}))

        self.settings = AssetSettings.from_config(self.config.get('snipeit', {}))
        self.skip_unknown_serial = self.config.get('sync.skip_unknown_serial', False)
        self.always_refreshed = ALWAYS_REFRESHED_FIELDS if self.config.get('sync.refresh_provenance', True) else ()

        self.logger.info("同步管理器初始化完成")

    @log_function(level='INFO', log_args=False)
    def run(self) -> SyncResult:
        """
        执行一次完整同步

        获取设备或预加载失败时异常直接抛出，中止本次同步；
        单台设备的异常记录在结果中，继续处理下一台。

        Returns:
            SyncResult: 同步结果
        """
        run_id = LogContext.new_run()
        start_time = time.time()
        result = SyncResult(run_id=run_id)

        self.logger.info(f"开始同步 NinjaOne 设备到 Snipe-IT (run_id: {run_id})")

        devices = self.source.fetch_devices()
        result.total = len(devices)
        self.logger.info(f"获取到 {len(devices)} 台设备")

        resolver = ReferenceResolver(self.target)
        resolver.preload()

        for index, device in enumerate(devices, 1):
            self.logger.debug(f"处理设备 [{index}/{len(devices)}]: {device.display_name}")
            try:
                with LogContext.device(device.id, device.serial_number):
                    outcome = self._sync_device(device, resolver)
            except Exception as e:
                self._record_failure(result, device, e)
                continue

            result.processed += 1
            if outcome == OUTCOME_CREATED:
                result.created += 1
            elif outcome == OUTCOME_UPDATED:
                result.updated += 1
            elif outcome == OUTCOME_UNCHANGED:
                result.unchanged += 1
            else:
                result.skipped += 1

        result.duration = time.time() - start_time

        for stats in resolver.cache_stats():
            self.logger.debug(f"缓存统计: {stats}")

        self.logger.info(
            f"同步完成: 总数 {result.total}，成功 {result.processed}，创建 {result.created}，"
            f"更新 {result.updated}，未变化 {result.unchanged}，跳过 {result.skipped}，"
            f"失败 {len(result.failed)}，耗时 {result.duration_str}"
        )
        return result

    def _sync_device(self, device: CanonicalDevice, resolver: ReferenceResolver) -> str:
        """
        同步单台设备

        Args:
            device: 规范化设备
            resolver: 本次同步的引用解析器

        Returns:
            str: 处理结果 created / updated / unchanged / skipped
        """
        if self.skip_unknown_serial and serial_key(device.serial_number) is None:
            self.structured_logger.warning(
                "设备序列号无效，跳过",
                device_id=device.id,
                name=device.display_name,
                serial=device.serial_number
            )
            return OUTCOME_SKIPPED

        manufacturer = resolver.resolve_manufacturer(device.system.manufacturer)
        model = resolver.resolve_model(device.system.model, manufacturer.id, device.node_class)

        plan = plan_asset(
            device,
            model,
            manufacturer,
            resolver.existing_assets(),
            now=datetime.now(timezone.utc),
            always_refreshed=self.always_refreshed,
            settings=self.settings,
        )

        if isinstance(plan, CreateAsset):
            asset = self._write(device, "创建", lambda: self.target.create_hardware(plan.payload))
            resolver.remember_asset(asset)
            self.logger.info(f"创建资产: {device.display_name} (序列号: {device.serial_number}, ID: {asset.id})")
            return OUTCOME_CREATED

        if isinstance(plan, PatchAsset):
            self._write(device, "更新", lambda: self.target.patch_hardware(plan.asset_id, plan.changed_fields))
            existing = resolver.existing_assets().get(serial_key(device.serial_number))
            if existing is not None:
                structural = {name: plan.changed_fields[name] for name in plan.structural_fields}
                resolver.remember_asset(replace(existing, **structural))

            if plan.is_structural:
                self.logger.info(
                    f"更新资产: {device.display_name} (ID: {plan.asset_id}, 字段: {', '.join(plan.structural_fields)})"
                )
                return OUTCOME_UPDATED
            self.logger.debug(f"刷新资产同步信息: {device.display_name} (ID: {plan.asset_id})")
            return OUTCOME_UNCHANGED

        self.logger.debug(f"资产无变化: {device.display_name}")
        return OUTCOME_UNCHANGED

    def _write(self, device: CanonicalDevice, action: str, send):
        """执行资产写入，失败包装为 ReconciliationError"""
        try:
            return send()
        except ThrottleError:
            raise
        except Exception as e:
            raise ReconciliationError(
                f"{action}资产失败: {device.display_name} (序列号: {device.serial_number}): {str(e)}",
                code=action,
                details={'device_id': device.id, 'cause': type(e).__name__}
            ) from e

    def _record_failure(self, result: SyncResult, device: CanonicalDevice, exc: Exception) -> None:
        self.structured_logger.error(
            "同步设备失败",
            device_id=device.id,
            name=device.display_name,
            serial=device.serial_number,
            error_kind=type(exc).__name__
        )
        handle_exception(exc, self.logger)
        result.record_failure(DeviceFailure(
            device_id=device.id,
            name=device.system_name,
            serial=device.serial_number,
            error_kind=type(exc).__name__,
            message=str(exc),
        ))


def run_scheduled_sync(config_file: Optional[str] = None) -> SyncResult:
    """
    定时任务入口，无需任何参数

    默认从环境变量加载配置，初始化日志后执行一次同步。

    Args:
        config_file: YAML配置文件路径，为空时使用环境变量

    Returns:
        SyncResult: 同步结果

    Raises:
        ConfigError: 配置缺失或无效，此时尚未发起任何请求
    """
    config = load_config(config_file)
    set_global_config(config)
    init_default_logging()
    return SyncManager(config).run()
