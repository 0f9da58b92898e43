#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
配置验证器，负责验证配置的有效性。
"""

from typing import Dict, Any

from ninja_snipe_sync.utils.exceptions import ConfigError
from ninja_snipe_sync.utils.logger import get_logger

logger = get_logger(__name__)

# 必填字段，缺少任何一项都在启动阶段直接报错
REQUIRED_FIELDS = {
    'ninja': ['base_url', 'client_id', 'client_secret', 'auth_endpoint', 'device_endpoint'],
    'snipeit': ['base_url', 'api_key'],
}

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigValidator:
    """
    配置验证器类。

    确保配置包含所需的所有必要字段，并且字段的值符合预期的格式和范围。
    """

    def validate(self, config: Dict[str, Any]) -> None:
        """
        验证配置的有效性。

        Args:
            config: 配置数据

        Raises:
            ConfigError: 配置无效时抛出异常
        """
        if not isinstance(config, dict):
            raise ConfigError("配置应为字典类型")

        self._validate_required(config)
        self._validate_ninja(config['ninja'])
        self._validate_snipeit(config['snipeit'])
        self._validate_sync(config.get('sync') or {})
        self._validate_log(config.get('log') or {})

        logger.debug("配置验证成功")

    def _validate_required(self, config: Dict[str, Any]) -> None:
        """
        验证必填字段。

        Raises:
            ConfigError: 缺少必要部分或字段
        """
        for section, fields in REQUIRED_FIELDS.items():
            section_config = config.get(section)
            if not isinstance(section_config, dict) or not section_config:
                raise ConfigError(f"配置缺少必要的{section}部分", code='missing_section', details={'section': section})

            for field in fields:
                value = section_config.get(field)
                if value is None or (isinstance(value, str) and not value.strip()):
                    raise ConfigError(f"{section}配置缺少必要字段: {field}", code='missing_field',
                                      details={'key': f"{section}.{field}"})

    @staticmethod
    def _validate_url(name: str, url: str) -> None:
        if not str(url).startswith(('http://', 'https://')):
            raise ConfigError(f"{name} URL格式无效: {url}, 应以http://或https://开头")

    @staticmethod
    def _validate_positive_number(name: str, value: Any, allow_zero: bool = False) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name}选项应为数字类型")
        if value < 0 or (value == 0 and not allow_zero):
            raise ConfigError(f"{name}选项应为{'非负数' if allow_zero else '正数'}")

    def _validate_ninja(self, ninja_config: Dict[str, Any]) -> None:
        """
        验证NinjaOne配置。

        Args:
            ninja_config: NinjaOne配置数据
        """
        self._validate_url('NinjaOne', ninja_config['base_url'])

        if 'timeout' in ninja_config:
            self._validate_positive_number('ninja.timeout', ninja_config['timeout'])

    def _validate_snipeit(self, snipe_config: Dict[str, Any]) -> None:
        """
        验证Snipe-IT配置。

        Args:
            snipe_config: Snipe-IT配置数据
        """
        self._validate_url('Snipe-IT', snipe_config['base_url'])

        if 'request_interval' in snipe_config:
            self._validate_positive_number('snipeit.request_interval', snipe_config['request_interval'],
                                           allow_zero=True)
        if 'timeout' in snipe_config:
            self._validate_positive_number('snipeit.timeout', snipe_config['timeout'])

        page_size = snipe_config.get('page_size')
        if page_size is not None:
            if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
                raise ConfigError("snipeit.page_size选项应为正整数")

        status_id = snipe_config.get('status_id')
        if status_id is not None and (isinstance(status_id, bool) or not isinstance(status_id, int)):
            raise ConfigError("snipeit.status_id选项应为整数")

        custom_fields = snipe_config.get('custom_fields')
        if custom_fields is not None:
            if not isinstance(custom_fields, dict):
                raise ConfigError("snipeit.custom_fields配置应为字典类型")
            for key in ('processor_count', 'memory'):
                if not custom_fields.get(key):
                    raise ConfigError(f"snipeit.custom_fields缺少字段: {key}")

    def _validate_sync(self, sync_config: Dict[str, Any]) -> None:
        if not isinstance(sync_config, dict):
            raise ConfigError("sync配置应为字典类型")

        for key in ('skip_unknown_serial', 'refresh_provenance'):
            value = sync_config.get(key)
            if value is not None and not isinstance(value, bool):
                raise ConfigError(f"{key}选项应为布尔类型")

    def _validate_log(self, log_config: Dict[str, Any]) -> None:
        """
        验证日志配置。

        Args:
            log_config: 日志配置

        Raises:
            ConfigError: 配置无效时抛出异常
        """
        level = log_config.get('level')
        if level and str(level).upper() not in VALID_LOG_LEVELS:
            raise ConfigError(f"日志级别无效: {level}，有效值为: {', '.join(VALID_LOG_LEVELS)}")

        file_path = log_config.get('file')
        if file_path and not isinstance(file_path, str):
            raise ConfigError("日志文件路径应为字符串类型")

        max_size = log_config.get('max_size')
        if max_size is not None:
            if not isinstance(max_size, int) or max_size <= 0:
                raise ConfigError("max_size选项应为正整数")

        backup_count = log_config.get('backup_count')
        if backup_count is not None:
            if not isinstance(backup_count, int) or backup_count < 0:
                raise ConfigError("backup_count选项应为非负整数")
