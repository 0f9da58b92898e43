#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
配置加载器，负责从环境变量或YAML文件加载配置。
"""

import copy
import os
import re
from typing import Dict, Any, Optional, Union, TypeVar, Mapping

import yaml

from ninja_snipe_sync.utils.exceptions import ConfigError
from ninja_snipe_sync.utils.logger import get_logger
from ninja_snipe_sync.config.validator import ConfigValidator

logger = get_logger(__name__)

T = TypeVar('T')

DEFAULT_CONFIG: Dict[str, Any] = {
    'ninja': {
        'timeout': 30,
    },
    'snipeit': {
        'request_interval': 1.0,
        'timeout': 30,
        'page_size': 500,
        'status_id': 1,
        'custom_fields': {
            'processor_count': '_snipeit_processor_count_1',
            'memory': '_snipeit_memory_2',
        },
    },
    'sync': {
        'skip_unknown_serial': False,
        'refresh_provenance': True,
    },
    'log': {
        'level': 'INFO',
        'file': None,
        'max_size': 10,
        'backup_count': 5,
        'json_format': False,
        'detailed': False,
    },
}

# 环境变量 -> (配置键路径, 类型转换)
ENV_MAPPING = {
    'NINJA_BASE_URL': ('ninja.base_url', str),
    'NINJA_CLIENT_ID': ('ninja.client_id', str),
    'NINJA_CLIENT_SECRET': ('ninja.client_secret', str),
    'NINJA_AUTH_ENDPOINT': ('ninja.auth_endpoint', str),
    'NINJA_DEVICE_ENDPOINT': ('ninja.device_endpoint', str),
    'SNIPE_BASE_URL': ('snipeit.base_url', str),
    'SNIPE_API_KEY': ('snipeit.api_key', str),
    'SNIPE_REQUEST_INTERVAL': ('snipeit.request_interval', float),
    'SNIPE_PAGE_SIZE': ('snipeit.page_size', int),
    'LOG_LEVEL': ('log.level', str),
    'LOG_FILE': ('log.file', str),
}

_ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """递归合并字典，override 中的值优先"""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split('.')
    for part in parts[:-1]:
        data = data.setdefault(part, {})
    data[parts[-1]] = value


class Config:
    """
    配置类，用于加载、验证和管理配置。

    提供以下功能：
    - 从环境变量加载配置（定时任务默认方式）
    - 从YAML文件加载配置，支持 ${ENV_NAME} / ${ENV_NAME:default} 环境变量替换
    - 默认值合并与配置验证
    - 点号分隔的键路径访问

    使用示例:
    ```python
    config = Config.from_env()
    snipe_url = config['snipeit.base_url']
    ```
    """

    def __init__(self, config_file: Optional[str] = None, config_data: Optional[Dict[str, Any]] = None):
        """
        初始化配置类。

        Args:
            config_file: YAML配置文件路径
            config_data: 已解析的配置字典（优先于 config_file）

        Raises:
            ConfigError: 配置文件不存在、格式错误或验证失败
        """
        self.config_file = config_file
        self.validator = ConfigValidator()

        if config_data is not None:
            raw = config_data
        elif config_file:
            raw = self._load_file(config_file)
        else:
            raise ConfigError("未提供配置文件或配置数据")

        self.config_data = _deep_merge(DEFAULT_CONFIG, raw)
        self.validator.validate(self.config_data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        """
        从环境变量构建配置。

        Args:
            environ: 环境变量映射，默认 os.environ

        Returns:
            Config: 配置对象

        Raises:
            ConfigError: 缺少必填环境变量或值无法转换
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}

        for env_name, (path, converter) in ENV_MAPPING.items():
            value = environ.get(env_name)
            if value is None or value == '':
                continue
            try:
                _set_path(data, path, converter(value))
            except ValueError as e:
                raise ConfigError(f"环境变量 {env_name} 的值无效: {value}", details={'key': env_name}) from e

        logger.debug("从环境变量加载配置")
        return cls(config_data=data)

    def _load_file(self, config_file: str) -> Dict[str, Any]:
        """
        加载YAML配置文件。

        Returns:
            Dict[str, Any]: 处理环境变量后的配置数据

        Raises:
            ConfigError: 配置文件不存在或格式错误
        """
        if not os.path.exists(config_file):
            raise ConfigError(f"配置文件不存在: {config_file}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"配置文件格式错误: {str(e)}") from e
        except OSError as e:
            raise ConfigError(f"读取配置文件失败: {str(e)}") from e

        if not config:
            raise ConfigError(f"配置文件为空: {config_file}")
        if not isinstance(config, dict):
            raise ConfigError(f"配置文件顶层应为字典: {config_file}")

        logger.debug(f"成功加载配置文件: {config_file}")
        return self._process_env_vars(config)

    def _process_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        处理配置中的环境变量引用。

        支持格式: ${ENV_NAME} 或 ${ENV_NAME:default_value}
        整个值就是一个引用且替换结果是数字或布尔值时保留其类型，其余一律为字符串。

        Args:
            config: 原始配置数据

        Returns:
            Dict[str, Any]: 处理环境变量后的配置数据
        """
        def _replace(match: 're.Match') -> str:
            env_name, default = match.group(1), match.group(2)
            return os.environ.get(env_name, default if default is not None else "")

        def _process_value(value: Any) -> Any:
            if not isinstance(value, str) or '${' not in value:
                return value
            full = _ENV_PATTERN.fullmatch(value)
            substituted = _ENV_PATTERN.sub(_replace, value)
            if full and substituted:
                try:
                    typed = yaml.safe_load(substituted)
                except yaml.YAMLError:
                    return substituted
                if isinstance(typed, (bool, int, float)):
                    return typed
            return substituted

        def _process(node: Any) -> Any:
            if isinstance(node, dict):
                return {k: _process(v) for k, v in node.items()}
            if isinstance(node, list):
                return [_process(item) for item in node]
            return _process_value(node)

        return _process(config)

    def get(self, key: str, default: T = None) -> Union[Any, T]:
        """
        获取配置值，支持使用点号分隔的键路径。

        Args:
            key: 配置键路径，例如 "snipeit.base_url"
            default: 默认值，如果键不存在则返回此值

        Returns:
            配置值或默认值
        """
        try:
            return self[key]
        except KeyError:
            return default

    def __getitem__(self, key: str) -> Any:
        value: Any = self.config_data
        for part in key.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                raise KeyError(f"配置键 '{key}' 不存在")
        return value

    def __contains__(self, key: str) -> bool:
        try:
            self[key]
            return True
        except KeyError:
            return False

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """
        将配置转换为字典。

        Args:
            mask_secrets: 是否隐藏密钥类字段

        Returns:
            Dict[str, Any]: 配置字典
        """
        data = copy.deepcopy(self.config_data)
        if mask_secrets:
            for path in ('ninja.client_secret', 'snipeit.api_key'):
                section, field = path.split('.')
                if data.get(section, {}).get(field):
                    data[section][field] = '***'
        return data


def load_config(config_file: Optional[str] = None) -> Config:
    """
    加载配置的便捷函数。

    Args:
        config_file: YAML配置文件路径，为空时从环境变量加载

    Returns:
        Config: 配置对象
    """
    if config_file:
        return Config(config_file)
    return Config.from_env()

