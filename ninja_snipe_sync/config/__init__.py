#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
配置模块，提供配置加载、验证和管理功能。
"""

from ninja_snipe_sync.config.loader import Config, load_config
from ninja_snipe_sync.config.validator import ConfigValidator

__all__ = ['Config', 'load_config', 'ConfigValidator']
