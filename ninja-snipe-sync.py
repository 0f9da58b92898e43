#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ninja-Snipe-Sync 命令行入口脚本

用于将 NinjaOne RMM 中的设备信息同步到 Snipe-IT 资产管理系统，
自动维护厂商、分类、型号和硬件资产。
"""

import sys
import os

# 确保当前目录在路径中，以便能够导入模块
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from ninja_snipe_sync.cli import main

if __name__ == '__main__':
    main()
