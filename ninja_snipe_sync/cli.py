#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ninja-Snipe-Sync 命令行入口
"""

import os
import sys
import argparse
import logging
import json
from typing import Dict, Any, List, Optional

from ninja_snipe_sync.config import load_config
from ninja_snipe_sync.sync.sync_manager import SyncManager
from ninja_snipe_sync.utils.exceptions import NinjaSnipeSyncError
from ninja_snipe_sync.utils.logger import setup_logger, set_global_config, init_default_logging

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_DEVICE_FAILURES = 2


def parse_args(argv: Optional[List[str]] = None):
    """
    解析命令行参数

    Returns:
        argparse.Namespace: 解析后的参数
    """
    parser = argparse.ArgumentParser(description='Ninja-Snipe-Sync: 同步 NinjaOne 设备到 Snipe-IT 资产管理系统')

    parser.add_argument('-c', '--config',
                        help='YAML配置文件路径 (默认: 从环境变量加载)')

    parser.add_argument('-l', '--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='日志级别，覆盖配置中的设置')

    parser.add_argument('-o', '--output',
                        help='将同步结果输出到指定的JSON文件')

    return parser.parse_args(argv)


def save_result(result: Dict[str, Any], output_file: str):
    """
    保存同步结果到文件

    Args:
        result: 同步结果
        output_file: 输出文件路径
    """
    output_dir = os.path.dirname(output_file)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(result, f, indent=2, ensure_ascii=False, default=str)


def run(argv: Optional[List[str]] = None) -> int:
    """
    执行一次同步并返回退出码

    Returns:
        int: 0 全部成功，2 部分设备失败，1 致命错误
    """
    args = parse_args(argv)

    # 配置加载前的临时控制台日志
    setup_logger(log_level=args.log_level or 'INFO')
    logger = logging.getLogger(__name__)
    logger.info("Ninja-Snipe-Sync 开始运行")
    logger.info(f"配置来源: {args.config or '环境变量'}")

    try:
        config = load_config(args.config)
        if args.log_level:
            config.config_data['log']['level'] = args.log_level
        set_global_config(config)
        init_default_logging()
        logger.info("配置加载成功")

        result = SyncManager(config).run()
    except NinjaSnipeSyncError as e:
        logger.error(f"同步失败: {type(e).__name__}: {str(e)}")
        return EXIT_FATAL
    except Exception as e:
        logger.exception(f"发生未预期的错误: {str(e)}")
        return EXIT_FATAL

    logger.info(
        f"总计: {result.total}，创建: {result.created}，更新: {result.updated}，"
        f"未变化: {result.unchanged}，跳过: {result.skipped}，失败: {len(result.failed)}"
    )

    if args.output:
        save_result(result.to_dict(), args.output)
        logger.info(f"同步结果已保存到: {args.output}")

    if result.failed:
        for failure in result.failed:
            logger.warning(
                f"设备同步失败: {failure.name} (ID: {failure.device_id}, 序列号: {failure.serial}) "
                f"{failure.error_kind}: {failure.message}"
            )
        return EXIT_DEVICE_FAILURES

    return EXIT_OK


def main():
    """主程序入口点"""
    sys.exit(run())


if __name__ == '__main__':
    main()
