#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
缓存工具模块，提供单次同步内使用的内存索引。

特性：
- 键统一规范化（去除首尾空白并转小写），"Dell" 与 " dell " 命中同一条目
- 支持缓存统计（命中/未命中）
- 不跨同步保留：每次同步由 ReferenceResolver 重新创建
"""

from typing import Any, Dict, Optional


def normalize_key(key: Optional[str]) -> str:
    """
    规范化缓存键

    Args:
        key: 原始键（名称或序列号）

    Returns:
        str: 规范化后的键，None 视为空字符串
    """
    if key is None:
        return ""
    return str(key).strip().lower()


class KeyedCache:
    """
    按规范化名称索引的内存缓存。

    使用示例:
    ```python
    manufacturers = KeyedCache("manufacturers")
    manufacturers.set("Dell", dell)
    manufacturers.get("DELL")  # -> dell
    ```
    """

    def __init__(self, name: str = ""):
        """
        初始化缓存

        Args:
            name: 缓存名称，用于日志和统计
        """
        self.name = name
        self.cache: Dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Optional[str], default: Any = None) -> Any:
        """
        获取缓存值，同时记录命中统计。

        Args:
            key: 缓存键
            default: 默认值

        Returns:
            Any: 缓存值或默认值
        """
        normalized = normalize_key(key)
        if normalized in self.cache:
            self.hits += 1
            return self.cache[normalized]

        self.misses += 1
        return default

    def set(self, key: Optional[str], value: Any) -> None:
        self.cache[normalize_key(key)] = value

    def set_default(self, key: Optional[str], value: Any) -> bool:
        """
        仅当键不存在时写入。

        Returns:
            bool: 是否写入
        """
        normalized = normalize_key(key)
        if normalized in self.cache:
            return False
        self.cache[normalized] = value
        return True

    def as_dict(self) -> Dict[str, Any]:
        """返回缓存内容的副本"""
        return dict(self.cache)

    def __len__(self) -> int:
        return len(self.cache)

    def stats(self) -> Dict[str, Any]:
        """
        获取缓存统计信息。

        Returns:
            Dict[str, Any]: 统计信息
        """
        total = self.hits + self.misses
        return {
            'name': self.name,
            'size': len(self.cache),
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': f"{(self.hits / total * 100) if total else 0:.2f}%"
        }
