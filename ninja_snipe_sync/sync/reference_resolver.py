#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
引用解析模块 - 解析资产依赖的厂商、分类和型号

一次同步对应一个 ReferenceResolver 实例：
- preload() 批量拉取分类、厂商、型号、硬件资产并建立索引
- resolve_* 先查缓存，未命中时查询或创建，结果写回缓存
- 型号的厂商或分类与当前解析结果不一致时修正
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Any, Iterator, List, Optional

from ninja_snipe_sync.snipeit.client import SnipeITClient
from ninja_snipe_sync.snipeit.models import Asset, Category, Manufacturer, Model, category_name_for
from ninja_snipe_sync.sync.reconciler import serial_key
from ninja_snipe_sync.utils.cache import KeyedCache, normalize_key
from ninja_snipe_sync.utils.exceptions import ReferenceResolutionError, ThrottleError
from ninja_snipe_sync.utils.logger import get_logger

UNKNOWN_MANUFACTURER = "Unknown Manufacturer"
UNKNOWN_MODEL = "Unknown Model"


@dataclass
class PreloadedReferences:
    """预加载得到的索引，键为规范化的名称或序列号"""
    manufacturers: Dict[str, Manufacturer] = field(default_factory=dict)
    categories: Dict[str, Category] = field(default_factory=dict)
    models: Dict[str, Model] = field(default_factory=dict)
    assets: Dict[str, Asset] = field(default_factory=dict)


class ReferenceResolver:
    """
    引用解析器，持有本次同步的全部缓存。

    使用示例:
    ```python
    resolver = ReferenceResolver(client)
    resolver.preload()
    dell = resolver.resolve_manufacturer("Dell")
    model = resolver.resolve_model("OptiPlex 7090", dell.id, NodeClass.WINDOWS_WORKSTATION)
    ```
    """

    def __init__(self, client: SnipeITClient):
        self.client = client
        self.logger = get_logger(__name__)

        self.manufacturers = KeyedCache("manufacturers")
        self.categories = KeyedCache("categories")
        self.models = KeyedCache("models")
        self.assets = KeyedCache("assets")
        self._preloaded = False

    @contextmanager
    def _resolving(self, what: str, name: Any) -> Iterator[None]:
        """将解析过程中的异常统一包装为 ReferenceResolutionError，限流异常原样抛出"""
        try:
            yield
        except (ThrottleError, ReferenceResolutionError):
            raise
        except Exception as e:
            raise ReferenceResolutionError(
                f"解析{what}失败: {name}: {str(e)}",
                code=what,
                details={'name': name, 'cause': type(e).__name__}
            ) from e

    def _require_preload(self) -> None:
        if not self._preloaded:
            raise ReferenceResolutionError("引用解析前必须先调用 preload()", code='not_preloaded')

    def preload(self) -> PreloadedReferences:
        """
        批量加载分类、厂商、型号和硬件资产

        每个解析器只能调用一次。

        Returns:
            PreloadedReferences: 各类索引

        Raises:
            ReferenceResolutionError: 重复调用或加载失败
        """
        if self._preloaded:
            raise ReferenceResolutionError("preload() 在同一次同步中只能调用一次", code='already_preloaded')

        with self._resolving("预加载", "all"):
            categories = self.client.list_categories()
            manufacturers = self.client.list_manufacturers()
            models = self.client.list_models()
            assets = self.client.list_hardware()

        for category in categories:
            self.categories.set_default(category.name, category)
        for manufacturer in manufacturers:
            self.manufacturers.set_default(manufacturer.name, manufacturer)
        for model in models:
            self.models.set_default(model.name, model)
        for asset in assets:
            key = serial_key(asset.serial)
            if key is None:
                continue
            if not self.assets.set_default(key, asset):
                self.logger.warning(f"存在序列号重复的资产，保留第一条: {asset.serial} (忽略 ID: {asset.id})")

        self._preloaded = True
        self.logger.info(
            f"预加载完成: 分类 {len(self.categories)}，厂商 {len(self.manufacturers)}，"
            f"型号 {len(self.models)}，资产 {len(self.assets)}"
        )

        return PreloadedReferences(
            manufacturers=self.manufacturers.as_dict(),
            categories=self.categories.as_dict(),
            models=self.models.as_dict(),
            assets=self.assets.as_dict(),
        )

    def resolve_manufacturer(self, name: Optional[str]) -> Manufacturer:
        """
        解析厂商，不存在时创建

        Args:
            name: 厂商名称，为空时使用 Unknown Manufacturer

        Returns:
            Manufacturer: 厂商
        """
        self._require_preload()
        name = (name or "").strip() or UNKNOWN_MANUFACTURER

        cached = self.manufacturers.get(name)
        if cached is not None:
            return cached

        with self._resolving("厂商", name):
            created = self.client.create_manufacturer(name)
        self.manufacturers.set(name, created)
        return created

    def resolve_category(self, node_class: Any) -> Category:
        """
        解析 nodeClass 对应的分类

        缓存未命中时重新拉取分类列表，仍不存在才创建。

        Args:
            node_class: NodeClass 或原始字符串

        Returns:
            Category: 分类
        """
        self._require_preload()
        name = category_name_for(node_class)

        cached = self.categories.get(name)
        if cached is not None:
            return cached

        with self._resolving("分类", name):
            self.logger.debug(f"分类缓存未命中，重新查询分类列表: {name}")
            for category in self.client.list_categories():
                self.categories.set(category.name, category)

            found = self.categories.get(name)
            if found is not None:
                return found

            created = self.client.create_category(name)
        self.categories.set(name, created)
        return created

    def resolve_model(self, name: Optional[str], manufacturer_id: Any, node_class: Any) -> Model:
        """
        解析型号，不存在时创建，厂商或分类不一致时更新

        Args:
            name: 型号名称，为空时使用 Unknown Model
            manufacturer_id: 已解析的厂商ID
            node_class: 设备 nodeClass

        Returns:
            Model: 型号
        """
        self._require_preload()
        name = (name or "").strip() or UNKNOWN_MODEL
        category = self.resolve_category(node_class)

        with self._resolving("型号", name):
            model = self.models.get(name)
            if model is not None:
                if not model.has_associations and model.id is not None:
                    model = self.client.get_model(model.id)
            else:
                model = self._search_model(name)

            if model is None:
                model = self.client.create_model(name, manufacturer_id, category.id)
            elif model.needs_update(manufacturer_id, category.id):
                self.logger.info(
                    f"型号关联不一致，更新型号: {name} "
                    f"(厂商 {model.manufacturer_id} -> {manufacturer_id}, 分类 {model.category_id} -> {category.id})"
                )
                model = self.client.update_model(model.id, name, manufacturer_id, category.id)

        self.models.set(name, model)
        return model

    def _search_model(self, name: str) -> Optional[Model]:
        """按名称搜索型号，只接受忽略大小写的完全匹配"""
        wanted = normalize_key(name)
        for model in self.client.search_models(name):
            if normalize_key(model.name) == wanted:
                return model
        return None

    def existing_assets(self) -> KeyedCache:
        """按序列号索引的现有资产"""
        self._require_preload()
        return self.assets

    def remember_asset(self, asset: Asset) -> None:
        """
        记录本次同步新建的资产，同一序列号后续按更新处理

        Args:
            asset: 新建的资产
        """
        key = serial_key(asset.serial)
        if key is not None:
            self.assets.set(key, asset)

    def cache_stats(self) -> List[Dict[str, Any]]:
        return [cache.stats() for cache in (self.manufacturers, self.categories, self.models, self.assets)]
