#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Snipe-IT 客户端模块 - 负责与 Snipe-IT API 交互

提供以下功能：
- Bearer Token 认证和 JSON 通信
- 所有请求经过同一个 RequestGate 串行限流
- 列表接口自动分页
- 统一处理 {status, payload} 响应包装
- 厂商、分类、型号、硬件资产的查询、创建和更新
"""

from typing import Dict, List, Any, Optional

import requests

from ninja_snipe_sync.snipeit.models import Asset, Category, Manufacturer, Model
from ninja_snipe_sync.snipeit.rate_limiter import RequestGate
from ninja_snipe_sync.utils.exceptions import ThrottleError, UpstreamError
from ninja_snipe_sync.utils.logger import get_logger, StructuredLogger

# 自动创建记录时写入的来源说明
PROVENANCE_NOTE = "Created automatically from Ninja RMM sync"


def unwrap_payload(body: Any) -> Any:
    """
    规范化 Snipe-IT 响应

    Snipe-IT 有时直接返回记录，有时返回 {status, messages, payload}。
    status 为 error 时无论 HTTP 状态码如何都视为失败。

    Args:
        body: 已解析的JSON响应

    Returns:
        Any: 记录本身

    Raises:
        UpstreamError: status 为 error
    """
    if isinstance(body, dict) and 'status' in body:
        if body.get('status') == 'error':
            raise UpstreamError(
                f"Snipe-IT 返回错误: {body.get('messages') or body}",
                details=body.get('messages'),
                response=body
            )
        if 'payload' in body:
            return body['payload'] if body['payload'] is not None else {}
    return body


class SnipeITClient:
    """
    Snipe-IT 客户端类。

    使用示例:
    ```python
    client = SnipeITClient(
        base_url="https://snipe.example.com/api/v1",
        api_key="your-api-key"
    )
    manufacturers = client.list_manufacturers()
    dell = client.create_manufacturer("Dell")
    ```
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        request_interval: float = 1.0,
        timeout: int = 30,
        page_size: int = 500,
        session: Optional[requests.Session] = None,
        gate: Optional[RequestGate] = None,
    ):
        """
        初始化 Snipe-IT 客户端

        Args:
            base_url: Snipe-IT API 基础URL，包含 /api/v1
            api_key: API 密钥
            request_interval: 最小请求间隔（秒）
            timeout: 请求超时时间（秒）
            page_size: 列表接口每页条数
            session: 可注入的 requests 会话
            gate: 可注入的请求闸门
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.page_size = page_size
        self.gate = gate or RequestGate(min_interval=request_interval)
        self.logger = get_logger(__name__)
        self.structured_logger = StructuredLogger(__name__)

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {api_key}",
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })

    @classmethod
    def from_config(cls, snipe_config: Dict[str, Any], session: Optional[requests.Session] = None) -> 'SnipeITClient':
        """
        根据配置中的 snipeit 部分创建客户端

        Args:
            snipe_config: snipeit 配置字典
            session: 可注入的 requests 会话

        Returns:
            SnipeITClient: 客户端实例
        """
        return cls(
            base_url=snipe_config['base_url'],
            api_key=snipe_config['api_key'],
            request_interval=snipe_config.get('request_interval', 1.0),
            timeout=snipe_config.get('timeout', 30),
            page_size=snipe_config.get('page_size', 500),
            session=session,
        )

    def _api_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        发送API请求

        Args:
            method: 请求方法，如"GET"、"POST"、"PUT"、"PATCH"
            endpoint: API端点，如"hardware"、"models/12"
            params: 查询参数
            json_data: JSON数据

        Returns:
            Any: 去除包装后的响应数据

        Raises:
            ThrottleError: 限流重试后仍被拒绝
            UpstreamError: 网络错误、HTTP错误或 status 为 error
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        self.structured_logger.debug(f"发送请求: {method} {url}", params=params, json_data=json_data)

        def send():
            return self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout
            )

        try:
            response = self.gate.call(send)
        except ThrottleError:
            self.structured_logger.error(f"请求被限流: {method} {url}")
            raise
        except requests.RequestException as e:
            self.structured_logger.error(f"请求异常: {str(e)}", url=url, method=method)
            raise UpstreamError(f"Snipe-IT 请求异常: {method} {endpoint}: {str(e)}") from e

        self.structured_logger.debug(f"接收响应: {method} {url}", status_code=response.status_code)

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"detail": response.text}

            self.structured_logger.error(
                f"API请求失败: {response.status_code}",
                error_data=error_data,
                url=url,
                method=method
            )
            raise UpstreamError(
                f"Snipe-IT API请求失败: {method} {endpoint}: {response.status_code}",
                status_code=response.status_code,
                response=error_data
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(f"Snipe-IT 响应不是有效的JSON: {method} {endpoint}",
                                status_code=response.status_code, response=response.text) from e

        return unwrap_payload(body)

    def _list(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        分页获取列表接口的全部记录

        Args:
            endpoint: 列表端点
            params: 额外查询参数

        Returns:
            List[Dict[str, Any]]: 全部记录
        """
        rows: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page_params = dict(params or {})
            page_params.update({'limit': self.page_size, 'offset': offset})
            body = self._api_request("GET", endpoint, params=page_params)

            page = body.get('rows') if isinstance(body, dict) else None
            if not isinstance(page, list):
                raise UpstreamError(f"Snipe-IT 列表接口返回格式错误: {endpoint}", response=body)

            rows.extend(page)
            total = body.get('total', len(rows))
            if not page or len(rows) >= total:
                break
            offset += len(page)

        self.logger.debug(f"获取 {endpoint} 共 {len(rows)} 条记录")
        return rows

    # 厂商
    def list_manufacturers(self) -> List[Manufacturer]:
        return [Manufacturer.from_dict(row) for row in self._list("manufacturers")]

    def create_manufacturer(self, name: str, notes: str = PROVENANCE_NOTE) -> Manufacturer:
        """
        创建厂商

        Args:
            name: 厂商名称
            notes: 备注

        Returns:
            Manufacturer: 新建的厂商
        """
        data = {'name': name, 'notes': notes}
        created = Manufacturer.from_dict(self._api_request("POST", "manufacturers", json_data=data))
        if not created.name:
            created.name = name
        self.logger.info(f"创建厂商: {name} (ID: {created.id})")
        return created

    # 分类
    def list_categories(self) -> List[Category]:
        return [Category.from_dict(row) for row in self._list("categories")]

    def create_category(self, name: str, notes: str = PROVENANCE_NOTE) -> Category:
        """
        创建资产分类

        Args:
            name: 分类名称
            notes: 备注

        Returns:
            Category: 新建的分类
        """
        data = {
            'name': name,
            'category_type': 'asset',
            'use_default_eula': 0,
            'require_acceptance': 0,
            'checkin_email': 0,
            'notes': notes,
        }
        created = Category.from_dict(self._api_request("POST", "categories", json_data=data))
        if not created.name:
            created.name = name
        self.logger.info(f"创建分类: {name} (ID: {created.id})")
        return created

    # 型号
    def list_models(self) -> List[Model]:
        return [Model.from_dict(row) for row in self._list("models")]

    def search_models(self, name: str) -> List[Model]:
        """
        按名称搜索型号（Snipe-IT 为模糊匹配，调用方需自行精确比较）

        Args:
            name: 型号名称

        Returns:
            List[Model]: 搜索结果
        """
        body = self._api_request("GET", "models", params={'search': name, 'limit': self.page_size})
        rows = body.get('rows') if isinstance(body, dict) else None
        if not isinstance(rows, list):
            raise UpstreamError("Snipe-IT 型号搜索返回格式错误", response=body)
        return [Model.from_dict(row) for row in rows]

    def get_model(self, model_id: Any) -> Model:
        return Model.from_dict(self._api_request("GET", f"models/{model_id}"))

    def create_model(self, name: str, manufacturer_id: Any, category_id: Any,
                     notes: str = PROVENANCE_NOTE) -> Model:
        """
        创建型号

        Args:
            name: 型号名称，同时作为型号编号
            manufacturer_id: 厂商ID
            category_id: 分类ID
            notes: 备注

        Returns:
            Model: 新建的型号
        """
        data = {
            'name': name,
            'manufacturer_id': manufacturer_id,
            'category_id': category_id,
            'model_number': name,
            'fieldset_id': None,
            'notes': notes,
        }
        created = self._fill_model(Model.from_dict(self._api_request("POST", "models", json_data=data)),
                                   name, manufacturer_id, category_id)
        self.logger.info(f"创建型号: {name} (ID: {created.id})")
        return created

    def update_model(self, model_id: Any, name: str, manufacturer_id: Any, category_id: Any) -> Model:
        """
        更新型号的厂商和分类

        Args:
            model_id: 型号ID
            name: 型号名称
            manufacturer_id: 厂商ID
            category_id: 分类ID

        Returns:
            Model: 更新后的型号
        """
        data = {
            'name': name,
            'manufacturer_id': manufacturer_id,
            'category_id': category_id,
            'model_number': name,
        }
        updated = self._fill_model(Model.from_dict(self._api_request("PUT", f"models/{model_id}", json_data=data)),
                                   name, manufacturer_id, category_id)
        if updated.id is None:
            updated.id = model_id
        self.logger.info(f"更新型号: {name} (ID: {updated.id})")
        return updated

    @staticmethod
    def _fill_model(model: Model, name: str, manufacturer_id: Any, category_id: Any) -> Model:
        """响应中缺失的字段使用请求中的值补齐"""
        if not model.name:
            model.name = name
        if model.manufacturer_id is None:
            model.manufacturer_id = manufacturer_id
        if model.category_id is None:
            model.category_id = category_id
        if model.model_number is None:
            model.model_number = name
        return model

    # 硬件资产
    def list_hardware(self) -> List[Asset]:
        return [Asset.from_dict(row) for row in self._list("hardware")]

    def create_hardware(self, payload: Dict[str, Any]) -> Asset:
        """
        创建硬件资产

        Args:
            payload: 完整的创建数据

        Returns:
            Asset: 新建的资产
        """
        body = self._api_request("POST", "hardware", json_data=payload)
        asset = Asset.from_dict(body if isinstance(body, dict) else {})
        if not asset.serial:
            asset.serial = payload.get('serial') or ""
        if asset.name is None:
            asset.name = payload.get('name')
        if asset.model_id is None:
            asset.model_id = payload.get('model_id')
        if asset.manufacturer_id is None:
            asset.manufacturer_id = payload.get('manufacturer_id')
        if asset.model_number is None:
            asset.model_number = payload.get('model_number')
        return asset

    def patch_hardware(self, asset_id: Any, changed_fields: Dict[str, Any]) -> Any:
        """
        局部更新硬件资产

        Args:
            asset_id: 资产ID
            changed_fields: 需要更新的字段

        Returns:
            Any: 更新后的记录
        """
        return self._api_request("PATCH", f"hardware/{asset_id}", json_data=changed_fields)
