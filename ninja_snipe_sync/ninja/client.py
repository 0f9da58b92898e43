#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
NinjaOne 客户端模块 - 负责与 NinjaOne RMM API 交互

提供以下功能：
- OAuth client_credentials 凭据交换
- 获取设备详情列表
- 连接错误/超时自动重试
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

import requests

from ninja_snipe_sync.utils.exceptions import AuthError, UpstreamError
from ninja_snipe_sync.utils.decorators import retry
from ninja_snipe_sync.utils.logger import get_logger, StructuredLogger


class NinjaClient:
    """
    NinjaOne 客户端类。

    使用示例:
    ```python
    client = NinjaClient(
        base_url="https://app.ninjarmm.com",
        client_id="your-client-id",
        client_secret="your-client-secret",
        auth_endpoint="/ws/oauth/token",
        device_endpoint="/v2/devices-detailed"
    )
    token = client.authenticate()
    devices = client.list_devices(token)
    ```
    """

    OAUTH_SCOPE = "monitoring"

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        auth_endpoint: str,
        device_endpoint: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        初始化 NinjaOne 客户端

        Args:
            base_url: NinjaOne API 基础URL，必须包含协议
            client_id: OAuth 客户端ID
            client_secret: OAuth 客户端密钥
            auth_endpoint: 凭据交换接口路径
            device_endpoint: 设备详情接口路径
            timeout: 请求超时时间（秒）
            session: 可注入的 requests 会话
        """
        # 移除URL末尾的斜杠
        self.base_url = base_url.rstrip('/')
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_url = urljoin(self.base_url + '/', auth_endpoint)
        self.device_url = urljoin(self.base_url + '/', device_endpoint)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger(__name__)
        self.structured_logger = StructuredLogger(__name__)

    @classmethod
    def from_config(cls, ninja_config: Dict[str, Any], session: Optional[requests.Session] = None) -> 'NinjaClient':
        """
        根据配置中的 ninja 部分创建客户端

        Args:
            ninja_config: ninja 配置字典
            session: 可注入的 requests 会话

        Returns:
            NinjaClient: 客户端实例
        """
        return cls(
            base_url=ninja_config['base_url'],
            client_id=ninja_config['client_id'],
            client_secret=ninja_config['client_secret'],
            auth_endpoint=ninja_config['auth_endpoint'],
            device_endpoint=ninja_config['device_endpoint'],
            timeout=ninja_config.get('timeout', 30),
            session=session,
        )

    @retry(max_retries=2, retry_interval=2, exceptions=(requests.ConnectionError, requests.Timeout))
    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        self.structured_logger.debug(f"发送请求: {method} {url}")
        response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        self.structured_logger.debug(f"接收响应: {method} {url}", status_code=response.status_code)
        return response

    def authenticate(self) -> str:
        """
        通过 client_credentials 换取访问令牌

        Returns:
            str: 访问令牌

        Raises:
            AuthError: 任何非2xx响应、网络错误或响应中缺少 access_token
        """
        self.logger.info(f"NinjaOne 凭据交换: {self.auth_url}")
        form = {
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'scope': self.OAUTH_SCOPE,
        }
        headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/x-www-form-urlencoded',
        }

        try:
            response = self._send("POST", self.auth_url, data=form, headers=headers)
        except requests.RequestException as e:
            raise AuthError(f"NinjaOne 凭据交换请求失败: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            raise AuthError(
                f"NinjaOne 凭据交换失败: {response.status_code}",
                status_code=response.status_code,
                response=response.text
            )

        try:
            token = response.json().get('access_token')
        except (ValueError, AttributeError) as e:
            raise AuthError("NinjaOne 凭据交换响应不是有效的JSON对象") from e

        if not token:
            raise AuthError("NinjaOne 凭据交换响应缺少 access_token", status_code=response.status_code)

        self.logger.info("成功获取 NinjaOne 访问令牌")
        return token

    def list_devices(self, token: str) -> List[Dict[str, Any]]:
        """
        获取设备详情列表

        Args:
            token: 访问令牌

        Returns:
            List[Dict[str, Any]]: 原始设备记录

        Raises:
            UpstreamError: 请求失败或响应格式错误
        """
        self.logger.info(f"获取 NinjaOne 设备列表: {self.device_url}")
        headers = {
            'Accept': 'application/json',
            'Authorization': f"Bearer {token}",
        }

        try:
            response = self._send("GET", self.device_url, headers=headers)
        except requests.RequestException as e:
            raise UpstreamError(f"获取 NinjaOne 设备列表失败: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            raise UpstreamError(
                f"获取 NinjaOne 设备列表失败: {response.status_code}",
                status_code=response.status_code,
                response=response.text
            )

        try:
            devices = response.json()
        except ValueError as e:
            raise UpstreamError("NinjaOne 设备列表响应不是有效的JSON") from e

        if not isinstance(devices, list):
            raise UpstreamError(f"NinjaOne 设备列表返回格式错误: {type(devices).__name__}")

        self.logger.info(f"NinjaOne 返回 {len(devices)} 条设备记录")
        return devices
