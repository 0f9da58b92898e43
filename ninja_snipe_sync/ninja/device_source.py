#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
设备来源模块 - 从 NinjaOne 获取设备并转换为规范化结构

处理规则：
- 过滤虚拟机客户机和云监控目标，它们没有独立的硬件标识
- 缺少 system 信息的非 VMware 主机使用默认硬件信息（全部为 Unknown/0）
- VMware 主机的硬件信息位于记录顶层，映射后 virtual_machine 为 True
- 其余设备原样使用 system 信息
"""

from typing import Dict, List, Any, Iterable

from ninja_snipe_sync.ninja.client import NinjaClient
from ninja_snipe_sync.ninja.models import CanonicalDevice, NodeClass, SystemInfo, UNKNOWN
from ninja_snipe_sync.utils.logger import get_logger

logger = get_logger(__name__)

EXCLUDED_NODE_CLASSES = frozenset(('VMWARE_VM_GUEST', 'CLOUD_MONITOR_TARGET'))

# VMware 主机顶层字段 -> SystemInfo 字段
VMWARE_HOST_FIELDS = {
    'name': 'name',
    'vendor': 'manufacturer',
    'model': 'model',
    'serialNumber': 'serial_number',
    'biosSerialNumber': 'bios_serial_number',
    'domain': 'domain',
    'domainRole': 'domain_role',
    'chassisType': 'chassis_type',
}

# system 子对象字段 -> SystemInfo 字段
SYSTEM_FIELDS = {
    'name': 'name',
    'manufacturer': 'manufacturer',
    'model': 'model',
    'serialNumber': 'serial_number',
    'biosSerialNumber': 'bios_serial_number',
    'domain': 'domain',
    'domainRole': 'domain_role',
    'chassisType': 'chassis_type',
}


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def is_excluded(record: Dict[str, Any]) -> bool:
    """判断原始记录是否应被过滤"""
    return record.get('nodeClass') in EXCLUDED_NODE_CLASSES


def _default_system(record: Dict[str, Any]) -> SystemInfo:
    return SystemInfo(name=record.get('systemName') or UNKNOWN)


def _vmware_host_system(record: Dict[str, Any]) -> SystemInfo:
    values = {target: record.get(source) or UNKNOWN for source, target in VMWARE_HOST_FIELDS.items()}
    return SystemInfo(
        number_of_processors=_to_int(record.get('numberOfProcessors')),
        total_physical_memory=_to_int(record.get('totalPhysicalMemory')),
        virtual_machine=True,
        **values
    )


def _standard_system(system: Dict[str, Any]) -> SystemInfo:
    values = {
        target: (system[source] if system.get(source) is not None else UNKNOWN)
        for source, target in SYSTEM_FIELDS.items()
    }
    return SystemInfo(
        number_of_processors=_to_int(system.get('numberOfProcessors')),
        total_physical_memory=_to_int(system.get('totalPhysicalMemory')),
        virtual_machine=bool(system.get('virtualMachine', False)),
        **values
    )


def normalize_device(record: Dict[str, Any]) -> CanonicalDevice:
    """
    将原始 NinjaOne 设备记录转换为 CanonicalDevice

    Args:
        record: 原始设备记录，至少包含 id、systemName、nodeClass

    Returns:
        CanonicalDevice: 规范化后的设备
    """
    raw_node_class = record.get('nodeClass') or ""
    node_class = NodeClass.from_raw(raw_node_class)
    system = record.get('system')

    if node_class is NodeClass.VMWARE_VM_HOST:
        system_info = _vmware_host_system(record)
    elif system is None:
        system_info = _default_system(record)
    else:
        # 空的 system 对象也视为存在，各字段按缺失处理
        system_info = _standard_system(system)

    return CanonicalDevice(
        id=record.get('id'),
        system_name=record.get('systemName'),
        node_class=node_class,
        raw_node_class=raw_node_class,
        system=system_info,
    )


def process_devices(records: Iterable[Dict[str, Any]]) -> List[CanonicalDevice]:
    """
    过滤并规范化设备记录，保持原始顺序

    Args:
        records: 原始设备记录

    Returns:
        List[CanonicalDevice]: 规范化后的设备列表
    """
    devices = []
    excluded = 0
    for record in records:
        if is_excluded(record):
            excluded += 1
            logger.debug(f"跳过设备 {record.get('id')} ({record.get('nodeClass')})")
            continue

        logger.debug(f"处理设备: {record.get('id')} {record.get('systemName')} {record.get('nodeClass')}")
        devices.append(normalize_device(record))

    logger.info(f"规范化设备 {len(devices)} 个，过滤 {excluded} 个")
    return devices


class DeviceSource:
    """
    设备来源，组合凭据交换、设备获取和规范化

    使用示例:
    ```python
    source = DeviceSource(NinjaClient.from_config(config['ninja']))
    devices = source.fetch_devices()
    ```
    """

    def __init__(self, client: NinjaClient):
        self.client = client

    def fetch_devices(self) -> List[CanonicalDevice]:
        """
        获取规范化设备列表

        Returns:
            List[CanonicalDevice]: 设备列表

        Raises:
            AuthError: 凭据交换失败
            UpstreamError: 设备列表获取失败
        """
        token = self.client.authenticate()
        records = self.client.list_devices(token)
        return process_devices(records)
