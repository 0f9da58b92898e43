#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
工具模块：日志、异常、装饰器和同步内缓存。
"""
