"""
hintcc 继承展平
================
把祖先的属性表合并进子类。

遍历顺序（刻意保持简单，不是真正的 MRO）：
  本类在前；之后对每个类，按声明顺序的逆序访问它的父类，
  先序、深度优先递归。先见者胜，本类声明的属性永远不会被覆盖。

只有编译器生成的类贡献属性；外部 Python 类本身不贡献，
但会继续向上遍历它们的父类（外部类可能继承自编译器生成的类）。

复制的是描述符本身：内部键与定义类保持不变，
因此 private 检查仍然针对真正的定义类，而不是子类。
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from ..runtime import Instance

logger = logging.getLogger(__name__)


def declared_parents(cls: type) -> list[type]:
    """声明的父类（去掉协议基类 Instance 与 object）"""
    return [base for base in cls.__bases__ if base not in (Instance, object)]


def compiled_descriptor(cls: type):
    """cls 自己（不含继承）的 ClassDescriptor；外部类返回 None"""
    return vars(cls).get('__hint_class__')


def ancestor_order(cls: type) -> Iterator[type]:
    """本类，然后先序深度优先地逆序访问各层父类"""
    yield cls
    yield from _visit(cls)


def _visit(cls: type) -> Iterator[type]:
    for parent in reversed(declared_parents(cls)):
        yield parent
        yield from _visit(parent)


def flatten(descriptor) -> int:
    """
    就地把祖先属性合并进 descriptor，返回新增的属性数量。
    descriptor.cls 必须已经生成。
    """
    added = 0
    for ancestor in ancestor_order(descriptor.cls):
        source: Optional[object] = compiled_descriptor(ancestor)
        if source is None or source is descriptor:
            continue
        for key, attr in source.attributes.items():
            if key in descriptor.attributes or attr.name in descriptor.names:
                continue
            descriptor.attributes[key] = attr
            descriptor.names[attr.name] = key
            added += 1
            logger.debug("%s inherits %s from %s",
                         descriptor.qualified_name, attr.name, source.qualified_name)
    return added
