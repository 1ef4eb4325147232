"""
hintcc 属性编译器
==================
把一条属性声明编译成 AttributeDescriptor，并提供对应的访问器
（Python 数据描述符）。

    has name: str;
    private quantity: int = 0;
    lazy radar: RadarTower = lambda self: RadarTower();

访问级别与内部键：
  public / lazy / initvar        内部键 = 属性名
  private / protected / readonly 内部键 = 前缀 + 属性名（默认 '_'）
  只是命名约定：obj['_quantity'] 仍然可以直接读写。

默认值：
  普通值   构造时直接写入实例
  延迟值   （函数或 Deferred）在构造后钩子之后求值一次；
           lazy 属性以及普通类上的裸属性在第一次读取时求值
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from lark import exceptions as lark_exc

from ..error import AccessError, DefinitionError, ParseError
from ..runtime import (Deferred, Instance, contextual, current_class, hook_active,
                       running_hook, within)
from .hint import HintUnion, validate_hint

logger = logging.getLogger(__name__)


class AccessLevel(Enum):
    PUBLIC    = 'public'
    PRIVATE   = 'private'
    PROTECTED = 'protected'
    READONLY  = 'readonly'
    LAZY      = 'lazy'
    INITVAR   = 'initvar'

    @classmethod
    def from_modifier(cls, modifier: str) -> 'AccessLevel':
        """声明关键字 → 访问级别（has / attribute 是 public 的同义词）"""
        modifier = modifier.strip()
        if modifier in ('has', 'attribute'):
            return cls.PUBLIC
        try:
            return cls(modifier)
        except ValueError:
            raise DefinitionError(f"unknown attribute modifier '{modifier}'") from None

    @property
    def mangled(self) -> bool:
        return self in (AccessLevel.PRIVATE, AccessLevel.PROTECTED, AccessLevel.READONLY)

    @property
    def writable(self) -> bool:
        return self not in (AccessLevel.READONLY, AccessLevel.LAZY)


class _NoDefault:
    def __repr__(self):
        return 'NO_DEFAULT'

    def __bool__(self):
        return False


NO_DEFAULT = _NoDefault()

_MUTABLE_DEFAULTS = (list, dict, set)


@dataclass(frozen=True)
class AttributeDescriptor:
    """
    一个属性的编译结果。

    Attributes:
        name:          外部名（访问器名 / 构造参数名）
        internal_key:  实例存储中的键
        access:        AccessLevel
        hint:          HintUnion 或 None
        default:       普通值、Deferred 或 NO_DEFAULT
        is_lazy:       延迟默认值在第一次读取时才求值
        owner:         定义该属性的类（ClassDescriptor，或裸属性所在的普通类）
        getter/setter: 解析好的覆盖钩子（每个类各自解析）
        line:          声明所在行
    """
    name: str
    internal_key: str
    access: AccessLevel
    hint: Optional[HintUnion] = None
    default: Any = NO_DEFAULT
    is_lazy: bool = False
    owner: Any = None
    getter: Optional[Callable] = None
    setter: Optional[Callable] = None
    line: int = -1

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.default, Deferred)

    @property
    def owner_class(self) -> Optional[type]:
        """访问检查比较的 Python 类"""
        return getattr(self.owner, 'cls', None) if _is_class_descriptor(self.owner) else self.owner

    def with_hooks(self, getter, setter) -> 'AttributeDescriptor':
        return dataclasses.replace(self, getter=getter, setter=setter)


def _is_class_descriptor(obj) -> bool:
    return hasattr(obj, 'short_name') and hasattr(obj, 'attributes')


def as_default(value):
    """声明中的函数默认值视为延迟默认值"""
    if isinstance(value, Deferred):
        return value
    if inspect.isfunction(value):
        return Deferred(value)
    return value


# ──────────────────────────────────────────────────────────────────────────────
# 编译
# ──────────────────────────────────────────────────────────────────────────────

def build_attribute(name: str, access: AccessLevel, hint: Optional[HintUnion],
                    default: Any, context, line: int = -1) -> AttributeDescriptor:
    """
    由已经解析好的各部分构建属性描述符。

    Args:
        context: 拥有者上下文，需要提供 options / registry / owner
                 （DefinitionContext）
    """
    options = context.options
    if '.' in name or not name.isidentifier():
        raise DefinitionError(f"invalid attribute name '{name}'", line)
    if hint is not None:
        try:
            validate_hint(hint, context.registry)
        except DefinitionError as e:
            raise e.at(line)

    if default is not NO_DEFAULT:
        default = as_default(default)
        if options.reject_mutable_defaults and isinstance(default, _MUTABLE_DEFAULTS):
            raise DefinitionError(
                f"mutable default {type(default).__name__} for attribute {name} is not "
                f"allowed: use a deferred default such as 'lambda self: {type(default).__name__}()'",
                line)
    elif access is AccessLevel.LAZY:
        raise DefinitionError(f"Cannot set type lazy without an assignment ({name})", line)

    internal_key = options.mangle_prefix + name if access.mangled else name
    return AttributeDescriptor(
        name=name,
        internal_key=internal_key,
        access=access,
        hint=hint,
        default=default,
        is_lazy=access is AccessLevel.LAZY,
        owner=context.owner,
        line=line,
    )


def compile_attribute(declaration_text: str, access, context, line: int = -1) -> AttributeDescriptor:
    """
    编译一条属性声明文本：``name [: hint] (; | = expr)``。

    默认值表达式在编译单元的命名空间中求值一次。

    Raises:
        DefinitionError: 语法错误、非法提示、lazy 缺少默认值等
    """
    from ..tree.grammar import get_parser
    from ..tree.transformer import DeclarationBuilder

    if isinstance(access, str):
        access = AccessLevel.from_modifier(access)
    try:
        tree = get_parser().parse(declaration_text, start='attribute_text')
    except lark_exc.UnexpectedInput as e:
        raise ParseError(f"Invalid syntax for attribute declaration: {declaration_text.strip()!r}",
                         line, e.column) from e
    try:
        decl = DeclarationBuilder().transform(tree)
    except lark_exc.VisitError as e:
        if isinstance(e.orig_exc, DefinitionError):
            raise e.orig_exc.at(line) from None
        raise
    default = context.evaluate(decl.default_source, decl.name, line) \
        if decl.default_source is not None else NO_DEFAULT
    return build_attribute(decl.name, access, decl.hint, default, context, line)


# ──────────────────────────────────────────────────────────────────────────────
# 访问器
# ──────────────────────────────────────────────────────────────────────────────

def check_access(attr: AttributeDescriptor):
    """private 要求当前上下文恰好是定义类；protected 允许子类"""
    if attr.access is AccessLevel.PRIVATE:
        if current_class() is not attr.owner_class:
            raise AccessError(f"{attr.name} is a private attribute")
    elif attr.access is AccessLevel.PROTECTED:
        ctx = current_class()
        owner = attr.owner_class
        if ctx is None or owner is None or not issubclass(ctx, owner):
            raise AccessError(f"{attr.name} is a protected attribute")


def force(attr: AttributeDescriptor, instance, thunk: Deferred):
    """在定义类的上下文中对延迟值求值"""
    with within(attr.owner_class):
        return thunk(instance)


def read_attribute(instance, attr: AttributeDescriptor):
    check_access(attr)
    storage = instance.__dict__
    if (attr.has_default and attr.internal_key not in storage
            and not isinstance(instance, Instance)):
        # 普通类上的裸属性：没有构造函数，第一次读取时落地默认值
        storage[attr.internal_key] = attr.default

    if attr.getter is not None and not hook_active(attr.name, 'get'):
        with running_hook(attr.name, 'get'):
            return attr.getter(instance)

    value = storage.get(attr.internal_key)
    if isinstance(value, Deferred):
        # 不缓存：lazy 属性每次读取都重新求值
        return force(attr, instance, value)
    return value


def write_attribute(instance, attr: AttributeDescriptor, value):
    check_access(attr)
    if not attr.access.writable:
        raise AccessError(f"{attr.name} is readonly")
    if (attr.setter is not None and not hook_active(attr.name, 'set')
            and not hook_active(attr.name, 'get')):
        with running_hook(attr.name, 'set'):
            attr.setter(instance, value)
        return
    instance.__dict__[attr.internal_key] = value


class AttributeAccessor:
    """
    生成的访问器。每个类为其展平后的每个属性各装一个，
    钩子已在类定义时解析到 descriptor 上。
    """
    def __init__(self, descriptor: AttributeDescriptor):
        self.descriptor = descriptor
        self.__doc__ = f"{descriptor.access.value} {descriptor.name}" + \
            (f": {descriptor.hint!r}" if descriptor.hint is not None else '')

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return read_attribute(instance, self.descriptor)

    def __set__(self, instance, value):
        write_attribute(instance, self.descriptor, value)

    def __delete__(self, instance):
        raise AccessError(f"{self.descriptor.name} cannot be deleted")

    def __repr__(self):
        return f"<attribute {self.descriptor.name} ({self.descriptor.access.value})>"


def _wrap_methods(cls: type):
    for name, value in list(vars(cls).items()):
        if inspect.isfunction(value) and not getattr(value, '__hint_context__', False):
            setattr(cls, name, contextual(value, lambda: cls))


def enter_class_context(owner: type):
    """
    让普通类（以及它以后的子类）自己定义的函数在各自的类上下文中运行。
    每个类只处理一次；子类通过 __init_subclass__ 在创建时处理。
    """
    if vars(owner).get('__hint_context__'):
        return
    _wrap_methods(owner)
    previous = vars(owner).get('__init_subclass__')

    def __init_subclass__(cls, **kwargs):
        if previous is not None:
            previous.__func__(cls, **kwargs)
        else:
            super(owner, cls).__init_subclass__(**kwargs)
        _wrap_methods(cls)

    owner.__init_subclass__ = classmethod(__init_subclass__)
    owner.__hint_context__ = True
    logger.debug("methods of %s now run in its access context", owner.__qualname__)


class BareAttribute(AttributeAccessor):
    """
    放在普通 Python 类上的属性（不经过类编译器）：

        class Airport:
            name = unit.attribute("name: str")
            regional = unit.attribute("regional: bool = True")

    没有构造函数，默认值在第一次读取时落地；覆盖钩子在第一次访问时解析。
    宿主类及其子类自己定义的函数被包装为在各自的类上下文中运行，
    因此 private / protected 属性在这些方法里可以直接访问。
    """
    def __init__(self, descriptor: AttributeDescriptor, options):
        super().__init__(descriptor)
        self._options = options
        self._resolved = False

    def __set_name__(self, owner, name):
        if name != self.descriptor.name:
            raise DefinitionError(
                f"attribute declared as '{self.descriptor.name}' but assigned to '{name}'",
                self.descriptor.line)
        self.descriptor = dataclasses.replace(self.descriptor, owner=owner)
        if self.descriptor.access in (AccessLevel.PRIVATE, AccessLevel.PROTECTED):
            enter_class_context(owner)

    def _resolve_hooks(self, instance):
        if self._resolved:
            return
        cls = self.descriptor.owner_class or type(instance)
        getter = getattr(cls, self._options.getter_prefix + self.descriptor.name, None)
        setter = getattr(cls, self._options.setter_prefix + self.descriptor.name, None)
        self.descriptor = self.descriptor.with_hooks(getter, setter)
        self._resolved = True

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        self._resolve_hooks(instance)
        return read_attribute(instance, self.descriptor)

    def __set__(self, instance, value):
        self._resolve_hooks(instance)
        write_attribute(instance, self.descriptor, value)
