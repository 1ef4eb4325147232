"""
hintcc 类空间（注册表）
========================
显式持有的"类空间"代替进程级全局表：

  ClassSpace           一组编译单元共享的注册表（完整名 → ClassDescriptor，
                       短名 → 完整名列表，外部符号预言机，配置）
  CompilationUnit      一个编译单元（通常对应一个模块）：名字、求值命名空间、
                       本单元定义的类
  ClassDescriptor      一个类的编译期描述；展平完成后变为只读

短名跨单元重复是正常的：类型提示只要求短名在空间中注册过，
父类解析则优先使用本单元的同名类。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

from ..config import DEFAULT_OPTIONS, CompilerOptions
from ..error import DefinitionError
from .attribute import AccessLevel, AttributeDescriptor, BareAttribute, compile_attribute
from .oracle import SymbolOracle

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ClassDescriptor:
    """
    Attributes:
        short_name:     声明中的类名
        qualified_name: <单元名>.<短名>
        parent:         父 ClassDescriptor、外部 Python 类或 None
        attributes:     内部键 → AttributeDescriptor（展平后包含祖先属性）
        names:          外部名 → 内部键
        unit:           所在编译单元
        cls:            生成的 Python 类
    """
    short_name: str
    qualified_name: str
    unit: 'CompilationUnit'
    parent: Any = None
    attributes: dict = field(default_factory=dict)
    names: dict = field(default_factory=dict)
    cls: Optional[type] = None
    line: int = -1
    frozen: bool = False

    @property
    def internal_names(self) -> dict:
        """内部键 → 外部名"""
        return {v: k for k, v in self.names.items()}

    def attribute(self, name: str) -> Optional[AttributeDescriptor]:
        """按外部名查找属性"""
        key = self.names.get(name)
        return None if key is None else self.attributes[key]

    def add_attribute(self, attr: AttributeDescriptor):
        if self.frozen:
            raise DefinitionError(f"class {self.qualified_name} is already complete", attr.line)
        if attr.name in self.names:
            raise DefinitionError(f"{attr.name} already defined as an attribute", attr.line)
        if attr.internal_key in self.attributes:
            other = self.internal_names[attr.internal_key]
            raise DefinitionError(
                f"{attr.name} conflicts with attribute {other} (both stored as '{attr.internal_key}')",
                attr.line)
        self.attributes[attr.internal_key] = attr
        self.names[attr.name] = attr.internal_key

    def freeze(self):
        """展平完成：属性表与名字表变为只读视图"""
        self.attributes = MappingProxyType(dict(self.attributes))
        self.names = MappingProxyType(dict(self.names))
        self.frozen = True

    def __repr__(self):
        return f"ClassDescriptor({self.qualified_name!r}, {len(self.attributes)} attribute(s))"


class DefinitionContext:
    """属性编译需要的上下文：配置、提示注册表、拥有者、表达式求值"""
    def __init__(self, unit: 'CompilationUnit', owner: Any = None):
        self.unit = unit
        self.owner = owner

    @property
    def options(self) -> CompilerOptions:
        return self.unit.options

    @property
    def registry(self) -> 'CompilationUnit':
        return self.unit

    def evaluate(self, source: str, name: str, line: int = -1):
        return self.unit.evaluate(source, name, line)


class CompilationUnit:
    """
    一个编译单元。

    Args:
        space:     所属 ClassSpace
        name:      单元名（决定完整类名的前缀，通常是模块名）
        namespace: 默认值表达式、函数体的求值命名空间（通常是模块 globals()）
    """
    def __init__(self, space: 'ClassSpace', name: str, namespace: Optional[dict] = None):
        self.space = space
        self.name = name
        self.namespace = namespace if namespace is not None else {'__name__': name}
        self.classes: dict[str, ClassDescriptor] = {}

    @property
    def options(self) -> CompilerOptions:
        return self.space.options

    # ── 提示注册表接口 ──────────────────────────────────────────────────────

    def is_class_name(self, name: str) -> bool:
        return self.space.is_class_name(name)

    def symbol_exists(self, name: str) -> bool:
        return self.space.oracle.exists(name, self.namespace)

    # ── 解析 ────────────────────────────────────────────────────────────────

    def resolve_class(self, name: str) -> Optional[ClassDescriptor]:
        """本单元的短名优先，其次是空间中的完整名"""
        return self.classes.get(name) or self.space.classes.get(name)

    def resolve_symbol(self, name: str) -> Any:
        return self.space.oracle.resolve(name, self.namespace)

    def evaluate(self, source: str, name: str, line: int = -1):
        """在单元命名空间中对默认值表达式求值"""
        try:
            code = compile(source, f"<{self.name}:{name}>", 'eval')
        except SyntaxError as e:
            raise DefinitionError(f"invalid default expression for {name}: {e.msg}", line) from e
        try:
            return eval(code, self.namespace)
        except Exception as e:
            raise DefinitionError(
                f"default expression for {name} failed: {type(e).__name__}: {e}", line) from e

    # ── 普通类上的裸属性 ────────────────────────────────────────────────────

    def attribute(self, declaration_text: str, access='public') -> BareAttribute:
        """
        编译一个放在普通 Python 类上的属性::

            class Airport:
                name = unit.attribute("name: str")
        """
        context = DefinitionContext(self)
        descriptor = compile_attribute(declaration_text, access, context)
        if descriptor.access is AccessLevel.INITVAR:
            raise DefinitionError(f"initvar {descriptor.name} only makes sense inside a class")
        return BareAttribute(descriptor, self.options)

    def __repr__(self):
        return f"CompilationUnit({self.name!r}, {len(self.classes)} class(es))"


class ClassSpace:
    """
    类空间。定义期只追加，不删除（失败的定义撤销它先注册的短名）；之后只读。
    单线程定义：并发宿主需自行串行化定义阶段。
    """
    def __init__(self, oracle: Optional[SymbolOracle] = None,
                 options: CompilerOptions = DEFAULT_OPTIONS):
        self.oracle = oracle or SymbolOracle()
        self.options = options
        self.classes: dict[str, ClassDescriptor] = {}          # 完整名 → 描述
        self.short_names: dict[str, list[str]] = {}             # 短名 → 完整名列表
        self.units: dict[str, CompilationUnit] = {}

    def unit(self, name: str, namespace: Optional[dict] = None) -> CompilationUnit:
        """取得（或创建）一个编译单元；再次传入的 namespace 会替换旧的"""
        unit = self.units.get(name)
        if unit is None:
            unit = self.units[name] = CompilationUnit(self, name, namespace)
        elif namespace is not None:
            unit.namespace = namespace
        return unit

    # ── 注册 ────────────────────────────────────────────────────────────────

    def is_defined(self, qualified_name: str) -> bool:
        return qualified_name in self.classes

    def register_short_name(self, short_name: str, qualified_name: str):
        names = self.short_names.setdefault(short_name, [])
        if qualified_name not in names:
            names.append(qualified_name)

    def unregister_short_name(self, short_name: str, qualified_name: str):
        names = self.short_names.get(short_name, [])
        if qualified_name in names:
            names.remove(qualified_name)
        if not names:
            self.short_names.pop(short_name, None)

    def commit(self, descriptor: ClassDescriptor):
        if descriptor.qualified_name in self.classes:
            raise DefinitionError(f"class {descriptor.qualified_name} already defined", descriptor.line)
        self.classes[descriptor.qualified_name] = descriptor
        descriptor.unit.classes[descriptor.short_name] = descriptor
        logger.debug("registered class %s", descriptor.qualified_name)

    # ── 查询 ────────────────────────────────────────────────────────────────

    def is_class_name(self, name: str) -> bool:
        return name in self.short_names or name in self.classes

    def lookup(self, qualified_name: str) -> Optional[ClassDescriptor]:
        return self.classes.get(qualified_name)

    def dump(self) -> str:
        lines = []
        for unit in self.units.values():
            lines.append(f"[{unit.name}]")
            for desc in unit.classes.values():
                parent = desc.parent
                parent_name = getattr(parent, 'qualified_name', getattr(parent, '__qualname__', None))
                suffix = f" extends {parent_name}" if parent_name else ''
                lines.append(f"  class {desc.short_name}{suffix}")
                for key in sorted(desc.attributes):
                    attr = desc.attributes[key]
                    hint = f": {attr.hint!r}" if attr.hint is not None else ''
                    lines.append(f"    {attr.access.value} {attr.name}{hint}  [{key}]")
        return '\n'.join(lines)

