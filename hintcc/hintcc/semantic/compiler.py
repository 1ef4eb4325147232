"""
hintcc 类编译器 / 构造函数生成器
=================================
使用访问者模式遍历声明 AST，完成：
  1. 类定义：解析类头、编译属性、解析父类、展平继承、生成构造函数
  2. 函数定义：校验参数与返回值提示，去掉提示后编译 Python 函数体
  3. bind 声明：校验提示，在单元命名空间中绑定值

设计原则：
  - 定义期错误（DefinitionError）对当前编译单元是致命的，直接抛出
  - 类型提示只校验、只记录（__annotations__ 中保存规范形式），不做运行期检查
  - 生成的类、函数以短名绑定到单元命名空间（"词法构造函数"）

构造协议（生成的 __init__(**kwargs)）：
  a. 未传入的属性落地默认值（延迟值暂不求值）
  b. 逐个处理传入的参数：未知参数报 ArgumentError；有写钩子走钩子，否则直接存储
  c. 调用构造后钩子 __post_init__(args)
  d. 仍未赋值的属性报 ArgumentError（必填参数）
  e. 对剩余的非 lazy 延迟值求值
"""

from __future__ import annotations

import ast
import dataclasses
import inspect
import logging
import textwrap
from typing import Any, Iterable, Optional

from lark import exceptions as lark_exc

from ..error import ArgumentError, DefinitionError, HintsError, ParseError
from ..runtime import Deferred, Instance, contextual, running_hook
from ..tree.grammar import get_parser
from ..tree.scanner import Fragment
from ..tree.transformer import (
    ASTNode, Module, ClassHeader, ClassDecl, AttributeDecl, FunctionDecl, BindDecl,
    DeclarationBuilder,
)
from .attribute import (
    NO_DEFAULT, AccessLevel, AttributeAccessor, AttributeDescriptor,
    build_attribute, compile_attribute, force,
)
from .hint import HintUnion, parse_hint, validate_hint
from .inherit import compiled_descriptor, flatten
from .oracle import MISSING
from .registry import ClassDescriptor, CompilationUnit, DefinitionContext

logger = logging.getLogger(__name__)


def parse_class_header(text: str, line: int = -1) -> ClassHeader:
    """解析 ``Name [extends Parent]``"""
    try:
        tree = get_parser().parse(text, start='class_header')
    except lark_exc.UnexpectedInput as e:
        raise ParseError(f"Invalid class name: {text.strip()!r}", line, e.column) from e
    try:
        return DeclarationBuilder().transform(tree)
    except lark_exc.VisitError as e:
        if isinstance(e.orig_exc, DefinitionError):
            raise e.orig_exc.at(line) from None
        raise


# ──────────────────────────────────────────────────────────────────────────────
# 构造函数
# ──────────────────────────────────────────────────────────────────────────────

def construct(descriptor: ClassDescriptor, instance, args: dict):
    """按构造协议初始化 instance（见模块文档 a-e）"""
    options = descriptor.unit.options
    attributes = descriptor.attributes
    storage = instance.__dict__
    hook_args = dict(args)
    pending_initvars = []
    order = sorted(attributes)

    # a. 默认值
    for key in order:
        attr = attributes[key]
        if attr.name in args or not attr.has_default:
            continue
        if attr.access is not AccessLevel.INITVAR:
            storage[key] = attr.default
        elif isinstance(attr.default, Deferred):
            pending_initvars.append(attr)
        else:
            hook_args[attr.name] = attr.default

    # b. 传入的参数
    for name in sorted(args):
        key = descriptor.names.get(name)
        if key is None:
            raise ArgumentError(f"{name} is not a valid argument for class {descriptor.short_name}")
        attr = attributes[key]
        if attr.access is AccessLevel.INITVAR:
            continue
        if attr.setter is not None:
            with running_hook(attr.name, 'set'):
                attr.setter(instance, args[name])
        else:
            storage[key] = args[name]

    # c. 构造后钩子；initvar 的延迟默认值在参数写入之后求值
    for attr in pending_initvars:
        hook_args[attr.name] = force(attr, instance, attr.default)
    getattr(instance, options.init_hook)(hook_args)

    # d. 必填检查
    for key in order:
        attr = attributes[key]
        if attr.access is not AccessLevel.INITVAR and key not in storage:
            raise ArgumentError(
                f"{attr.name} is a required parameter for class {descriptor.short_name}. "
                f"Please pass a value, or set it in {options.init_hook}")

    # e. 强制求值延迟默认值（lazy 除外；已被具体值替换的不会再是 Deferred）
    for key in order:
        attr = attributes[key]
        value = storage.get(key)
        if isinstance(value, Deferred) and not attr.is_lazy:
            storage[key] = force(attr, instance, value)


def make_constructor(descriptor: ClassDescriptor):
    def __init__(self, **kwargs):
        construct(descriptor, self, kwargs)
    __init__.__qualname__ = f"{descriptor.short_name}.__init__"
    __init__.__module__ = descriptor.unit.name
    return __init__


# ──────────────────────────────────────────────────────────────────────────────
# 函数体
# ──────────────────────────────────────────────────────────────────────────────

def _dedent_body(text: str) -> str:
    """
    去掉函数体的公共缩进。结果的第 1 行对应 '{' 所在行，
    这样行号只需整体平移。
    """
    first, sep, rest = text.partition('\n')
    if not sep:
        return first.strip()
    rest = textwrap.dedent(rest)
    return (first.strip() + '\n' + rest) if first.strip() else ('\n' + rest)


def _all_args(arguments: ast.arguments) -> Iterable[ast.arg]:
    yield from arguments.posonlyargs
    yield from arguments.args
    if arguments.vararg is not None:
        yield arguments.vararg
    yield from arguments.kwonlyargs
    if arguments.kwarg is not None:
        yield arguments.kwarg


def _as_fragment(value, line: int) -> Fragment:
    if isinstance(value, Fragment):
        return value
    return Fragment(value or '', line)


# ──────────────────────────────────────────────────────────────────────────────
# 编译器
# ──────────────────────────────────────────────────────────────────────────────

class ClassCompiler:
    """
    用法：
        compiler = ClassCompiler(space.unit('shop.models'))
        Item = compiler.define_class("Item", [("public", "name: str;"),
                                              ("private", "quantity: int = 0;")])
    """

    def __init__(self, unit: CompilationUnit, source_name: str = '<declarations>'):
        self.unit = unit
        self.space = unit.space
        self.options = unit.options
        self.source_name = source_name

    # ══════════════════════════════════════════════════════════════════════
    # 入口
    # ══════════════════════════════════════════════════════════════════════

    def compile_module(self, module: Module) -> dict:
        """编译整个声明模块，返回 名字 → 生成对象"""
        return self._visit(module)

    def _visit(self, node: ASTNode):
        method = '_visit_' + type(node).__name__
        handler = getattr(self, method, None)
        if handler is None:
            raise DefinitionError(f"unexpected declaration {type(node).__name__}", node.line)
        try:
            return handler(node)
        except HintsError as e:
            raise e.at(node.line, node.col)

    def _visit_Module(self, node: Module) -> dict:
        defined = {}
        for decl in node.decls:
            name, value = self._visit(decl)
            defined[name] = value
        return defined

    def _visit_ClassDecl(self, node: ClassDecl):
        methods = {}
        for fn in node.methods:
            if fn.name in methods:
                raise DefinitionError(f"method {fn.name} already defined in class {node.name}", fn.line)
            methods[fn.name] = self._visit_FunctionDecl(fn, owner=node.name)[1]
        cls = self.define_class(node.header, node.attributes, methods, line=node.line)
        return node.name, cls

    def _visit_FunctionDecl(self, node: FunctionDecl, owner: Optional[str] = None):
        fn = self.compile_function(node.name, node.params, node.body,
                                   return_hint=node.return_hint, owner=owner, line=node.line)
        if owner is None:
            self.unit.namespace[node.name] = fn
        return node.name, fn

    def _visit_BindDecl(self, node: BindDecl):
        value = self.compile_bind(node.name, node.hint, node.default_source, line=node.line)
        return node.name, value

    # ══════════════════════════════════════════════════════════════════════
    # 类
    # ══════════════════════════════════════════════════════════════════════

    def define_class(self, header, attributes: Iterable = (), methods: Optional[dict] = None,
                     parent: Any = None, line: int = -1) -> type:
        """
        定义一个类并返回生成的 Python 类（同时以短名绑定到单元命名空间）。

        Args:
            header:     ``"Name [extends Parent]"`` 或 ClassHeader
            attributes: AttributeDecl 节点，或 (访问级别, 声明文本) 二元组
            methods:    名字 → 函数；函数在类的访问上下文中运行
            parent:     显式父类（类名、ClassDescriptor 或 Python 类），优先于类头中的 extends
        """
        if not isinstance(header, ClassHeader):
            header = parse_class_header(header, line)
        line = header.line if line < 0 else line
        short_name = header.name
        qualified_name = f"{self.unit.name}.{short_name}"

        if self.space.is_defined(qualified_name):
            raise DefinitionError(f"class {qualified_name} already defined", line)
        # 先注册短名：属性提示可以引用类自己
        self.space.register_short_name(short_name, qualified_name)
        try:
            cls, descriptor, added = self._build_class(header, short_name, qualified_name,
                                                       attributes, methods, parent, line)
        except DefinitionError:
            self.space.unregister_short_name(short_name, qualified_name)
            raise
        self.unit.namespace[short_name] = cls
        logger.debug("defined class %s (%d local, %d inherited attribute(s))",
                     qualified_name, len(descriptor.attributes) - added, added)
        return cls

    def _build_class(self, header: ClassHeader, short_name: str, qualified_name: str,
                     attributes: Iterable, methods: Optional[dict], parent: Any, line: int):
        parent_ref = self._resolve_parent(parent if parent is not None else header.parent, line)
        descriptor = ClassDescriptor(short_name, qualified_name, self.unit,
                                     parent=parent_ref, line=line)
        context = DefinitionContext(self.unit, owner=descriptor)
        for item in attributes:
            descriptor.add_attribute(self._compile_member(item, context, line))

        methods = dict(methods or {})
        cls = type(short_name, self._bases(parent_ref),
                   self._class_namespace(descriptor, methods))
        descriptor.cls = cls

        added = flatten(descriptor)
        self._install_accessors(descriptor, methods)
        descriptor.freeze()
        self.space.commit(descriptor)
        return cls, descriptor, added

    def _compile_member(self, item, context: DefinitionContext, line: int) -> AttributeDescriptor:
        if isinstance(item, AttributeDecl):
            try:
                access = AccessLevel.from_modifier(item.modifier or 'public')
            except DefinitionError as e:
                raise e.at(item.line)
            default = NO_DEFAULT
            if item.default_source is not None:
                default = context.evaluate(item.default_source, item.name, item.line)
            return build_attribute(item.name, access, item.hint, default, context, item.line)
        if isinstance(item, AttributeDescriptor):
            return dataclasses.replace(item, owner=context.owner)
        access, text = item
        return compile_attribute(text, access, context, line)

    def _resolve_parent(self, parent, line: int):
        """父类：本单元的类 → 空间中的完整名 → 外部符号（必须是类）"""
        if parent is None:
            return None
        if isinstance(parent, ClassDescriptor):
            return parent
        if isinstance(parent, type):
            return compiled_descriptor(parent) or parent
        name = str(parent)
        descriptor = self.unit.resolve_class(name)
        if descriptor is not None:
            return descriptor
        obj = self.unit.resolve_symbol(name)
        if obj is MISSING:
            raise DefinitionError(f"{name} not found. Do you need to import or load it?", line)
        if not isinstance(obj, type):
            raise DefinitionError(f"{name} is a {type(obj).__name__}, not a class", line)
        return compiled_descriptor(obj) or obj

    @staticmethod
    def _bases(parent_ref) -> tuple:
        if parent_ref is None:
            return (Instance,)
        if isinstance(parent_ref, ClassDescriptor):
            return (parent_ref.cls,)
        if issubclass(parent_ref, Instance):
            return (parent_ref,)
        return (Instance, parent_ref)

    def _class_namespace(self, descriptor: ClassDescriptor, methods: dict) -> dict:
        if '__init__' in methods:
            raise DefinitionError(
                f"class {descriptor.short_name} cannot define __init__: "
                f"the constructor is generated, use {self.options.init_hook}", descriptor.line)
        namespace = {
            '__module__': self.unit.name,
            '__qualname__': descriptor.short_name,
            '__hint_class__': descriptor,
            '__init__': make_constructor(descriptor),
        }
        owner = lambda: descriptor.cls  # noqa: E731
        for name, fn in methods.items():
            namespace[name] = contextual(fn, owner) if inspect.isfunction(fn) else fn
        return namespace

    def _is_protocol_name(self, name: str) -> bool:
        """Instance 提供的方法（keys、__getitem__ …）与构造后钩子不能被属性遮蔽"""
        return hasattr(Instance, name) or name == self.options.init_hook

    def _install_accessors(self, descriptor: ClassDescriptor, methods: dict):
        """解析每个属性的覆盖钩子，并为非 initvar 属性安装访问器"""
        cls = descriptor.cls
        for key, attr in list(descriptor.attributes.items()):
            if attr.name in methods:
                raise DefinitionError(
                    f"{attr.name} is both an attribute and a method of class {descriptor.short_name}",
                    descriptor.line)
            if attr.access is not AccessLevel.INITVAR and self._is_protocol_name(attr.name):
                raise DefinitionError(
                    f"{attr.name} is reserved by the object protocol and cannot be "
                    f"an attribute of class {descriptor.short_name}", attr.line)
            getter = getattr(cls, self.options.getter_prefix + attr.name, None)
            setter = getattr(cls, self.options.setter_prefix + attr.name, None)
            attr = attr.with_hooks(getter if callable(getter) else None,
                                   setter if callable(setter) else None)
            descriptor.attributes[key] = attr
            if attr.access is not AccessLevel.INITVAR:
                setattr(cls, attr.name, AttributeAccessor(attr))
            if attr.getter or attr.setter:
                logger.debug("%s.%s uses override hook(s)", descriptor.short_name, attr.name)

    # ══════════════════════════════════════════════════════════════════════
    # 函数
    # ══════════════════════════════════════════════════════════════════════

    def _checked_hint(self, hint, line: int) -> HintUnion:
        if isinstance(hint, str):
            hint = parse_hint(hint, self.options.max_hint_depth)
        try:
            validate_hint(hint, self.unit)
        except DefinitionError as e:
            raise e.at(line)
        return hint

    def compile_function(self, name: str, params, body, return_hint=None,
                         owner: Optional[str] = None, line: int = -1):
        """
        编译 ``def name(params) [: hint] { body }``。

        参数表使用 Python 语法，可带 ``: hint``；提示经校验后从生成代码中去掉，
        规范形式记录在 __annotations__ 中。函数体的行号对应声明源码。
        """
        params = _as_fragment(params, line)
        body = _as_fragment(body, line)

        header_src = f"def {name}({params.text}):\n    pass\n"
        try:
            header = ast.parse(header_src, filename=self.source_name)
        except SyntaxError as e:
            raise DefinitionError(f"invalid parameter list for {name}: {e.msg}", params.line) from e
        func = header.body[0]

        annotations = {}
        for arg in _all_args(func.args):
            if arg.annotation is None:
                continue
            text = ast.get_source_segment(header_src, arg.annotation)
            try:
                hint = self._checked_hint(text, params.line)
            except ParseError as e:
                raise e.at(params.line)
            annotations[arg.arg] = repr(hint)
            arg.annotation = None
        if return_hint is not None:
            annotations['return'] = repr(self._checked_hint(return_hint, line))
        ast.increment_lineno(header, params.line - 1)

        body_src = _dedent_body(body.text)
        try:
            body_module = ast.parse(body_src, filename=self.source_name)
        except SyntaxError as e:
            raise DefinitionError(f"syntax error in body of {name}: {e.msg}",
                                  body.line + (e.lineno or 1) - 1) from e
        ast.increment_lineno(body_module, body.line - 1)

        func.body = body_module.body or [ast.Pass(lineno=body.line, col_offset=0)]
        func.returns = None
        func.decorator_list = []
        module = ast.Module(body=[func], type_ignores=[])
        ast.fix_missing_locations(module)

        scope: dict = {}
        exec(compile(module, self.source_name, 'exec'), self.unit.namespace, scope)
        fn = scope[name]
        fn.__annotations__ = annotations
        fn.__qualname__ = f"{owner}.{name}" if owner else name
        fn.__module__ = self.unit.name
        logger.debug("compiled function %s%s", fn.__qualname__,
                     f" -> {annotations['return']}" if 'return' in annotations else '')
        return fn

    # ══════════════════════════════════════════════════════════════════════
    # bind
    # ══════════════════════════════════════════════════════════════════════

    def compile_bind(self, name: str, hint=None, source: Optional[str] = None, line: int = -1):
        """``bind name: hint = expr;`` —— 提示只在定义期校验，没有运行期效果"""
        if hint is not None:
            hint = self._checked_hint(hint, line)
            self.unit.namespace.setdefault('__annotations__', {})[name] = repr(hint)
        value = self.unit.evaluate(source, name, line) if source else None
        self.unit.namespace[name] = value
        return value
