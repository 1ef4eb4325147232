"""
hintcc 类型提示
================
类型提示只做文档用途：定义期解析并校验，运行期不做任何检查。

提示树的节点：
  Leaf(name)                 int、str、Foo、pkg.mod.Klass …
  Container(kind, inner)     arrayref[int | str]
  InlineObject(fields)       {name: str, age: int}   （只允许一层）
  HintUnion(alternatives)    a | b | c               （顶层总是一个 union）

str(hint) 给出规范形式，重新解析后得到相等的树。
"""

from __future__ import annotations

from typing import Iterator, Protocol

from lark import Transformer, exceptions as lark_exc, v_args

from ..config import DEFAULT_OPTIONS
from ..error import ParseError, ValidationError


class HintNode:
    """所有提示节点的基类"""
    def __eq__(self, other):
        return isinstance(other, self.__class__)

    def __hash__(self):
        return hash(repr(self))

    def __repr__(self):
        return self.__class__.__name__


class Leaf(HintNode):
    """单个名字：基础类型、已注册类名或外部符号"""
    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, Leaf) and self.name == other.name

    def __hash__(self):
        return hash(('leaf', self.name))

    def __repr__(self):
        return self.name


class HintUnion(HintNode):
    """候选项列表（不去重，不检查重叠）"""
    def __init__(self, alternatives):
        self.alternatives = tuple(alternatives)
        if not self.alternatives:
            raise ParseError("empty type hint")

    def __eq__(self, other):
        return isinstance(other, HintUnion) and self.alternatives == other.alternatives

    def __hash__(self):
        return hash(('union', self.alternatives))

    def __repr__(self):
        return ' | '.join(map(repr, self.alternatives))


class Container(HintNode):
    """带方括号的容器：kind[inner]"""
    def __init__(self, kind: str, inner: HintUnion):
        self.kind = kind
        self.inner = inner

    def __eq__(self, other):
        return (isinstance(other, Container) and
                self.kind == other.kind and
                self.inner == other.inner)

    def __hash__(self):
        return hash(('container', self.kind, self.inner))

    def __repr__(self):
        return f"{self.kind}[{self.inner!r}]"


class InlineObject(HintNode):
    """内联对象提示 {field: hint, ...}，字段提示中不能再嵌套内联对象"""
    def __init__(self, fields: dict):
        self.fields = dict(fields)

    def __eq__(self, other):
        return (isinstance(other, InlineObject) and
                list(self.fields.items()) == list(other.fields.items()))

    def __hash__(self):
        return hash(('object', tuple(self.fields.items())))

    def __repr__(self):
        inner = ', '.join(f"{k}: {v!r}" for k, v in self.fields.items())
        return '{' + inner + '}'


# ──────────────────────────────────────────────────────────────────────────────
# 基础类型
# ──────────────────────────────────────────────────────────────────────────────

# 名字 → 是否可以作为容器
PRIMITIVES: dict[str, bool] = {
    'int':       False,
    'str':       False,
    'bool':      False,
    'undef':     False,
    'num':       False,
    'scalar':    False,
    'array':     True,
    'hash':      False,
    'coderef':   False,
    'object':    True,
    'hashref':   False,
    'arrayref':  True,
    'scalarref': False,
}


class HintRegistry(Protocol):
    """validate_hint 需要的查询接口（ClassSpace 实现了它）"""
    def is_class_name(self, name: str) -> bool: ...
    def symbol_exists(self, name: str) -> bool: ...


# ──────────────────────────────────────────────────────────────────────────────
# 解析
# ──────────────────────────────────────────────────────────────────────────────

class HintBuilder(Transformer):
    """Lark 子树 → 提示节点（声明文法的 transformer 也复用这些规则）"""

    def hint(self, children):
        return HintUnion(children)

    def leaf(self, children):
        return Leaf(str(children[0]))

    def container(self, children):
        name, inner = children
        return Container(str(name), inner)

    def inline_object(self, children):
        fields = {}
        for name, hint in children:
            if name in fields:
                raise ParseError(f"duplicate field '{name}' in inline object hint")
            if any(isinstance(alt, InlineObject) for alt in _walk(hint)):
                raise ParseError("inline object hints cannot be nested")
            fields[name] = hint
        return InlineObject(fields)

    @v_args(inline=True)
    def field(self, name, _mark, hint):
        return str(name), hint


def bracket_depth(text: str) -> int:
    """方括号 / 花括号的最大嵌套深度"""
    depth = deepest = 0
    for c in text:
        if c in '[{':
            depth += 1
            deepest = max(deepest, depth)
        elif c in ']}':
            depth -= 1
    return deepest


def parse_hint(text: str, max_depth: int = DEFAULT_OPTIONS.max_hint_depth) -> HintUnion:
    """
    解析一段类型提示文本。

    Raises:
        ParseError: 语法错误，或括号嵌套超过 max_depth
    """
    # 放在这里导入，避免 grammar ↔ hint 的循环依赖
    from ..tree.grammar import get_parser

    if not text or not text.strip():
        raise ParseError("empty type hint")
    if bracket_depth(text) > max_depth:
        raise ParseError("Invalid type hints. Perhaps an invalid character or unclosed bracket?")
    try:
        tree = get_parser().parse(text, start='hint')
    except lark_exc.UnexpectedInput as e:
        raise ParseError(
            f"Invalid type hints. Perhaps an invalid character or unclosed bracket? "
            f"({text.strip()!r} at column {e.column})") from e
    try:
        return HintBuilder().transform(tree)
    except lark_exc.VisitError as e:
        if isinstance(e.orig_exc, ParseError):
            raise e.orig_exc from None
        raise


# ──────────────────────────────────────────────────────────────────────────────
# 遍历与校验
# ──────────────────────────────────────────────────────────────────────────────

def _walk(node: HintNode) -> Iterator[HintNode]:
    yield node
    if isinstance(node, HintUnion):
        for alt in node.alternatives:
            yield from _walk(alt)
    elif isinstance(node, Container):
        yield from _walk(node.inner)
    elif isinstance(node, InlineObject):
        for sub in node.fields.values():
            yield from _walk(sub)


def hint_leaves(hint: HintNode) -> Iterator[str]:
    """依次给出提示中出现的每个名字（容器名也算）"""
    for node in _walk(hint):
        if isinstance(node, Leaf):
            yield node.name
        elif isinstance(node, Container):
            yield node.kind


def is_known_leaf(name: str, registry: HintRegistry) -> bool:
    return (name in PRIMITIVES or
            registry.is_class_name(name) or
            registry.symbol_exists(name))


def validate_hint(hint: HintNode, registry: HintRegistry) -> None:
    """
    检查提示中的每个名字：
      - 基础类型、已注册的类短名、或外部符号预言机认可的名字才合法；
      - 不可作为容器的基础类型（int、str …）不能带方括号。

    Raises:
        ValidationError
    """
    for node in _walk(hint):
        if isinstance(node, Container) and PRIMITIVES.get(node.kind) is False:
            raise ValidationError(
                f"{node.kind} is not an allowed container for other type hints.")
    for name in hint_leaves(hint):
        if not is_known_leaf(name, registry):
            raise ValidationError(
                f"{name} is not a valid type hint. Do you need to import {name}?")
