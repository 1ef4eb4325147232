"""
hintcc 声明 AST Transformer
============================
将 Lark 生成的 CST 转换为声明 AST。

使用 Lark 的 Transformer 机制：每个方法对应 grammar 中一条规则，
接收已转换的子节点，返回 AST 节点对象。类型提示相关的规则
（hint / leaf / container / inline_object / field）继承自 HintBuilder。

使用方式：
    scan_result = scan(source)
    tree = get_parser().parse(scan_result.source)
    module = DeclarationBuilder(scan_result).transform(tree)
"""

from dataclasses import dataclass, field
from typing import List, Optional

from lark import v_args

from ..error import DefinitionError
from ..semantic.hint import HintBuilder, HintUnion
from .scanner import Fragment, ScanResult


# ──────────────────────────────────────────────────────────────────────────────
# AST 节点基类
# ──────────────────────────────────────────────────────────────────────────────

class ASTNode:
    """
    所有 AST 节点的公共基类。

    Attributes:
        line, col: 源码位置（由 Transformer 从 meta 填入）
    """
    line: int = -1
    col:  int = -1

    def _pos(self):
        return f"{self.line}:{self.col}"

    def __repr__(self):
        return f"{self.__class__.__name__}@{self._pos()}"


def _place(node: ASTNode, meta) -> ASTNode:
    if meta is not None and not getattr(meta, 'empty', True):
        node.line = getattr(meta, 'line', -1)
        node.col = getattr(meta, 'column', -1)
    return node


# ──────────────────────────────────────────────────────────────────────────────
# 声明节点
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class Module(ASTNode):
    """整个声明源文件"""
    decls: List[ASTNode] = field(default_factory=list)


@dataclass
class ClassHeader(ASTNode):
    name:   str = ''
    parent: Optional[str] = None


@dataclass
class AttributeDecl(ASTNode):
    """属性声明；modifier 为空表示单独编译的属性文本"""
    modifier:       str = ''
    name:           str = ''
    hint:           Optional[HintUnion] = None
    default_source: Optional[str] = None


@dataclass
class FunctionDecl(ASTNode):
    """函数 / 方法声明：参数表与函数体保持 Python 原文"""
    name:        str = ''
    params:      Optional[Fragment] = None
    return_hint: Optional[HintUnion] = None
    body:        Optional[Fragment] = None


@dataclass
class ClassDecl(ASTNode):
    header:     ClassHeader = None
    attributes: List[AttributeDecl] = field(default_factory=list)
    methods:    List[FunctionDecl] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.header.name


@dataclass
class BindDecl(ASTNode):
    """bind name: hint = expr;  —— 提示只在定义期校验"""
    name:           str = ''
    hint:           Optional[HintUnion] = None
    default_source: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Transformer
# ──────────────────────────────────────────────────────────────────────────────

def _identifier(token) -> str:
    name = str(token)
    if '.' in name:
        raise DefinitionError(f"'{name}' is not a valid name here", token.line, token.column)
    return name


def _expr(token) -> Optional[str]:
    return None if token is None else str(token).strip()


class DeclarationBuilder(HintBuilder):
    """CST → 声明 AST"""

    def __init__(self, scan_result: Optional[ScanResult] = None):
        super().__init__()
        self._scan = scan_result

    def _fragment(self, token, table: str) -> Optional[Fragment]:
        if self._scan is None:
            return None
        index = int(str(token)[2:])
        return getattr(self._scan, table)[index]

    @v_args(meta=True)
    def start(self, meta, children):
        return _place(Module(decls=list(children)), meta)

    @v_args(meta=True)
    def class_header(self, meta, children):
        name, parent = children
        return _place(ClassHeader(name=_identifier(name),
                                  parent=None if parent is None else str(parent)), meta)

    @v_args(meta=True)
    def class_decl(self, meta, children):
        _kw, header, *members = children
        node = ClassDecl(header=header)
        for member in members:
            if isinstance(member, AttributeDecl):
                node.attributes.append(member)
            else:
                node.methods.append(member)
        return _place(node, meta)

    def hint_clause(self, children):
        _mark, hint = children
        return hint

    @v_args(meta=True)
    def attribute_decl(self, meta, children):
        modifier, name, hint, expr = children
        return _place(AttributeDecl(modifier=str(modifier), name=_identifier(name),
                                    hint=hint, default_source=_expr(expr)), meta)

    @v_args(meta=True)
    def attribute_text(self, meta, children):
        name, hint, expr = children
        return _place(AttributeDecl(name=_identifier(name), hint=hint,
                                    default_source=_expr(expr)), meta)

    @v_args(meta=True)
    def function_decl(self, meta, children):
        _kw, name, params, hint, body = children
        return _place(FunctionDecl(name=_identifier(name),
                                   params=self._fragment(params, 'params'),
                                   return_hint=hint,
                                   body=self._fragment(body, 'bodies')), meta)

    @v_args(meta=True)
    def bind_decl(self, meta, children):
        _kw, name, hint, expr = children
        return _place(BindDecl(name=_identifier(name), hint=hint,
                               default_source=_expr(expr)), meta)
