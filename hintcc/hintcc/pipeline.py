"""
hintcc 编译流水线
==================
将 扫描 → 语法分析 → AST 转换 → 类编译 串联为一个高层接口。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lark import exceptions as lark_exc

from .config import DEFAULT_OPTIONS, CompilerOptions
from .error import DefinitionError, DiagnosticBag, HintsError
from .semantic.compiler import ClassCompiler
from .semantic.oracle import SymbolOracle
from .semantic.registry import ClassSpace, CompilationUnit
from .tree.grammar import get_parser
from .tree.scanner import scan
from .tree.transformer import ClassDecl, DeclarationBuilder, Module

logger = logging.getLogger(__name__)


# ─── 结果对象 ──────────────────────────────────────────────────────────────────

@dataclass
class FrontendResult:
    """流水线的输出"""
    ast:   Optional[Module]             # None 表示语法分析失败
    diags: DiagnosticBag
    unit:  Optional[CompilationUnit]    # None 表示未进入编译

    @property
    def success(self) -> bool:
        return self.ast is not None and not self.diags.has_errors

    @property
    def namespace(self) -> dict:
        return self.unit.namespace if self.unit is not None else {}


# ─── 主流水线 ─────────────────────────────────────────────────────────────────

class HintsFrontend:
    """
    声明编译器前端。

    主要流程：
      1. scan()              → 提取 Python 参数表 / 函数体
      2. Lark LALR 解析      → CST
      3. DeclarationBuilder  → 声明 AST
      4. ClassCompiler       → 生成的类、函数、绑定（写入单元命名空间）

    用法::

        frontend = HintsFrontend()
        frontend.declare_symbols(['decimal.Decimal'])
        result = frontend.process_file("models.th", unit_name="shop.models")
        if result.success:
            Item = result.namespace['Item']
        else:
            print(result.diags.report())
    """

    def __init__(self, space: Optional[ClassSpace] = None,
                 options: CompilerOptions = DEFAULT_OPTIONS):
        self.space = space or ClassSpace(SymbolOracle(), options)
        self._parser = get_parser()

    @property
    def options(self) -> CompilerOptions:
        return self.space.options

    # ── 外部符号 ───────────────────────────────────────────────────────────

    def declare_symbols(self, names):
        """声明可在类型提示中使用的外部名字（不必可解析）"""
        for name in names:
            self.space.oracle.declare(name)

    def load_symbols_from_file(self, path: str | Path) -> int:
        """从符号清单文件加载（每行一个名字，# 注释），返回加载数量"""
        return self.space.oracle.load_from_file(path)

    # ── 编译入口 ───────────────────────────────────────────────────────────

    def process_file(self, path: str | Path, unit_name: Optional[str] = None,
                     namespace: Optional[dict] = None) -> FrontendResult:
        """编译单个声明源文件；单元名默认取文件名（去掉后缀）"""
        path = Path(path)
        if not path.exists():
            diag = DiagnosticBag(str(path))
            diag.error(f"file not found: {path}")
            return FrontendResult(ast=None, diags=diag, unit=None)
        data = path.read_bytes()
        try:
            source = data.decode('utf-8')
        except UnicodeDecodeError as e:
            diag = DiagnosticBag(str(path))
            line = data[:e.start].count(b'\n') + 1
            diag.error(f"cannot decode {path} as UTF-8: {e.reason} at byte {e.start}", line)
            return FrontendResult(ast=None, diags=diag, unit=None)
        return self.process_string(source, unit_name or path.stem, namespace,
                                   source_name=str(path))

    def process_string(self, source: str, unit_name: str = '__main__',
                       namespace: Optional[dict] = None,
                       source_name: str = '<input>') -> FrontendResult:
        """
        编译源码字符串，返回 FrontendResult。
        DefinitionError 对编译单元是致命的：记录到诊断中，之后的声明不再编译。
        """
        diag = DiagnosticBag(source_name)

        # ── Step 1-3: 扫描 + 语法分析 + AST ─────────────────────────────
        try:
            module = self._build_ast(source)
        except lark_exc.UnexpectedCharacters as e:
            diag.error(f"unexpected character '{e.char}'", e.line, e.column,
                       hint=f"expected one of: {', '.join(sorted(e.allowed or ()))}")
            return FrontendResult(ast=None, diags=diag, unit=None)
        except lark_exc.UnexpectedToken as e:
            diag.error(f"unexpected token '{e.token}' ({e.token.type})", e.line, e.column,
                       hint=f"expected one of: {', '.join(sorted(e.expected))}")
            return FrontendResult(ast=None, diags=diag, unit=None)
        except lark_exc.UnexpectedEOF as e:
            diag.error("unexpected end of input",
                       hint=f"expected one of: {', '.join(sorted(e.expected))}")
            return FrontendResult(ast=None, diags=diag, unit=None)
        except HintsError as e:
            diag.record(e)
            return FrontendResult(ast=None, diags=diag, unit=None)

        # ── Step 4: 编译 ────────────────────────────────────────────────
        unit = self.space.unit(unit_name, namespace)
        compiler = ClassCompiler(unit, source_name)
        try:
            defined = compiler.compile_module(module)
        except DefinitionError as e:
            diag.record(e)
            logger.info("%s: compilation stopped at line %d: %s", source_name, e.line, e.message)
            return FrontendResult(ast=module, diags=diag, unit=unit)

        # ── Step 5: 检查 ────────────────────────────────────────────────
        self._check_hooks(module, unit, diag)

        logger.debug("%s: compiled %d declaration(s) into %s", source_name, len(defined), unit_name)
        return FrontendResult(ast=module, diags=diag, unit=unit)

    def _check_hooks(self, module: Module, unit: CompilationUnit, diag: DiagnosticBag):
        """get_ / set_ 开头的方法找不到对应属性时给出警告（多半是拼写错误）"""
        prefixes = (self.options.getter_prefix, self.options.setter_prefix)
        for decl in module.decls:
            if not isinstance(decl, ClassDecl):
                continue
            descriptor = unit.classes[decl.name]
            for method in decl.methods:
                for prefix in prefixes:
                    if not method.name.startswith(prefix):
                        continue
                    target = method.name[len(prefix):]
                    if target and descriptor.attribute(target) is None:
                        diag.warning(f"{method.name} looks like an override hook, "
                                     f"but class {decl.name} has no attribute {target}",
                                     method.line, method.col)

    def _build_ast(self, source: str) -> Module:
        scanned = scan(source)
        cst = self._parser.parse(scanned.source, start='start')
        try:
            return DeclarationBuilder(scanned).transform(cst)
        except lark_exc.VisitError as e:
            if isinstance(e.orig_exc, HintsError):
                raise e.orig_exc from None
            raise

    # ── 调试工具 ───────────────────────────────────────────────────────────

    def parse_only(self, source: str):
        """仅做扫描与语法分析，返回 Lark Tree（调试用）"""
        return self._parser.parse(scan(source).source, start='start')

    def transform_only(self, source: str) -> Module:
        """语法分析 + AST 转换，不编译（调试用）"""
        return self._build_ast(source)


def compile_source(source: str, unit_name: str = '__main__', namespace: Optional[dict] = None,
                   space: Optional[ClassSpace] = None) -> dict:
    """
    编译并返回单元命名空间；有错误时抛出 DefinitionError::

        ns = compile_source(open('models.th').read(), 'shop.models')
        item = ns['Item'](name='bolt')
    """
    frontend = HintsFrontend(space)
    result = frontend.process_string(source, unit_name, namespace)
    result.diags.raise_if_errors()
    return result.namespace
