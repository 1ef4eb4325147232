"""
hintcc - 类型提示声明编译器
============================
模块结构：
  hintcc/
    __init__.py          本文件：公共 API
    config.py            编译选项
    error.py             异常层次与诊断信息
    runtime.py           运行期对象协议（Instance、访问上下文、显示）
    pipeline.py          扫描 → 解析 → 编译 流水线
    tree/
      grammar.py         Lark 声明文法
      scanner.py         Python 参数表 / 函数体提取
      transformer.py     CST → 声明 AST
    semantic/
      hint.py            类型提示语法树、解析与校验
      oracle.py          外部符号预言机
      attribute.py       属性编译与访问器
      registry.py        类空间、编译单元、类描述
      inherit.py         继承展平
      compiler.py        类编译器 / 构造函数生成

快速使用示例：

    from hintcc import HintsFrontend

    source = '''
    class Foo {
        has bar: int;
        has qux: int = 3;
        has quux: int = 5;
        def __post_init__(self, args) {
            self.quux = self.quux + args.get('bar', 0)
        }
    }
    '''
    result = HintsFrontend().process_string(source, 'demo')
    Foo = result.namespace['Foo']
    print(Foo(bar=2))          # Foo(bar=>2, quux=>7, qux=>3)
"""

from .config import CompilerOptions, DEFAULT_OPTIONS
from .error import (
    HintsError, DefinitionError, ParseError, ValidationError, ArgumentError, AccessError,
    DiagnosticBag, Diagnostic,
)
from .pipeline import HintsFrontend, FrontendResult, compile_source
from .runtime import Instance, Deferred, within, current_class
from .semantic.attribute import AccessLevel, AttributeDescriptor
from .semantic.compiler import ClassCompiler
from .semantic.hint import parse_hint, validate_hint, PRIMITIVES
from .semantic.oracle import SymbolOracle
from .semantic.registry import ClassSpace, CompilationUnit, ClassDescriptor

__all__ = [
    'CompilerOptions', 'DEFAULT_OPTIONS',
    'HintsError', 'DefinitionError', 'ParseError', 'ValidationError', 'ArgumentError',
    'AccessError', 'DiagnosticBag', 'Diagnostic',
    'HintsFrontend', 'FrontendResult', 'compile_source',
    'Instance', 'Deferred', 'within', 'current_class',
    'AccessLevel', 'AttributeDescriptor',
    'ClassCompiler',
    'parse_hint', 'validate_hint', 'PRIMITIVES',
    'SymbolOracle',
    'ClassSpace', 'CompilationUnit', 'ClassDescriptor',
]
