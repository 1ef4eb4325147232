"""
hintcc 声明语法（Lark）
========================
一个文法，多个入口：

  start           整个声明源文件（class / def / bind）
  hint            单独的类型提示文本
  attribute_text  单条属性声明（name [: hint] [= expr] [;]）
  class_header    类头（Name [extends Parent]）

函数参数表和函数体是 Python 代码，Lark 不负责解析它们：
扫描阶段（scanner.py）先把它们替换成 @P<n> / @B<n> 占位符。
"""

from functools import lru_cache

from lark import Lark


DECLARATION_GRAMMAR = r'''
// ── 顶层 ─────────────────────────────────────────────────────────────────────

start: _item*

_item: class_decl
     | function_decl
     | bind_decl

class_decl: CLASS_KW class_header "{" _member* "}"
class_header: NAME ["extends" NAME]

_member: attribute_decl
       | function_decl

// ── 声明 ─────────────────────────────────────────────────────────────────────

attribute_decl: MODIFIER NAME [hint_clause] ["=" EXPR] ";"
attribute_text: NAME [hint_clause] ["=" EXPR] [";"]

function_decl: FUNC_KW NAME PARAMS [hint_clause] BODY
bind_decl: BIND_KW NAME [hint_clause] ["=" EXPR] ";"

hint_clause: HINT_MARK hint

// ── 类型提示 ─────────────────────────────────────────────────────────────────

hint: _alt ("|" _alt)*
_alt: leaf
    | container
    | inline_object

leaf: NAME
container: NAME "[" hint "]"
inline_object: "{" field ("," field)* [","] "}"
field: NAME HINT_MARK hint

// ── 终结符 ───────────────────────────────────────────────────────────────────

CLASS_KW: /class\b/
MODIFIER: /(?:attribute|has|public|private|protected|readonly|lazy|initvar)\b/
FUNC_KW: /(?:def|function)\b/
BIND_KW: /(?:bind|let)\b/

NAME: /[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*/
HINT_MARK: /[:~]/

// 默认值表达式：直到分号为止（跳过引号内的分号）
EXPR: /(?:[^;'"]|'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")+/

PARAMS: /@P\d+/
BODY: /@B\d+/

COMMENT: /#[^\n]*/

%import common.WS
%ignore WS
%ignore COMMENT
'''

START_RULES = ['start', 'hint', 'attribute_text', 'class_header']


@lru_cache(maxsize=None)
def get_parser() -> Lark:
    """构建（并缓存）LALR 解析器"""
    return Lark(
        DECLARATION_GRAMMAR,
        parser='lalr',
        start=START_RULES,
        propagate_positions=True,
        maybe_placeholders=True,
    )
