"""
声明源码扫描器
==============
Lark 文法不处理内嵌的 Python 代码。本模块在解析前做一遍扫描：

  def name(<参数表>) [: hint] { <函数体> }

把 <参数表>（含括号）替换为 @P<n>，把 { <函数体> } 替换为 @B<n>，
原文保存在 ScanResult 中。替换时补齐被吃掉的换行，保证 Lark 报告的
行号与原始源码一致。

扫描过程识别 Python 字符串（含三引号）与 # 注释，
因此函数体里字符串中的花括号不会干扰括号配对。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..error import ParseError


_FUNC_HEAD_RE = re.compile(r'(?:def|function)\b\s*([A-Za-z_]\w*)\s*')
_WORD_CHARS = re.compile(r'[\w.]')


@dataclass
class Fragment:
    """被替换出去的一段原文"""
    text: str
    line: int        # 起始括号所在行（1 起）


@dataclass
class ScanResult:
    source: str                                      # 替换占位符之后的文本
    params: list[Fragment] = field(default_factory=list)
    bodies: list[Fragment] = field(default_factory=list)


def _line_of(text: str, pos: int) -> int:
    return text.count('\n', 0, pos) + 1


def _skip_string(text: str, i: int) -> int:
    """i 指向引号，返回字符串结束后的位置"""
    quote = text[i]
    if text.startswith(quote * 3, i):
        end = text.find(quote * 3, i + 3)
        while end != -1 and _escaped(text, end):
            end = text.find(quote * 3, end + 1)
        if end == -1:
            raise ParseError("unterminated string", _line_of(text, i))
        return end + 3
    j = i + 1
    while j < len(text):
        c = text[j]
        if c == '\\':
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == '\n':
            break
        j += 1
    raise ParseError("unterminated string", _line_of(text, i))


def _escaped(text: str, pos: int) -> bool:
    n = 0
    while pos - n - 1 >= 0 and text[pos - n - 1] == '\\':
        n += 1
    return n % 2 == 1


def _skip_comment(text: str, i: int) -> int:
    end = text.find('\n', i)
    return len(text) if end == -1 else end


def extract_bracketed(text: str, i: int, open_ch: str, close_ch: str) -> int:
    """
    i 指向 open_ch，返回与之配对的 close_ch 之后的位置。
    跳过字符串与注释。
    """
    depth = 0
    j = i
    while j < len(text):
        c = text[j]
        if c in '\'"':
            j = _skip_string(text, j)
            continue
        if c == '#':
            j = _skip_comment(text, j)
            continue
        if c == open_ch:
            depth += 1
        elif c == close_ch:
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    raise ParseError(f"unbalanced '{open_ch}': missing '{close_ch}'", _line_of(text, i))


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _skip_hint(text: str, i: int) -> int:
    """
    i 指向提示标记（: 或 ~）之后。跳过返回值类型提示，
    返回函数体 '{' 的位置（若提示非法则返回停止处，交给 Lark 报错）。

    只有在一个候选项开头（标记、'|' 或 '[' 之后）出现的 '{'
    才是内联对象提示，其余的 '{' 是函数体。
    """
    expect_alt = True
    while i < len(text):
        c = text[i]
        if c.isspace():
            i += 1
        elif c == '{' and expect_alt:
            end = text.find('}', i)
            if end == -1:
                return i
            i = end + 1
            expect_alt = False
        elif c in '|[':
            i += 1
            expect_alt = True
        elif c == ']' or _WORD_CHARS.match(c):
            i += 1
            expect_alt = False
        else:
            return i
    return i


def _placeholder(tag: str, index: int, original: str) -> str:
    return f"@{tag}{index}" + '\n' * original.count('\n')


def scan(source: str) -> ScanResult:
    """扫描整个声明源码，返回替换后的文本与被提取的片段"""
    result = ScanResult(source='')
    out: list[str] = []
    last = 0
    i = 0
    n = len(source)

    while i < n:
        c = source[i]
        if c in '\'"':
            i = _skip_string(source, i)
            continue
        if c == '#':
            i = _skip_comment(source, i)
            continue
        if c in 'df' and (i == 0 or not _WORD_CHARS.match(source[i - 1])):
            m = _FUNC_HEAD_RE.match(source, i)
            if m and m.end() < n and source[m.end()] == '(':
                i = _replace_function(source, m.end(), result, out, last)
                last = i
                continue
        i += 1

    out.append(source[last:])
    result.source = ''.join(out)
    return result


def _replace_function(source: str, open_paren: int, result: ScanResult,
                      out: list[str], last: int) -> int:
    """替换一个函数的参数表与函数体，返回函数体之后的位置"""
    close_paren = extract_bracketed(source, open_paren, '(', ')')
    params = source[open_paren:close_paren]
    result.params.append(Fragment(params[1:-1], _line_of(source, open_paren)))
    out.append(source[last:open_paren])
    out.append(_placeholder('P', len(result.params) - 1, params))

    j = _skip_ws(source, close_paren)
    if j < len(source) and source[j] in ':~':
        j = _skip_hint(source, j + 1)
    out.append(source[close_paren:j])

    if j >= len(source) or source[j] != '{':
        # 没有函数体：原样留给 Lark 报语法错误
        return j

    body_end = extract_bracketed(source, j, '{', '}')
    body = source[j:body_end]
    result.bodies.append(Fragment(body[1:-1], _line_of(source, j)))
    out.append(_placeholder('B', len(result.bodies) - 1, body))
    return body_end
