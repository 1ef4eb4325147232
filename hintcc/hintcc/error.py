"""
hintcc 错误体系
================
两类东西放在这里：

  1. 异常层次（定义期 / 构造期 / 访问期），直接抛给调用方；
  2. DiagnosticBag：前端（pipeline）把致命的 DefinitionError 和
     非致命的警告收集起来，分析结束后统一输出。
"""

from dataclasses import dataclass
from enum import Enum, auto


# ──────────────────────────────────────────────────────────────────────────────
# 异常层次
# ──────────────────────────────────────────────────────────────────────────────

class HintsError(Exception):
    """所有 hintcc 异常的基类，可携带源码位置"""
    def __init__(self, message, line=-1, column=-1):
        super().__init__(message)
        self.message = message
        self.line    = line
        self.column  = column

    def at(self, line, column=-1):
        """补填位置（只在尚未定位时生效），返回自身便于 raise"""
        if self.line < 0:
            self.line   = line
            self.column = column
        return self


class DefinitionError(HintsError):
    """定义期错误：声明语法错误、重复定义、父类无法解析、非法类型提示"""


class ParseError(DefinitionError):
    """类型提示 / 声明文本无法解析"""


class ValidationError(DefinitionError):
    """类型提示语法正确，但某个叶子无法解析或被错误地当作容器"""


class ArgumentError(HintsError, TypeError):
    """构造期错误：未知参数、缺少必填属性"""


class AccessError(HintsError):
    """访问期错误：private / protected / readonly / lazy 违规"""


# ──────────────────────────────────────────────────────────────────────────────
# 诊断信息
# ──────────────────────────────────────────────────────────────────────────────

class ErrorSeverity(Enum):
    WARNING = auto()
    ERROR   = auto()


@dataclass
class Diagnostic:
    """一条诊断信息"""
    severity: ErrorSeverity
    message:  str
    line:     int = -1
    column:   int = -1
    hint:     str = ''       # 可选修复提示

    def __str__(self):
        loc = f"{self.line}:{self.column}" if self.line > 0 else '?:?'
        tag = self.severity.name
        base = f"[{tag}] {loc}  {self.message}"
        if self.hint:
            base += f"\n  hint: {self.hint}"
        return base


class DiagnosticBag:
    """
    诊断信息收集袋。
    前端把错误/警告加入此袋，处理结束后统一输出。
    DefinitionError 对当前编译单元是致命的：记录后该单元停止编译。
    """
    def __init__(self, source_name: str = '<input>'):
        self.source_name = source_name
        self._diags: list[Diagnostic] = []

    # ── 添加诊断 ────────────────────────────────────────────────────────────

    def error(self, message: str, line: int = -1, column: int = -1, hint: str = ''):
        self._diags.append(Diagnostic(ErrorSeverity.ERROR, message, line, column, hint))

    def warning(self, message: str, line: int = -1, column: int = -1, hint: str = ''):
        self._diags.append(Diagnostic(ErrorSeverity.WARNING, message, line, column, hint))

    def record(self, exc: HintsError, hint: str = ''):
        """把异常转成一条错误诊断"""
        self.error(exc.message, exc.line, exc.column, hint)

    # ── 查询 ────────────────────────────────────────────────────────────────

    @property
    def has_errors(self) -> bool:
        return any(d.severity == ErrorSeverity.ERROR for d in self._diags)

    @property
    def count(self) -> int:
        return len(self._diags)

    @property
    def errors(self):
        return [d for d in self._diags if d.severity == ErrorSeverity.ERROR]

    @property
    def warnings(self):
        return [d for d in self._diags if d.severity == ErrorSeverity.WARNING]

    def __iter__(self):
        return iter(self._diags)

    def __len__(self):
        return len(self._diags)

    # ── 输出 ────────────────────────────────────────────────────────────────

    def report(self) -> str:
        if not self._diags:
            return "No diagnostics."
        lines = [str(d) for d in sorted(self._diags, key=lambda d: (d.line, d.column))]
        summary = (f"\n{'─'*60}\n"
                   f"{self.source_name}: "
                   f"{len(self.errors)} error(s), {len(self.warnings)} warning(s)")
        return '\n'.join(lines) + summary

    def raise_if_errors(self):
        """有错误时抛出第一条错误对应的 DefinitionError"""
        if self.has_errors:
            first = self.errors[0]
            raise DefinitionError(first.message, first.line, first.column)
