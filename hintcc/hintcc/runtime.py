"""
hintcc 运行期对象协议
======================
每个由编译器生成的类都继承 Instance，得到：

  (i)   生成的属性访问器（见 semantic/attribute.py）
  (ii)  原始键访问：obj['_secret'] 绕过一切访问控制（与字典互操作的出口）
  (iii) 规范显示：Name(k1=>v1, k2=>v2)
  (iv)  默认什么也不做的构造后钩子 __post_init__(args)

另外提供访问上下文：private / protected 检查不看调用栈，
而是看"当前正在哪个类的代码里执行"。编译进类的方法由编译器
包装成在该类上下文中运行；普通代码可以用 within(cls) 显式进入。
"""

from __future__ import annotations

import functools
import re
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Optional


class Deferred:
    """延迟默认值：以实例为参数的值生产者"""
    __slots__ = ('producer',)

    def __init__(self, producer: Callable[[Any], Any]):
        self.producer = producer

    def __call__(self, instance):
        return self.producer(instance)

    def __repr__(self):
        name = getattr(self.producer, '__qualname__', type(self.producer).__name__)
        return f"Deferred({name})"


# ──────────────────────────────────────────────────────────────────────────────
# 访问上下文
# ──────────────────────────────────────────────────────────────────────────────

_access_context: ContextVar[tuple] = ContextVar('hintcc_access_context', default=())
_active_hooks: ContextVar[frozenset] = ContextVar('hintcc_active_hooks', default=frozenset())


def current_class() -> Optional[type]:
    """当前代码所在的类（不在任何类上下文中时为 None）"""
    stack = _access_context.get()
    return stack[-1] if stack else None


@contextmanager
def within(cls: type):
    """在 cls 的访问上下文中执行代码块"""
    token = _access_context.set(_access_context.get() + (cls,))
    try:
        yield cls
    finally:
        _access_context.reset(token)


def contextual(fn: Callable, owner: Callable[[], type]) -> Callable:
    """
    把函数包装成在 owner() 返回的类上下文中运行。
    owner 是延迟求值的：方法在类对象生成之前就要包装。
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        with within(owner()):
            return fn(*args, **kwargs)
    wrapper.__hint_context__ = True
    return wrapper


def hook_active(name: str, kind: str) -> bool:
    return (name, kind) in _active_hooks.get()


@contextmanager
def running_hook(name: str, kind: str):
    """标记某属性的 get / set 钩子正在执行，防止访问器递归回钩子"""
    token = _active_hooks.set(_active_hooks.get() | {(name, kind)})
    try:
        yield
    finally:
        _active_hooks.reset(token)


# ──────────────────────────────────────────────────────────────────────────────
# 显示
# ──────────────────────────────────────────────────────────────────────────────

_NUMBER_RE = re.compile(r'^\s*[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)$')
_SPECIAL_NUMBERS = {'inf', 'infinity', 'nan'}


def looks_like_number(value) -> bool:
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        return bool(_NUMBER_RE.match(value)) or value.strip().lower().lstrip('+-') in _SPECIAL_NUMBERS
    return False


def render_value(value) -> str:
    """按显示规则渲染单个值"""
    if value is None:
        return 'undef'
    if isinstance(value, Instance):
        return str(value)
    if isinstance(value, Deferred):
        return '<deferred>'
    if looks_like_number(value):
        return str(value)
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return '[' + ', '.join(render_value(v) for v in value) + ']'
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return '{' + ', '.join(f"{k}=>{render_value(v)}" for k, v in items) + '}'
    try:
        return repr(value)
    except Exception:
        # 自定义 __repr__ 抛异常时退回类型名
        return type(value).__name__


# ──────────────────────────────────────────────────────────────────────────────
# 实例基类
# ──────────────────────────────────────────────────────────────────────────────

class Instance:
    """
    所有生成类的基类。

    Attributes:
        __hint_class__: ClassDescriptor，由编译器写入每个生成类自己的 __dict__
    """
    __hint_class__ = None

    # ── 原始键访问 ──────────────────────────────────────────────────────────

    def __getitem__(self, key):
        return self.__dict__[key]

    def __setitem__(self, key, value):
        self.__dict__[key] = value

    def __delitem__(self, key):
        del self.__dict__[key]

    def __contains__(self, key):
        return key in self.__dict__

    def keys(self):
        return self.__dict__.keys()

    # ── 构造后钩子 ──────────────────────────────────────────────────────────

    def __post_init__(self, args):
        pass

    # ── 显示 ────────────────────────────────────────────────────────────────

    def __str__(self):
        descriptor = vars(type(self)).get('__hint_class__')
        name = descriptor.short_name if descriptor is not None else type(self).__name__
        elems = [f"{key}=>{render_value(self.__dict__[key])}" for key in sorted(self.__dict__)]
        return f"{name}({', '.join(elems)})"

    __repr__ = __str__
