"""
外部符号预言机
==============
类型提示里可以引用编译器之外定义的类型（datetime.date、decimal.Decimal …）。
预言机回答一个问题：这个名字存在吗？

认可的名字来源：
  1. 显式声明：declare() / load_from_dict() / load_from_file()
  2. 编译单元的命名空间（通常是模块的 globals()）
  3. builtins
  4. 已经导入的模块（sys.modules），例如 'decimal.Decimal'

预言机从不触发 import：与其在校验提示时产生副作用，
不如让调用方先 import 需要的模块。

符号清单文件格式（每行一个名字，# 开头为注释）：

    # 第三方类型
    numpy.ndarray
    pandas.DataFrame
"""

from __future__ import annotations

import builtins
import logging
import sys
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

MISSING = object()


class SymbolOracle:
    """
    用法::

        oracle = SymbolOracle()
        oracle.load_from_file("symbols.txt")
        oracle.exists("numpy.ndarray")            # True
        oracle.exists("Foo", namespace={'Foo': Foo})
    """
    def __init__(self, declared=None):
        self._declared: set[str] = set(declared or ())
        self._load_errors: list[str] = []

    # ── 声明 ────────────────────────────────────────────────────────────────

    def declare(self, name: str):
        self._declared.add(name.strip())

    def load_from_dict(self, definitions: dict):
        """键为名字；值为 False 的条目被忽略"""
        for name, enabled in definitions.items():
            if enabled:
                self.declare(name)

    def load_from_file(self, path: str | Path) -> int:
        """从符号清单文件加载，返回加载的名字数量"""
        path = Path(path)
        count = 0
        for lineno, raw in enumerate(path.read_text(encoding='utf-8').splitlines(), 1):
            line = raw.split('#', 1)[0].strip()
            if not line:
                continue
            if not all(part.isidentifier() for part in line.split('.')):
                self._load_errors.append(f"{path}:{lineno}: invalid symbol name {line!r}")
                continue
            self.declare(line)
            count += 1
        logger.debug("loaded %d symbol(s) from %s", count, path)
        return count

    @property
    def load_errors(self) -> list[str]:
        return list(self._load_errors)

    # ── 查询 ────────────────────────────────────────────────────────────────

    def exists(self, name: str, namespace: Optional[dict] = None) -> bool:
        if name in self._declared:
            return True
        return self.resolve(name, namespace) is not MISSING

    def resolve(self, name: str, namespace: Optional[dict] = None) -> Any:
        """
        返回名字对应的对象；找不到时返回模块级哨兵 MISSING。
        显式声明但没有对象的名字同样返回 MISSING。
        """
        head, *rest = name.split('.')
        obj = MISSING
        if namespace is not None and head in namespace:
            obj = namespace[head]
        elif hasattr(builtins, head):
            obj = getattr(builtins, head)
        else:
            # 最长的已导入模块前缀
            parts = name.split('.')
            for cut in range(len(parts), 0, -1):
                module = sys.modules.get('.'.join(parts[:cut]))
                if module is not None:
                    obj, rest = module, parts[cut:]
                    break
        for attr in rest:
            if obj is MISSING:
                break
            obj = getattr(obj, attr, MISSING)
        return obj
