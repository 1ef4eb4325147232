#!/usr/bin/env python3
"""
hintcc 使用示例
================
展示声明源码（.th）如何经过流水线变成可用的 Python 类。

目录结构：
  hintcc/
    hintcc/             ← 包代码
    samples/            ← 示例 .th 文件
    demo.py             ← 本文件
"""

import logging
import sys
from pathlib import Path

# ── 如果 hintcc 不在 sys.path，手动添加 ───────────────────────────────────
sys.path.insert(0, str(Path(__file__).parent))

from hintcc import (
    ArgumentError, AccessError, ClassCompiler, ClassSpace, HintsFrontend, within,
)


# ════════════════════════════════════════════════════════════════════════════
# 示例 1：编译内联声明
# ════════════════════════════════════════════════════════════════════════════

SAMPLE_SOURCE = r"""
class Foo {
    has bar: int;
    has qux: int = 3;
    has quux: int = 5;

    def __post_init__(self, args) {
        self.quux = self.quux + args.get('bar', 0)
    }
}
"""


def demo_inline():
    print("=" * 60)
    print("示例 1：编译内联声明")
    print("=" * 60)

    frontend = HintsFrontend()

    cst = frontend.parse_only(SAMPLE_SOURCE)
    print("CST 根节点规则名:", cst.data)           # 'start'
    module = frontend.transform_only(SAMPLE_SOURCE)
    print("AST 类型:", type(module).__name__)       # 'Module'

    result = frontend.process_string(SAMPLE_SOURCE, unit_name='demo', source_name='demo.th')
    if result.diags.count > 0:
        print(result.diags.report())
        return result

    Foo = result.namespace['Foo']
    print("✓ 编译成功")
    print(" ", Foo(bar=2))                           # Foo(bar=>2, quux=>7, qux=>3)
    try:
        Foo()
    except ArgumentError as e:
        print("  缺少参数:", e)

    print("\n类空间：")
    print(frontend.space.dump())
    return result


# ════════════════════════════════════════════════════════════════════════════
# 示例 2：访问控制与继承
# ════════════════════════════════════════════════════════════════════════════

def demo_inventory():
    print("=" * 60)
    print("示例 2：访问控制与继承")
    print("=" * 60)

    frontend = HintsFrontend()
    result = frontend.process_file(Path(__file__).parent / "samples" / "inventory.th",
                                   unit_name='warehouse')
    if not result.success:
        print(result.diags.report())
        return

    ns = result.namespace
    item = ns['PerishableItem'](name='milk', sku='M-1', restock=12, shelf_days=-3)
    print(" ", item)
    print("  label:", item.label, " in stock:", item.in_stock(), " shelf_days:", item.shelf_days)
    print("  take(5) →", item.take(5))

    for action, fn in [("读 private quantity", lambda: item.quantity),
                       ("写 readonly sku", lambda: setattr(item, 'sku', 'X'))]:
        try:
            fn()
        except AccessError as e:
            print(f"  {action}: {e}")

    # 原始键访问绕过访问控制
    print("  item['_quantity'] =", item['_quantity'])
    print("  WAREHOUSE =", ns['WAREHOUSE'], ns['__annotations__'])


# ════════════════════════════════════════════════════════════════════════════
# 示例 3：直接使用 ClassCompiler
# ════════════════════════════════════════════════════════════════════════════

def demo_compiler_only():
    """
    不经过声明文法，直接用 ClassCompiler 定义类。
    适合在普通 Python 模块里生成类。
    """
    print("=" * 60)
    print("示例 3：直接使用 ClassCompiler")
    print("=" * 60)

    space = ClassSpace()
    compiler = ClassCompiler(space.unit('geo', {'__name__': 'geo'}))

    Point = compiler.define_class("Point", [
        ('public', 'x: num = 0;'),
        ('public', 'y: num = 0;'),
        ('private', 'norm: num;'),
    ], methods={
        '__post_init__': lambda self, args: self.__setattr__('norm', abs(self.x) + abs(self.y)),
        'manhattan': lambda self: self.norm,
    })
    Point3D = compiler.define_class("Point3D extends Point", [('public', 'z: num = 0;')])

    p = Point3D(x=1, y=-2, z=4)
    print(" ", p, " manhattan =", p.manhattan())
    with within(Point):
        print("  within(Point): norm =", p.norm)
    print(space.dump())


# ════════════════════════════════════════════════════════════════════════════
# 主入口
# ════════════════════════════════════════════════════════════════════════════

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    demo_inline()
    demo_inventory()
    demo_compiler_only()
