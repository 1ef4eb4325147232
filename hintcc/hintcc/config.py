"""
编译器配置
==========
所有可调参数集中在 CompilerOptions 里，显式传给 ClassSpace / HintsFrontend。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CompilerOptions:
    """
    Attributes:
        max_hint_depth:   类型提示允许的最大括号嵌套深度
        mangle_prefix:    private / protected / readonly 属性的内部键前缀
        getter_prefix:    读覆盖钩子的方法名前缀（get_<name>）
        setter_prefix:    写覆盖钩子的方法名前缀（set_<name>）
        init_hook:        构造后钩子的方法名
        reject_mutable_defaults: 拒绝 list / dict / set 这类共享的可变默认值
        source_suffix:    声明源文件后缀（批量校验脚本使用）
    """
    max_hint_depth: int = 100
    mangle_prefix: str = '_'
    getter_prefix: str = 'get_'
    setter_prefix: str = 'set_'
    init_hook: str = '__post_init__'
    reject_mutable_defaults: bool = True
    source_suffix: str = '.th'


DEFAULT_OPTIONS = CompilerOptions()
