"""
.th 声明文件批量校验工具
用法: python validate_hints.py <目录> [--symbols symbols.txt] [--log report.log]
"""

import argparse
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "hintcc"))

from hintcc import HintsFrontend, DEFAULT_OPTIONS


def collect_sources(source_dir: str, suffix: str) -> list:
    """递归收集目录下所有声明源文件"""
    results = []
    for root, _, files in os.walk(source_dir):
        for name in files:
            if name.endswith(suffix):
                results.append(os.path.join(root, name))
    return sorted(results)


def unit_name_for(filepath: str, source_dir: str) -> str:
    """相对路径 → 点分单元名：models/shop.th → models.shop"""
    rel = os.path.relpath(filepath, source_dir)
    return os.path.splitext(rel)[0].replace(os.sep, ".")


def validate_file(frontend: HintsFrontend, filepath: str, source_dir: str) -> tuple:
    """
    编译单个文件，返回 (错误描述, 警告列表)。
    成功时错误描述为 None。
    """
    result = frontend.process_file(filepath, unit_name=unit_name_for(filepath, source_dir))
    warnings = [str(d) for d in result.diags.warnings]
    if result.success:
        return None, warnings
    return "\n".join(str(d) for d in result.diags.errors), warnings


def main(argv=None):
    parser = argparse.ArgumentParser(description="批量编译并校验 .th 声明文件")
    parser.add_argument("source_dir", help="声明源文件所在目录")
    parser.add_argument("--symbols", help="外部符号清单（每行一个名字）")
    parser.add_argument("--log", help="失败详情写入的日志文件")
    args = parser.parse_args(argv)

    frontend = HintsFrontend()
    if args.symbols:
        count = frontend.load_symbols_from_file(args.symbols)
        print(f"加载了 {count} 个外部符号")
        for problem in frontend.space.oracle.load_errors:
            print(f"[WARN] {problem}")

    sources = collect_sources(args.source_dir, DEFAULT_OPTIONS.source_suffix)
    if not sources:
        print(f"[WARN] 未找到任何 {DEFAULT_OPTIONS.source_suffix} 文件: {args.source_dir}")
        return 0
    print(f"共找到 {len(sources)} 个文件，开始校验...\n")

    errors: list = []
    for i, filepath in enumerate(sources, 1):
        rel = os.path.relpath(filepath, args.source_dir)
        error, warnings = validate_file(frontend, filepath, args.source_dir)
        if error is None:
            print(f"[{i:>4}/{len(sources)}] OK       {rel}")
            for warning in warnings:
                print(f"             {warning}")
        else:
            print(f"[{i:>4}/{len(sources)}] FAIL     {rel}")
            errors.append((filepath, error))

    print(f"\n校验完成: {len(sources)} 个文件，{len(errors)} 个失败\n")
    if not errors:
        print("全部通过，无错误。")
        return 0

    for filepath, error in errors:
        print(f"{os.path.relpath(filepath, args.source_dir)}\n{error}\n")

    if args.log:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(args.log, "w", encoding="utf-8") as log:
            log.write(f".th 声明校验报告\n")
            log.write(f"生成时间 : {timestamp}\n")
            log.write(f"源码目录 : {args.source_dir}\n")
            log.write(f"总计     : {len(sources)} 个文件，{len(errors)} 个失败\n")
            log.write("=" * 72 + "\n\n")
            for filepath, error in errors:
                log.write(f"FILE: {os.path.relpath(filepath, args.source_dir)}\n")
                log.write(f"{error}\n")
                log.write("-" * 72 + "\n\n")
        print(f"错误详情已写入: {args.log}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
