"""
wasmcov_py

WebAssembly 覆盖率提取管线的 Python 包入口。

子模块划分：
- instrumentation: 客体内覆盖捕获钩子、计数器、宿主侧 dump 落盘
- targets: 客体（guest）抽象与调用包装器（保证每次调用后恰好 dump 一次）
- ir: 文本 LLVM IR 清洗（去除仅 wasm 可识别的函数体）
- toolchain: 外部工具（llvm-profdata / clang / llvm-cov）的查找、版本检查与调用
- core: 错误分类、管线驱动、函数级覆盖汇总
- utils: 配置与绘图
"""

__all__ = [
    "core",
    "instrumentation",
    "ir",
    "targets",
    "toolchain",
    "utils",
]

__version__ = "0.1.0"
