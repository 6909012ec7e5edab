"""把清洗后的 IR 编译为宿主架构的目标文件（只编译，不链接）。

目标文件不会被执行，只是携带报告生成器能解析的覆盖映射元数据。
"""

from __future__ import annotations

import platform
from pathlib import Path
from typing import List, Optional

from .commands import clang_object_command
from .runner import run_tool

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}


def default_host_target(machine: Optional[str] = None, system: Optional[str] = None) -> str:
    """根据当前平台推断 target triple。"""
    arch = (machine or platform.machine() or "x86_64").lower()
    arch = _ARCH_ALIASES.get(arch, arch)
    system = system or platform.system()
    if system == "Darwin":
        # Apple 的 triple 里 aarch64 写作 arm64
        return f"{'arm64' if arch == 'aarch64' else arch}-apple-darwin"
    if system == "Windows":
        return f"{arch}-pc-windows-msvc"
    return f"{arch}-unknown-linux-gnu"


def compile_object(ir_path: str | Path, obj_path: str | Path, clang: str = "clang",
                   target: Optional[str] = None, extra_args: Optional[List[str]] = None,
                   timeout: Optional[float] = None) -> Path:
    obj_path = Path(obj_path)
    obj_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = clang_object_command(clang, str(ir_path), str(obj_path), target or default_host_target(),
                               extra_args=extra_args)
    run_tool("compile", cmd, timeout=timeout)
    return obj_path


__all__ = ["compile_object", "default_host_target"]
