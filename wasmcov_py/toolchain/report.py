"""
调用报告生成器（llvm-cov）

- render_report: `llvm-cov show` 输出目录形式的报告（html / text）；
- export_json: `llvm-cov export -format=text` 的 JSON，用于函数级汇总。
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

from ..core.errors import ToolError
from .commands import llvm_cov_export_command, llvm_cov_show_command
from .runner import run_tool


def _in_cwd(path: str | Path, cwd: Optional[str]) -> str:
    # 切换工作目录后，相对路径要先转成绝对路径
    return os.path.abspath(path) if cwd else str(path)


def _tool_in_cwd(tool: str, cwd: Optional[str]) -> str:
    # 只有带目录的工具路径才受工作目录影响，裸命令名仍走 PATH
    return _in_cwd(tool, cwd) if os.sep in tool else tool


def render_report(obj_path: str | Path, profdata: str | Path, outdir: str | Path,
                  llvm_cov: str = "llvm-cov", fmt: str = "html",
                  extra_args: Optional[List[str]] = None, timeout: Optional[float] = None,
                  cwd: Optional[str] = None) -> Path:
    """`cwd` 是源码根目录：llvm-cov 按它解析覆盖映射里的相对源码路径。"""
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    cmd = llvm_cov_show_command(_tool_in_cwd(llvm_cov, cwd), _in_cwd(obj_path, cwd), _in_cwd(profdata, cwd),
                                _in_cwd(outdir, cwd), fmt=fmt, extra_args=extra_args)
    run_tool("report", cmd, cwd=cwd, timeout=timeout)
    return outdir


def export_json(obj_path: str | Path, profdata: str | Path, llvm_cov: str = "llvm-cov",
                extra_args: Optional[List[str]] = None, timeout: Optional[float] = None,
                cwd: Optional[str] = None) -> dict:
    cmd = llvm_cov_export_command(_tool_in_cwd(llvm_cov, cwd), _in_cwd(obj_path, cwd), _in_cwd(profdata, cwd),
                                  extra_args=extra_args)
    result = run_tool("export", cmd, cwd=cwd, timeout=timeout)
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ToolError("export", result.cmd, result.returncode,
                        stderr=f"invalid JSON from llvm-cov export: {e}\n{result.stderr}") from e


__all__ = ["render_report", "export_json"]
