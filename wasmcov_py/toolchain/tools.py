"""LLVM 工具查找：llvm-profdata / llvm-cov / clang。

搜索顺序：
  1. 环境变量（LLVM_PROFDATA_PATH / LLVM_COV_PATH / CLANG_PATH）
  2. 若给出期望的 LLVM 主版本号，先找带版本后缀的名字（如 `llvm-cov-17`）
  3. PATH（`shutil.which(name)`）
  4. `known_dirs` 以及常见的 LLVM 安装目录

三个工具必须来自与编译器相同主版本的 LLVM，版本检查见 versions.py。
"""
from __future__ import annotations

import glob
import os
import shutil
from typing import Dict, List, Optional

from ..core.errors import ConfigurationError

TOOL_ENV: Dict[str, str] = {
    "llvm-profdata": "LLVM_PROFDATA_PATH",
    "llvm-cov": "LLVM_COV_PATH",
    "clang": "CLANG_PATH",
}

# 常见安装位置：Debian/Ubuntu apt.llvm.org、Homebrew、手工安装
DEFAULT_DIRS = [
    "/usr/lib/llvm-{major}/bin",
    "/usr/local/opt/llvm/bin",
    "/opt/homebrew/opt/llvm/bin",
    "/opt/llvm/bin",
]


def _is_exe(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def _candidate_dirs(known_dirs: Optional[List[str]], major: Optional[int]) -> List[str]:
    dirs: List[str] = list(known_dirs or [])
    for d in DEFAULT_DIRS:
        if "{major}" in d:
            if major is not None:
                dirs.append(d.format(major=major))
            else:
                # 未指定版本时从高到低尝试已安装的版本目录
                dirs.extend(sorted(glob.glob(d.format(major="*")), reverse=True))
        else:
            dirs.append(d)
    return dirs


def find_tool(name: str, known_dirs: Optional[List[str]] = None, major: Optional[int] = None,
              env: Optional[dict] = None) -> Optional[str]:
    """查找工具可执行文件，找不到返回 None。

    `name` 可以是绝对/相对路径，此时只检查其是否可执行。
    """
    env = os.environ if env is None else env
    if os.sep in name:
        return name if _is_exe(name) else None

    env_var = TOOL_ENV.get(name)
    if env_var:
        env_path = env.get(env_var)
        if env_path and _is_exe(env_path):
            return env_path

    if major is not None:
        versioned = shutil.which(f"{name}-{major}")
        if versioned:
            return versioned

    which_path = shutil.which(name)
    if which_path:
        return which_path

    for d in _candidate_dirs(known_dirs, major):
        p = os.path.join(d, name)
        if _is_exe(p):
            return p

    return None


def require_tool(name: str, known_dirs: Optional[List[str]] = None, major: Optional[int] = None,
                 env: Optional[dict] = None) -> str:
    """同 find_tool，但找不到时抛出 ConfigurationError。"""
    path = find_tool(name, known_dirs=known_dirs, major=major, env=env)
    if path is None:
        hint = TOOL_ENV.get(name)
        msg = f"{name} not found"
        if major is not None:
            msg += f" (looked for LLVM {major})"
        if hint:
            msg += f"; install it or set {hint}"
        raise ConfigurationError(msg, stage="tools")
    return path


__all__ = ["find_tool", "require_tool", "TOOL_ENV"]
