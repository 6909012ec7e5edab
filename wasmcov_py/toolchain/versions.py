"""
版本耦合检查

编译器的插装格式版本、llvm-profdata、宿主 clang 与 llvm-cov 必须来自同一 LLVM
主版本，否则会得到“能跑但结果错误”的报告。这里把这一约定变成显式检查：
合并/编译之前比较版本号，不一致即抛出 ConfigurationError。

版本来源：
- 工具：`<tool> --version` 输出中的 `LLVM version X.Y.Z` / `clang version X.Y.Z`；
- IR：`!llvm.ident` 元数据中的 `clang version X.Y.Z`（rustc 的 ident 不含 LLVM 版本）。
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Tuple

from ..core.errors import ConfigurationError
from .runner import run_tool

logger = logging.getLogger(__name__)

Version = Tuple[int, int, int]

_LLVM_VERSION_RE = re.compile(r"\b(?:LLVM|clang) version:?\s*(\d+)\.(\d+)(?:\.(\d+))?")
_IDENT_REF_RE = re.compile(r"^!llvm\.ident\s*=\s*!\{\s*(![0-9]+)", re.MULTILINE)


def parse_llvm_version(text: str) -> Optional[Version]:
    m = _LLVM_VERSION_RE.search(text or "")
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)


def tool_version(path: str, timeout: Optional[float] = 30) -> Optional[Version]:
    """查询工具版本；输出里找不到版本号时返回 None。"""
    result = run_tool("versions", [path, "--version"], timeout=timeout, check=False)
    return parse_llvm_version(result.stdout + "\n" + result.stderr)


def ir_ident(ir_text: str) -> Optional[str]:
    """返回 `!llvm.ident` 指向的第一个标识字符串。"""
    m = _IDENT_REF_RE.search(ir_text)
    if not m:
        return None
    ref = re.escape(m.group(1))
    node = re.search(r"^" + ref + r'\s*=\s*!\{\s*!"([^"]*)"', ir_text, re.MULTILINE)
    return node.group(1) if node else None


def ir_llvm_version(ir_text: str) -> Optional[Version]:
    ident = ir_ident(ir_text)
    return parse_llvm_version(ident) if ident else None


def check_versions(tools: Dict[str, str], expected_major: Optional[int] = None) -> Dict[str, Optional[Version]]:
    """比较各工具的 LLVM 主版本（以及期望的编译器主版本）。

    返回 {工具名: 版本}；无法确定的版本记为 None 并给出警告，不参与比较。
    """
    found: Dict[str, Optional[Version]] = {}
    for name, path in tools.items():
        found[name] = tool_version(path)
        if found[name] is None:
            logger.warning("cannot determine LLVM version of %s (%s)", name, path)

    majors = {name: v[0] for name, v in found.items() if v is not None}
    if expected_major is not None:
        majors["compiler"] = int(expected_major)
    if len(set(majors.values())) > 1:
        detail = ", ".join(f"{name}={major}" for name, major in sorted(majors.items()))
        raise ConfigurationError(f"LLVM major version mismatch: {detail}", stage="versions")
    if expected_major is None:
        logger.warning("compiler LLVM version unknown; instrumentation format compatibility is not checked")
    return found


__all__ = [
    "Version",
    "parse_llvm_version",
    "tool_version",
    "ir_ident",
    "ir_llvm_version",
    "check_versions",
]
