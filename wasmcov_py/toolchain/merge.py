"""
合并原始覆盖文件为一个 ConsolidatedProfile（.profdata）

每次生成报告时对当前完整的 raw 集合调用一次 `llvm-profdata merge -sparse`，
从不把上一次的 .profdata 再合并进来：同一集合重复合并结果相同，集合增长后
得到的是超集。
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from ..core.errors import ConfigurationError, ToolError
from ..instrumentation.raw_artifacts import check_same_version
from .commands import profdata_merge_command
from .runner import run_tool

logger = logging.getLogger(__name__)

# 超过这个数量就改用输入列表文件
INPUT_LIST_THRESHOLD = 256

# llvm-profdata 在插装格式版本不匹配时的诊断
_FORMAT_MISMATCH_RE = re.compile(
    r"unsupported instrumentation profile format version"
    r"|raw profile version mismatch"
    r"|unsupported (?:raw )?profile version"
    r"|profile uses .* format version"
    r"|unrecognized instrumentation profile encoding format",
    re.IGNORECASE,
)


def merge_profiles(raw_files: List[Path], output: str | Path, profdata: str = "llvm-profdata",
                   timeout: Optional[float] = None) -> Path:
    """合并 raw 文件，返回 .profdata 路径。

    - raw_files 为空：ConfigurationError（没有可报告的数据）；
    - raw 头部版本不一致：ConfigurationError；
    - 工具报告格式版本问题：ConfigurationError；其它失败：ToolError。
    """
    raw_files = sorted(Path(p) for p in raw_files)
    if not raw_files:
        raise ConfigurationError("no raw coverage artifacts to merge", stage="merge")
    tag = check_same_version(raw_files)
    if tag is not None:
        logger.debug("merging %d artifacts with %s", len(raw_files), tag)

    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    input_list = None
    if len(raw_files) > INPUT_LIST_THRESHOLD:
        input_list = output.with_suffix(".inputs")
        input_list.write_text("".join(f"{p}\n" for p in raw_files), encoding="utf-8")

    cmd = profdata_merge_command(profdata, [str(p) for p in raw_files], str(output),
                                 input_list=str(input_list) if input_list else None)
    try:
        run_tool("merge", cmd, timeout=timeout)
    except ToolError as e:
        if _FORMAT_MISMATCH_RE.search(e.stderr):
            raise ConfigurationError(
                f"{profdata} cannot read the raw profiles; its LLVM version must match the compiler "
                f"that produced them:\n{e.stderr.strip()}", stage="merge") from e
        raise
    return output


__all__ = ["merge_profiles", "INPUT_LIST_THRESHOLD"]
