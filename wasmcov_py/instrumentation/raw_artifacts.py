"""原始覆盖文件（RawArtifact）的收集与检查。

- 按模块组收集 `<dir>/<module>/*.profraw`；
- 读取 LLVM raw profile 头部中的格式版本号，用于合并前的一致性检查；
- 列出模块组与文件数，按模块清理。

文件内容其余部分视为不透明。
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..core.errors import ConfigurationError
from ..utils.config import DEFAULTS
from .dump_sink import check_module_name

logger = logging.getLogger(__name__)

# LLVM raw profile 魔数（64 位 / 32 位指针变体）
RAW_MAGIC_64 = 0xFF6C70726F667281
RAW_MAGIC_32 = 0xFF6C70726F665281
# 版本字段高 8 位是变体标志位
_VARIANT_MASK = 0xFF << 56
_HEADER = struct.Struct("<QQ")


@dataclass(frozen=True)
class RawVersionTag:
    """raw 头部中的格式版本（去掉变体标志位）。"""

    version: int
    pointer_bits: int

    def __str__(self) -> str:
        return f"raw-v{self.version}/{self.pointer_bits}bit"


def read_version_tag(path: Path) -> Optional[RawVersionTag]:
    """读取 raw profile 头部版本。无法识别魔数时返回 None（格式不透明）。"""
    with open(path, "rb") as f:
        head = f.read(_HEADER.size)
    if len(head) < _HEADER.size:
        return None
    for fmt in ("<QQ", ">QQ"):
        magic, version = struct.unpack(fmt, head)
        if magic == RAW_MAGIC_64:
            return RawVersionTag(version & ~_VARIANT_MASK, 64)
        if magic == RAW_MAGIC_32:
            return RawVersionTag(version & ~_VARIANT_MASK, 32)
    return None


def check_same_version(paths: List[Path]) -> Optional[RawVersionTag]:
    """确认所有可识别的 raw 文件版本一致，返回该版本（都不可识别时返回 None）。"""
    seen: Dict[RawVersionTag, Path] = {}
    for p in paths:
        tag = read_version_tag(p)
        if tag is None:
            logger.debug("no recognizable raw profile header in %s", p)
            continue
        seen.setdefault(tag, p)
    if len(seen) > 1:
        detail = ", ".join(f"{tag} ({p})" for tag, p in seen.items())
        raise ConfigurationError(f"raw coverage artifacts mix instrumentation versions: {detail}", stage="merge")
    return next(iter(seen), None)


def collect_raw_artifacts(root: str | Path, module: Optional[str] = None,
                          raw_extension: str = DEFAULTS["raw_extension"]) -> List[Path]:
    """收集 raw 文件，按路径排序，保证多次调用得到相同的顺序。"""
    root = Path(root)
    pattern = "*" + raw_extension
    if module is not None:
        check_module_name(module)
        return sorted(p for p in (root / module).glob(pattern) if p.is_file())
    return sorted(p for p in root.glob("*/" + pattern) if p.is_file())


def module_groups(root: str | Path, raw_extension: str = DEFAULTS["raw_extension"]) -> Dict[str, int]:
    """返回 {模块名: raw 文件数}。"""
    root = Path(root)
    groups: Dict[str, int] = {}
    if not root.is_dir():
        return groups
    for d in sorted(root.iterdir()):
        if d.is_dir():
            groups[d.name] = sum(1 for p in d.glob("*" + raw_extension) if p.is_file())
    return groups


def clean_module(root: str | Path, module: str, raw_extension: str = DEFAULTS["raw_extension"]) -> int:
    """删除某个模块组下的全部 raw 文件，返回删除个数。目录本身保留。"""
    removed = 0
    for p in collect_raw_artifacts(root, module, raw_extension):
        p.unlink()
        removed += 1
    return removed


__all__ = [
    "RawVersionTag",
    "read_version_tag",
    "check_same_version",
    "collect_raw_artifacts",
    "module_groups",
    "clean_module",
    "RAW_MAGIC_64",
    "RAW_MAGIC_32",
]
