"""
IR 清洗：把每个 define 的函数体替换为单条 `unreachable`

IR 中可能引用只在 wasm 目标上有意义的指令（例如 memory.size 查询），宿主编译器
不认识；而覆盖元数据都在全局声明与计数器里，不在指令语义里。因此函数体可以
整体丢弃，函数头（签名、属性）与其余顶层内容原样保留。

替换是结构化的（函数头 + 平衡花括号），见 ir/module.py。
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

from .module import IRModule

logger = logging.getLogger(__name__)

UNREACHABLE_BODY = "{\n  unreachable\n}"

# 宿主编译器不认识的 wasm 专有内容
_WASM_SPECIFIC_RE = re.compile(
    r'@llvm\.wasm\.'
    r'|@__(?:stack_pointer|memory_base|table_base)\b'
)


def sanitize(ir_text: str) -> str:
    """返回清洗后的 IR 文本。

    对已清洗过的文本再次清洗结果不变（函数体已经是 UNREACHABLE_BODY）。
    """
    return _rewrite(ir_text, IRModule(ir_text))


def _rewrite(ir_text: str, module: IRModule) -> str:
    parts = []
    pos = 0
    for fn in module.functions():
        parts.append(ir_text[pos:fn.body_start])
        parts.append(UNREACHABLE_BODY)
        pos = fn.body_end
    parts.append(ir_text[pos:])
    return "".join(parts)


def needs_sanitizing(ir_text: str) -> bool:
    """函数体里是否还有 wasm 专有内容。返回 False 时调用方可以跳过清洗。

    只看函数体：顶层的 intrinsic 声明和字符串属性宿主编译器可以接受。
    """
    if _WASM_SPECIFIC_RE.search(ir_text) is None:
        return False
    for fn in IRModule(ir_text).functions():
        body = ir_text[fn.body_start:fn.body_end]
        if body != UNREACHABLE_BODY and _WASM_SPECIFIC_RE.search(body):
            return True
    return False


def is_sanitized(ir_text: str) -> bool:
    module = IRModule(ir_text)
    return all(ir_text[fn.body_start:fn.body_end] == UNREACHABLE_BODY for fn in module.functions())


def sanitize_file(src: str | Path, dst: str | Path, if_needed: bool = False) -> int:
    """清洗 IR 文件并写到 dst，返回被清洗的函数个数。

    if_needed=True 且没有 wasm 专有内容时原样复制，返回 0。
    """
    text = Path(src).read_text(encoding="utf-8")
    count = 0
    if if_needed and not needs_sanitizing(text):
        logger.debug("%s has no target-specific content, copying unchanged", src)
        out = text
    else:
        module = IRModule(text)
        out = _rewrite(text, module)
        count = len(module.functions())
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    Path(dst).write_text(out, encoding="utf-8")
    return count


def function_names(ir_text: str) -> List[str]:
    return [fn.name for fn in IRModule(ir_text).functions()]


__all__ = [
    "UNREACHABLE_BODY",
    "sanitize",
    "sanitize_file",
    "needs_sanitizing",
    "is_sanitized",
    "function_names",
]
