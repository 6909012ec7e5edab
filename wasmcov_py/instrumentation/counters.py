"""客体内覆盖计数器。

Python 实现的客体（见 targets/guest.py 的 PythonGuest）用它来模拟插装代码
维护的计数器区。计数器用定长数组保存，`to_bytes()` 把当前计数序列化为
不透明的字节串，可直接作为 CaptureHook 的 serializer。
"""

from __future__ import annotations

import struct
from typing import Dict, Iterable, Optional

DEFAULT_SIZE = 1024
# 每个计数器 8 字节（u64，小端）
_COUNTER = struct.Struct("<Q")
_U64_MAX = (1 << 64) - 1


class CounterSet:
    """定长计数器集合。

    下标按 size 取模，与 AFL 位图的 edge id 处理方式一致；计数饱和在 u64 上限。
    """

    def __init__(self, size: int = DEFAULT_SIZE) -> None:
        self.size = int(size)
        if self.size <= 0:
            raise ValueError("counter set size must be positive")
        self.counts = [0] * self.size

    def hit(self, index: int, times: int = 1) -> None:
        idx = int(index) % self.size
        self.counts[idx] = min(_U64_MAX, self.counts[idx] + int(times))

    def hit_all(self, indexes: Iterable[int]) -> None:
        for i in indexes:
            self.hit(i)

    def merge(self, other: "CounterSet") -> None:
        """把另一个计数器集合累加进来（按下标相加）。"""
        for i in range(min(self.size, other.size)):
            if other.counts[i]:
                self.counts[i] = min(_U64_MAX, self.counts[i] + other.counts[i])

    def reset(self) -> None:
        self.counts = [0] * self.size

    def __len__(self) -> int:
        # 命中过的计数器个数
        return sum(1 for c in self.counts if c)

    def nonzero(self) -> Dict[int, int]:
        return {i: c for i, c in enumerate(self.counts) if c}

    def to_bytes(self) -> bytes:
        """序列化当前计数（只读，不修改计数器）。"""
        return b"".join(_COUNTER.pack(c) for c in self.counts)

    @classmethod
    def from_bytes(cls, data: bytes, size: Optional[int] = None) -> "CounterSet":
        if len(data) % _COUNTER.size:
            raise ValueError(f"counter buffer length {len(data)} is not a multiple of {_COUNTER.size}")
        n = len(data) // _COUNTER.size
        cs = cls(size or max(n, 1))
        for i, (value,) in enumerate(_COUNTER.iter_unpack(data)):
            if i >= cs.size:
                break
            cs.counts[i] = value
        return cs


__all__ = ["CounterSet", "DEFAULT_SIZE"]
