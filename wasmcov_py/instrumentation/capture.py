"""
覆盖捕获钩子（运行在客体执行边界内）

CaptureHook 在被调用时把进程内的插装计数器序列化为不透明字节串（CaptureBuffer）。
若插装被编译掉（没有 serializer），capture() 抛出 CaptureNotImplemented，
这是一个可区分的“未实现”条件，而不是失败。
"""
from __future__ import annotations

from typing import Callable, Optional


class CaptureNotImplemented(Exception):
    """插装不存在/已禁用。调用方应当把它当作成功的空操作。"""


class CaptureHook:
    """按需序列化计数器。

    参数：
    - serializer: 返回当前计数器字节串的可调用对象；None 表示插装缺失。
    """

    def __init__(self, serializer: Optional[Callable[[], bytes]] = None) -> None:
        self.serializer = serializer

    @property
    def enabled(self) -> bool:
        return self.serializer is not None

    def capture(self) -> bytes:
        if self.serializer is None:
            raise CaptureNotImplemented("coverage instrumentation is not compiled in")
        return bytes(self.serializer())


def make_dump_export(hook: CaptureHook, host) -> Callable[[], None]:
    """构造客体的 dump 入口（无参数）。

    入口先通过 hook 捕获，再经由唯一的窄调用 `host.dump_coverage(buffer)`
    把缓冲区交给宿主。插装缺失时 CaptureNotImplemented 原样抛出。
    """

    def dump_coverage() -> None:
        buffer = hook.capture()
        host.dump_coverage(buffer)

    return dump_coverage


__all__ = ["CaptureHook", "CaptureNotImplemented", "make_dump_export"]
