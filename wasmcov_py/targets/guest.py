"""
客体（guest）抽象

虚拟机本身不在本包范围内，这里只定义包装器需要的最小接口：
- `module_name`: 逻辑模块名（同一模块的所有 dump 归到同一组）；
- `find_export(name)`: 能力探测，返回可调用的导出函数或 None；
- `call(export, *args)`: 调用导出函数。

PythonGuest 是进程内的实现（导出函数就是 Python 可调用对象），
真实 VM 适配器只需实现同样的三个成员。
HostBindings 是客体唯一可达的宿主窄调用：dump_coverage(buffer)。
"""
from __future__ import annotations

from typing import Callable, Dict, Optional

from ..instrumentation.dump_sink import DumpSink


class ExportNotFound(LookupError):
    """调用了客体不存在的导出函数。"""


class Guest:
    """客体接口（鸭子类型，子类覆盖 find_export 即可）。"""

    module_name: str = ""

    def find_export(self, name: str) -> Optional[Callable]:
        raise NotImplementedError

    def call(self, export: str, *args):
        fn = self.find_export(export)
        if fn is None:
            raise ExportNotFound(f"module {self.module_name!r} has no export {export!r}")
        return fn(*args)


class PythonGuest(Guest):
    """进程内客体：导出表是 {名字: 可调用对象}。

    每次调用使用一个新的 PythonGuest 实例即对应“每次调用一个 VM 实例”。
    """

    def __init__(self, module_name: str, exports: Optional[Dict[str, Callable]] = None) -> None:
        self.module_name = module_name
        self.exports: Dict[str, Callable] = dict(exports or {})

    def export(self, name: str, fn: Callable) -> None:
        self.exports[name] = fn

    def find_export(self, name: str) -> Optional[Callable]:
        return self.exports.get(name)


class HostBindings:
    """暴露给客体的宿主函数。

    dump_coverage 把一次捕获交给 DumpSink，落盘错误（DumpIOError）原样抛回客体，
    由包装器把它升级为致命错误。
    """

    def __init__(self, sink: DumpSink, module_name: str) -> None:
        self.sink = sink
        self.module_name = module_name
        self.dumps = 0

    def dump_coverage(self, buffer: bytes) -> None:
        self.sink.persist(self.module_name, buffer)
        self.dumps += 1


__all__ = ["Guest", "PythonGuest", "HostBindings", "ExportNotFound"]
