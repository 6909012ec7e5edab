"""
调用包装器：保证每次客体调用之后恰好触发一次覆盖 dump

状态机：Invoking -> Invoked(Ok|Err) -> Dumping -> Done

1) 执行被包装的调用，记录结果（返回值或异常），暂不返回；
2) 探测客体的 dump 入口：
   - 不存在：不是错误，直接进入 3)；
   - 抛出 CaptureNotImplemented（插装被编译掉）：视为成功；
   - 抛出其它任何异常：FatalDumpError，进程级不可恢复；
   - 正常返回：继续；
3) 返回 1) 记录的结果，不做任何修改。dump 步骤不会覆盖、包装或重新解释原结果。

dump 必须在调用之后、串行执行：它读取的正是这次调用改动过的计数器。
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.errors import FatalDumpError
from ..instrumentation.capture import CaptureNotImplemented
from ..utils.config import DEFAULTS
from .guest import Guest

logger = logging.getLogger(__name__)


class DumpStatus(enum.Enum):
    ABSENT = "absent"
    NOT_IMPLEMENTED = "not_implemented"
    CAPTURED = "captured"
    FAILED = "failed"


@dataclass
class DumpOutcome:
    """dump 探测的标签化结果。"""

    status: DumpStatus
    error: Optional[BaseException] = None


@dataclass
class CallOutcome:
    """被包装调用的结果：value 与 error 二选一。"""

    value: object = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.value


def probe_dump(guest: Guest, export_name: str = DEFAULTS["dump_export"]) -> DumpOutcome:
    """能力探测式调用 dump 入口，把三种结果映射为 DumpStatus。"""
    fn = guest.find_export(export_name)
    if fn is None:
        return DumpOutcome(DumpStatus.ABSENT)
    try:
        fn()
    except CaptureNotImplemented:
        return DumpOutcome(DumpStatus.NOT_IMPLEMENTED)
    except Exception as e:
        return DumpOutcome(DumpStatus.FAILED, e)
    return DumpOutcome(DumpStatus.CAPTURED)


class InvocationWrapper:
    """包装所有客体入口调用。

    参数：
    - dump_export: 客体 dump 入口名（默认 dump_coverage）

    `last_dump` 记录最近一次调用的 dump 结果，供上层统计或测试检查。
    """

    def __init__(self, dump_export: str = DEFAULTS["dump_export"]) -> None:
        self.dump_export = dump_export
        self.last_dump: Optional[DumpOutcome] = None

    def _run(self, call: Callable[[], object]) -> CallOutcome:
        # SystemExit 等非 Exception 的退出路径同样要先 dump 再原样抛出
        try:
            return CallOutcome(value=call())
        except BaseException as e:
            return CallOutcome(error=e)

    def _dump(self, guest: Guest) -> DumpOutcome:
        outcome = probe_dump(guest, self.dump_export)
        self.last_dump = outcome
        if outcome.status is DumpStatus.FAILED:
            logger.critical("coverage dump failed in module %s: %r", guest.module_name, outcome.error)
            raise FatalDumpError(guest.module_name, outcome.error) from outcome.error
        logger.debug("coverage dump for module %s: %s", guest.module_name, outcome.status.value)
        return outcome

    def wrap(self, guest: Guest, call: Callable[[], object]):
        """执行 call，随后 dump 一次，最后原样返回 call 的结果或抛出它的异常。"""
        outcome = self._run(call)
        self._dump(guest)
        return outcome.unwrap()

    def invoke(self, guest: Guest, export: str, *args):
        return self.wrap(guest, lambda: guest.call(export, *args))


__all__ = [
    "InvocationWrapper",
    "DumpStatus",
    "DumpOutcome",
    "CallOutcome",
    "probe_dump",
]
