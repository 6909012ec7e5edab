"""
错误分类

- ConfigurationError: 工具缺失、版本不匹配、需要 dump 却未配置目录等，退出码 2
- ToolError: 外部工具（merge/compile/report）非零退出，退出码 3
- IRParseError: IR 结构扫描失败，退出码 4
- DumpIOError: dump 落盘时目录/文件写入失败，直接抛给调用方
- FatalDumpError: 客体 dump 入口出现“未实现”以外的失败，不可恢复

客体调用自身的异常不在此分类中，原样透传。
"""
from __future__ import annotations

from typing import List, Optional


class WasmCovError(Exception):
    """所有可恢复错误的基类，带有出错阶段名。"""

    exit_code = 1

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        msg = super().__str__()
        if self.stage:
            return f"[{self.stage}] {msg}"
        return msg


class ConfigurationError(WasmCovError):
    exit_code = 2


class ToolError(WasmCovError):
    """外部工具执行失败。保留工具名、参数、退出码与原始诊断输出。"""

    exit_code = 3

    def __init__(self, stage: str, cmd: List[str], returncode: Optional[int],
                 stderr: str = "", stdout: str = "") -> None:
        tool = cmd[0] if cmd else "<unknown>"
        detail = stderr.strip() or stdout.strip()
        message = f"{tool} exited with code {returncode}: {' '.join(cmd)}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message, stage=stage)
        self.tool = tool
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class IRParseError(WasmCovError):
    exit_code = 4

    def __init__(self, message: str, line: Optional[int] = None, stage: Optional[str] = "sanitize") -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, stage=stage)
        self.line = line


class DumpIOError(WasmCovError):
    """dump 落盘失败（创建目录或写文件）。不重试。"""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, stage="dump")
        self.path = path


class FatalDumpError(BaseException):
    """客体 dump 入口的非预期失败。

    继承 BaseException：普通的 `except Exception` 无法吞掉它，进程会带着
    traceback 异常终止，而不是当作普通调用失败返回。
    """

    def __init__(self, module_name: str, cause: BaseException) -> None:
        super().__init__(f"coverage dump failed for module {module_name!r}: {cause!r}")
        self.module_name = module_name
        self.cause = cause


__all__ = [
    "WasmCovError",
    "ConfigurationError",
    "ToolError",
    "IRParseError",
    "DumpIOError",
    "FatalDumpError",
]
