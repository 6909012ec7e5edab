"""
外部工具调用

所有外部命令都经由 run_tool 执行：
- 捕获 stdout/stderr（文本），不继承到终端；
- 非零退出码转成 ToolError（带阶段名、命令、退出码、原始诊断输出）；
- 可执行文件不存在转成 ConfigurationError；
- 超时转成 ToolError（returncode 为 None）。
不做任何自动重试。
"""
from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional

from ..core.errors import ConfigurationError, ToolError

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    cmd: List[str]
    returncode: int
    stdout: str
    stderr: str
    wall_time: float = 0.0


def run_tool(stage: str, cmd: List[str], cwd: Optional[str] = None, env: Optional[dict] = None,
             timeout: Optional[float] = None, check: bool = True) -> ToolResult:
    cmd = [str(c) for c in cmd]
    proc_env = None
    if env:
        proc_env = os.environ.copy()
        proc_env.update(env)

    logger.debug("[%s] running: %s", stage, " ".join(cmd))
    start = time.time()
    try:
        completed = subprocess.run(cmd, cwd=cwd, env=proc_env, stdout=subprocess.PIPE,
                                   stderr=subprocess.PIPE, text=True, timeout=timeout)
    except OSError as e:
        raise ConfigurationError(f"cannot execute {cmd[0]}: {e}", stage=stage) from e
    except subprocess.TimeoutExpired as e:
        raise ToolError(stage, cmd, None, stderr=f"timed out after {timeout}s") from e
    wall_time = time.time() - start

    result = ToolResult(cmd=cmd, returncode=completed.returncode, stdout=completed.stdout or "",
                        stderr=completed.stderr or "", wall_time=wall_time)
    if check and result.returncode != 0:
        raise ToolError(stage, cmd, result.returncode, stderr=result.stderr, stdout=result.stdout)
    return result


__all__ = ["run_tool", "ToolResult"]
