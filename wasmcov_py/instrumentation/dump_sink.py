"""
宿主侧 dump 落盘服务

职责：
- 接收客体通过窄调用交来的一次捕获缓冲区（CaptureBuffer）；
- 按模块名分组，落盘为 `<dir>/<module>/<fingerprint>.profraw`；
- 指纹为 SHA-256 前 16 字节的十六进制串，内容相同的缓冲区只保留一份；
- 未配置输出目录时静默不做任何事（dump 是可选开启的）。

并发：目录创建幂等；写入先落到同目录的临时文件，再 os.replace 原子改名，
并发写同内容只是无害竞争，不同内容的文件名不会冲突，因此不需要加锁。
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..core.errors import ConfigurationError, DumpIOError
from ..utils.config import DEFAULTS

logger = logging.getLogger(__name__)

FINGERPRINT_BYTES = 16
# 临时文件后缀，保证不会被 `*.profraw` 匹配到
_PARTIAL_SUFFIX = ".part"


def fingerprint(buffer: bytes) -> str:
    """内容指纹：SHA-256 的前 16 字节，十六进制编码（32 个字符）。"""
    return hashlib.sha256(buffer).digest()[:FINGERPRINT_BYTES].hex()


def check_module_name(module_name: str) -> str:
    """模块名必须是单个路径分量，避免写到别的模块目录里。"""
    if not module_name or module_name in (".", ".."):
        raise ValueError(f"invalid module name: {module_name!r}")
    if "/" in module_name or "\\" in module_name or "\0" in module_name:
        raise ValueError(f"module name must not contain path separators: {module_name!r}")
    return module_name


class DumpSink:
    """把 CaptureBuffer 持久化为 RawArtifact。

    参数：
    - output_dir: 输出根目录；None 表示 dump 关闭
    - raw_extension: 原始文件扩展名（默认 .profraw）
    """

    def __init__(self, output_dir: Optional[str] = None,
                 raw_extension: str = DEFAULTS["raw_extension"]) -> None:
        self.output_dir = Path(output_dir) if output_dir else None
        self.raw_extension = raw_extension

    @classmethod
    def from_env(cls, env: Optional[dict] = None, required: bool = False,
                 env_var: str = DEFAULTS["coverage_dir_env"]) -> "DumpSink":
        """从环境变量读取输出目录。

        required=True 时未配置视为配置错误（调用方期望 dump，却没有目录）。
        """
        env = os.environ if env is None else env
        value = env.get(env_var) or None
        if value is None and required:
            raise ConfigurationError(f"coverage dumping requested but {env_var} is not set", stage="dump")
        return cls(value)

    @property
    def enabled(self) -> bool:
        return self.output_dir is not None

    def artifact_path(self, module_name: str, buffer: bytes) -> Optional[Path]:
        if self.output_dir is None:
            return None
        check_module_name(module_name)
        return self.output_dir / module_name / (fingerprint(buffer) + self.raw_extension)

    def persist(self, module_name: str, buffer: bytes) -> Optional[Path]:
        """落盘一次捕获。

        返回 artifact 路径（已存在时返回已有路径）；未配置目录时返回 None。
        目录创建或写入失败抛出 DumpIOError，不吞掉、不重试。
        """
        if self.output_dir is None:
            return None

        target = self.artifact_path(module_name, buffer)
        group_dir = target.parent
        try:
            group_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DumpIOError(f"cannot create module directory {group_dir}: {e}", path=str(group_dir)) from e

        if target.exists():
            logger.debug("skip duplicate coverage artifact %s", target)
            return target

        # 先写临时文件再原子改名，读者永远看不到半个文件
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix="." + target.stem + "-", suffix=_PARTIAL_SUFFIX,
                                            dir=str(group_dir))
            with os.fdopen(fd, "wb") as f:
                f.write(buffer)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise DumpIOError(f"cannot write coverage artifact {target}: {e}", path=str(target)) from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug("wrote coverage artifact %s (%d bytes)", target, len(buffer))
        return target


__all__ = ["DumpSink", "fingerprint", "check_module_name", "FINGERPRINT_BYTES"]
