"""
配置模块

提供默认配置，并支持从 TOML 文件的 `[wasmcov]` 表覆盖默认值。
"""
from __future__ import annotations

import os
import tomllib
from typing import Optional

from ..core.errors import ConfigurationError

DEFAULTS = {
    # 开启 dump 的环境变量；未设置时 dump 为静默空操作
    "coverage_dir_env": "WASM_COVERAGE_DIR",
    # 原始覆盖文件扩展名（LLVM raw profile）
    "raw_extension": ".profraw",
    # 客体导出的 dump 入口名 / 宿主侧绑定名
    "dump_export": "dump_coverage",
    # 外部工具（可被环境变量 LLVM_PROFDATA_PATH / LLVM_COV_PATH / CLANG_PATH 覆盖）
    "llvm_profdata": "llvm-profdata",
    "llvm_cov": "llvm-cov",
    "clang": "clang",
    # 宿主编译目标；None 表示根据当前平台推断
    "host_target": None,
    # llvm-cov show 的输出格式：html|text
    "report_format": "html",
    # 外部工具超时（秒），None 表示不限
    "tool_timeout": None,
}

CONFIG_TABLE = "wasmcov"


def load_config(path: Optional[str] = None) -> dict:
    """加载配置：在 DEFAULTS 副本上叠加 TOML 中 `[wasmcov]` 表的同名键。

    文件不存在时返回默认值；未知键忽略。
    """
    config = DEFAULTS.copy()
    if not path or not os.path.isfile(path):
        return config
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid config file {path}: {e}", stage="config") from e
    section = data.get(CONFIG_TABLE, {})
    if not isinstance(section, dict):
        return config
    for key, value in section.items():
        if key in config:
            config[key] = value
    return config


__all__ = ["DEFAULTS", "load_config"]
