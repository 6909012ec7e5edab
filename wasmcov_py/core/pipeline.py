"""
报告生成管线

阶段：
  tools     查找 llvm-profdata / llvm-cov / clang
  versions  比较 LLVM 主版本（编译器、合并工具、宿主编译器、报告生成器）
  merge     raw 文件 -> .profdata
  sanitize  IR -> 清洗后的 IR
  compile   清洗后的 IR -> 宿主目标文件
  report    llvm-cov show -> 报告目录
  export    llvm-cov export -> function_coverage.csv

merge 与 sanitize/compile 并行执行；report 等待两者都完成。任何阶段失败都会中止
后续阶段，异常带有阶段名；已经生成的文件保留在输出目录里，便于只重跑失败的阶段。
"""
from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from ..instrumentation.raw_artifacts import collect_raw_artifacts
from ..ir.sanitizer import sanitize_file
from ..toolchain.commands import path_equivalence_args
from ..toolchain.host_compile import compile_object, default_host_target
from ..toolchain.merge import merge_profiles
from ..toolchain.report import export_json, render_report
from ..toolchain.tools import require_tool
from ..toolchain.versions import check_versions, ir_llvm_version
from ..utils.config import DEFAULTS
from .errors import ConfigurationError
from .summary import FunctionCoverage, export_function_csv, function_coverage

logger = logging.getLogger(__name__)

SUMMARY_CSV = "function_coverage.csv"


@dataclass
class PipelineConfig:
    artifacts_dir: str
    ir_path: str
    outdir: str
    module: Optional[str] = None
    llvm_profdata: str = DEFAULTS["llvm_profdata"]
    llvm_cov: str = DEFAULTS["llvm_cov"]
    clang: str = DEFAULTS["clang"]
    target: Optional[str] = DEFAULTS["host_target"]
    report_format: str = DEFAULTS["report_format"]
    raw_extension: str = DEFAULTS["raw_extension"]
    expect_llvm: Optional[int] = None
    sanitize_if_needed: bool = False
    verify_versions: bool = True
    path_equivalence: Optional[str] = None
    source_root: Optional[str] = None
    timeout: Optional[float] = DEFAULTS["tool_timeout"]
    known_dirs: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, config: dict, **kwargs) -> "PipelineConfig":
        """用 load_config() 的结果填充工具名等默认值，kwargs 优先。"""
        base = {
            "llvm_profdata": config.get("llvm_profdata", DEFAULTS["llvm_profdata"]),
            "llvm_cov": config.get("llvm_cov", DEFAULTS["llvm_cov"]),
            "clang": config.get("clang", DEFAULTS["clang"]),
            "target": config.get("host_target"),
            "report_format": config.get("report_format", DEFAULTS["report_format"]),
            "raw_extension": config.get("raw_extension", DEFAULTS["raw_extension"]),
            "timeout": config.get("tool_timeout"),
        }
        base.update({k: v for k, v in kwargs.items() if v is not None})
        return cls(**base)


@dataclass
class PipelineResult:
    raw_files: List[Path]
    profdata: Path
    sanitized_ir: Path
    host_object: Path
    report_dir: Path
    summary_csv: Path
    functions: List[FunctionCoverage]
    sanitized_functions: int = 0


class Pipeline:
    """驱动 merge + sanitize + compile + report。

    `progress` 回调接收状态行（CLI 用 print 输出），默认写到 debug 日志。
    """

    def __init__(self, config: PipelineConfig, progress: Optional[Callable[[str], None]] = None) -> None:
        self.config = config
        self.progress = progress or logger.debug
        self.outdir = Path(config.outdir)
        stem = Path(config.ir_path).stem
        self.profdata_path = self.outdir / f"{config.module or 'all'}.profdata"
        self.sanitized_path = self.outdir / f"{stem}.sanitized.ll"
        self.object_path = self.outdir / f"{stem}.o"
        self.report_dir = self.outdir / "report"
        self.llvm_profdata = config.llvm_profdata
        self.llvm_cov = config.llvm_cov
        self.clang = config.clang
        self._sanitized_count = 0

    # -- 准备阶段 -------------------------------------------------------

    def expected_major(self) -> Optional[int]:
        if self.config.expect_llvm is not None:
            return int(self.config.expect_llvm)
        text = Path(self.config.ir_path).read_text(encoding="utf-8")
        version = ir_llvm_version(text)
        return version[0] if version else None

    def resolve_tools(self, major: Optional[int] = None) -> None:
        dirs = self.config.known_dirs
        self.llvm_profdata = require_tool(self.config.llvm_profdata, known_dirs=dirs, major=major)
        self.llvm_cov = require_tool(self.config.llvm_cov, known_dirs=dirs, major=major)
        self.clang = require_tool(self.config.clang, known_dirs=dirs, major=major)

    def check_inputs(self) -> List[Path]:
        ir_path = Path(self.config.ir_path)
        if not ir_path.is_file():
            raise ConfigurationError(f"IR file not found: {ir_path}", stage="inputs")
        if not Path(self.config.artifacts_dir).is_dir():
            raise ConfigurationError(f"artifact directory not found: {self.config.artifacts_dir}", stage="inputs")
        if self.config.source_root and not Path(self.config.source_root).is_dir():
            raise ConfigurationError(f"source root not found: {self.config.source_root}", stage="inputs")
        raw_files = collect_raw_artifacts(self.config.artifacts_dir, self.config.module,
                                          raw_extension=self.config.raw_extension)
        if not raw_files:
            where = self.config.artifacts_dir
            if self.config.module:
                where += f" (module {self.config.module})"
            raise ConfigurationError(f"no raw coverage artifacts found in {where}", stage="inputs")
        return raw_files

    # -- 各阶段 ---------------------------------------------------------

    def stage_merge(self, raw_files: List[Path]) -> Path:
        self.progress(f"merging {len(raw_files)} raw files into {self.profdata_path}")
        return merge_profiles(raw_files, self.profdata_path, profdata=self.llvm_profdata,
                              timeout=self.config.timeout)

    def stage_sanitize(self) -> Path:
        self.progress(f"sanitizing {self.config.ir_path} -> {self.sanitized_path}")
        self._sanitized_count = sanitize_file(self.config.ir_path, self.sanitized_path,
                                              if_needed=self.config.sanitize_if_needed)
        return self.sanitized_path

    def stage_compile(self, sanitized: Path) -> Path:
        target = self.config.target or default_host_target()
        self.progress(f"compiling {sanitized} for {target}")
        return compile_object(sanitized, self.object_path, clang=self.clang, target=target,
                              timeout=self.config.timeout)

    def stage_report(self, profdata: Path, obj: Path) -> Path:
        self.progress(f"rendering {self.config.report_format} report into {self.report_dir}")
        return render_report(obj, profdata, self.report_dir, llvm_cov=self.llvm_cov,
                             fmt=self.config.report_format,
                             extra_args=path_equivalence_args(self.config.path_equivalence),
                             timeout=self.config.timeout,
                             cwd=self.config.source_root)

    def stage_export(self, profdata: Path, obj: Path) -> List[FunctionCoverage]:
        data = export_json(obj, profdata, llvm_cov=self.llvm_cov, timeout=self.config.timeout,
                           cwd=self.config.source_root)
        rows = function_coverage(data)
        export_function_csv(rows, str(self.report_dir / SUMMARY_CSV))
        return rows

    def _sanitize_and_compile(self) -> Path:
        return self.stage_compile(self.stage_sanitize())

    # -- 驱动 -----------------------------------------------------------

    def run(self) -> PipelineResult:
        raw_files = self.check_inputs()
        major = self.expected_major()
        self.resolve_tools(major)
        if self.config.verify_versions:
            check_versions({"llvm-profdata": self.llvm_profdata, "llvm-cov": self.llvm_cov,
                            "clang": self.clang}, expected_major=major)
        self.outdir.mkdir(parents=True, exist_ok=True)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="wasmcov") as pool:
            fut_merge = pool.submit(self.stage_merge, raw_files)
            fut_obj = pool.submit(self._sanitize_and_compile)
            done, _pending = wait([fut_merge, fut_obj], return_when=FIRST_EXCEPTION)
            # 先失败的阶段先报告；另一个阶段已经开始的外部进程无法取消，等待其结束
            for fut in (fut_merge, fut_obj):
                if fut in done and fut.exception() is not None:
                    raise fut.exception()
            profdata = fut_merge.result()
            obj = fut_obj.result()

        report_dir = self.stage_report(profdata, obj)
        rows = self.stage_export(profdata, obj)
        return PipelineResult(raw_files=raw_files, profdata=profdata, sanitized_ir=self.sanitized_path,
                              host_object=obj, report_dir=report_dir,
                              summary_csv=report_dir / SUMMARY_CSV, functions=rows,
                              sanitized_functions=self._sanitized_count)


__all__ = ["Pipeline", "PipelineConfig", "PipelineResult", "SUMMARY_CSV"]
