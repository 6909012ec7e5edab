"""wasmcov - 命令行入口。

子命令：
  sanitize  清洗 IR 文件
  merge     合并某个目录下的 raw 文件
  report    merge + sanitize + compile + report 一条龙
  plot      把 function_coverage.csv 画成柱状图
  status    列出模块组及 raw 文件数
  clean     删除某个模块组的 raw 文件

失败时在 stderr 输出 `error: [<stage>] <message>`，并以非零码退出。
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .core.errors import WasmCovError
from .core.pipeline import Pipeline, PipelineConfig
from .core.summary import read_function_csv, totals
from .instrumentation.raw_artifacts import clean_module, collect_raw_artifacts, module_groups
from .ir.sanitizer import sanitize_file
from .toolchain.merge import merge_profiles
from .toolchain.tools import require_tool
from .utils.config import load_config


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="wasmcov", description="wasmcov - coverage reports for WebAssembly guests")
    parser.add_argument("--config", help="TOML config file with a [wasmcov] table")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sanitize", help="replace every function body in an IR file with 'unreachable'")
    p.add_argument("ir", help="input .ll file")
    p.add_argument("-o", "--output", required=True, help="output .ll file")
    p.add_argument("--if-needed", action="store_true", help="copy unchanged when no target-specific code remains")

    p = sub.add_parser("merge", help="merge raw coverage artifacts into one .profdata")
    p.add_argument("artifacts", help="coverage directory (<dir>/<module>/*.profraw)")
    p.add_argument("-o", "--output", required=True, help="output .profdata file")
    p.add_argument("--module", help="only merge artifacts of this module")

    p = sub.add_parser("report", help="merge, sanitize, recompile and render a report")
    p.add_argument("--artifacts", required=True, help="coverage directory (<dir>/<module>/*.profraw)")
    p.add_argument("--ir", required=True, help="IR file emitted alongside the instrumented wasm binary")
    p.add_argument("--outdir", required=True, help="output directory")
    p.add_argument("--module", help="only use artifacts of this module")
    p.add_argument("--expect-llvm", type=int, help="LLVM major version of the compiler that produced the artifacts")
    p.add_argument("--target", help="host target triple (default: current platform)")
    p.add_argument("--format", dest="report_format", choices=["html", "text"], help="report format")
    p.add_argument("--path-equivalence", help="FROM,TO source path mapping passed to llvm-cov")
    p.add_argument("--source-root", help="working directory for llvm-cov, relative source paths resolve against it")
    p.add_argument("--if-needed", action="store_true", help="skip sanitizing when no target-specific code remains")
    p.add_argument("--no-version-check", action="store_true", help="do not compare LLVM tool versions")
    p.add_argument("--timeout", type=float, help="per-tool timeout in seconds")

    p = sub.add_parser("plot", help="plot function_coverage.csv as a bar chart")
    p.add_argument("csvfile", help="function_coverage.csv produced by 'report'")
    p.add_argument("-o", "--output", default="function_coverage.png", help="output image, e.g. out.png or out.pdf")
    p.add_argument("--title", default="", help="chart title")
    p.add_argument("--sort", action="store_true", help="sort by coverage, lowest first")
    p.add_argument("--limit", type=int, help="only plot the first N functions")
    p.add_argument("--dpi", type=int, default=150, help="output DPI")
    p.add_argument("--style", help="matplotlib style, e.g. ggplot")

    p = sub.add_parser("status", help="list module groups and artifact counts")
    p.add_argument("artifacts", help="coverage directory")

    p = sub.add_parser("clean", help="delete raw artifacts of one module group")
    p.add_argument("artifacts", help="coverage directory")
    p.add_argument("--module", required=True, help="module group to clean")

    return parser.parse_args(argv)


def cmd_sanitize(args: argparse.Namespace, config: dict) -> int:
    count = sanitize_file(args.ir, args.output, if_needed=args.if_needed)
    if args.if_needed and count == 0:
        print(f"no target-specific code, copied unchanged: {args.output}")
    else:
        print(f"sanitized {count} function bodies: {args.output}")
    return 0


def cmd_merge(args: argparse.Namespace, config: dict) -> int:
    raw_files = collect_raw_artifacts(args.artifacts, args.module, raw_extension=config["raw_extension"])
    profdata = require_tool(config["llvm_profdata"])
    print(f"merging {len(raw_files)} raw files into {args.output}")
    merge_profiles(raw_files, args.output, profdata=profdata, timeout=config["tool_timeout"])
    print(f"profile written to: {args.output}")
    return 0


def cmd_report(args: argparse.Namespace, config: dict) -> int:
    pconf = PipelineConfig.from_mapping(
        config,
        artifacts_dir=args.artifacts,
        ir_path=args.ir,
        outdir=args.outdir,
        module=args.module,
        expect_llvm=args.expect_llvm,
        target=args.target,
        report_format=args.report_format,
        path_equivalence=args.path_equivalence,
        source_root=args.source_root,
        sanitize_if_needed=args.if_needed,
        verify_versions=not args.no_version_check,
        timeout=args.timeout,
    )
    result = Pipeline(pconf, progress=lambda line: print(line, flush=True)).run()

    total, hit, pct = totals(result.functions)
    print("======== coverage summary ========")
    print(f"  raw artifacts: {len(result.raw_files)}")
    print(f"  profile: {result.profdata}")
    print(f"  report: {result.report_dir}")
    print(f"  functions: {total}, executed: {hit} ({pct:.2f}%)")
    print(f"  per-function coverage: {result.summary_csv}")
    return 0


def cmd_plot(args: argparse.Namespace, config: dict) -> int:
    # matplotlib 只在绘图时才需要加载
    from .utils.plot import plot_function_coverage

    rows = read_function_csv(args.csvfile)
    if not rows:
        print(f"error: no functions in {args.csvfile}", file=sys.stderr)
        return 2
    out = plot_function_coverage(rows, args.output, title=args.title, dpi=args.dpi,
                                 sort=args.sort, limit=args.limit, style=args.style)
    print(f"plot written to: {out}")
    return 0


def cmd_status(args: argparse.Namespace, config: dict) -> int:
    groups = module_groups(args.artifacts, raw_extension=config["raw_extension"])
    if not groups:
        print(f"no module groups in {args.artifacts}")
        return 0
    for name, count in groups.items():
        print(f"{name}: {count} raw files")
    return 0


def cmd_clean(args: argparse.Namespace, config: dict) -> int:
    removed = clean_module(args.artifacts, args.module, raw_extension=config["raw_extension"])
    print(f"removed {removed} raw files from module {args.module}")
    return 0


COMMANDS = {
    "sanitize": cmd_sanitize,
    "merge": cmd_merge,
    "report": cmd_report,
    "plot": cmd_plot,
    "status": cmd_status,
    "clean": cmd_clean,
}


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config)
    except WasmCovError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except (OSError, ValueError) as e:
        print(f"error: [{args.command}] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
