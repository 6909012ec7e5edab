"""外部工具命令行构造（只构造，不执行）。"""

from __future__ import annotations

from typing import List, Optional


def profdata_merge_command(profdata: str, inputs: List[str], output: str,
                           input_list: Optional[str] = None) -> List[str]:
    """`llvm-profdata merge -sparse`。

    文件很多时把输入写进列表文件，用 `-input-files=` 传入，避免命令行过长。
    """
    cmd = [profdata, "merge", "-sparse"]
    if input_list is not None:
        cmd.append(f"-input-files={input_list}")
    else:
        cmd.extend(inputs)
    cmd += ["-o", output]
    return cmd


def clang_object_command(clang: str, ir_path: str, obj_path: str, target: str,
                         extra_args: Optional[List[str]] = None) -> List[str]:
    """只编译不链接：`clang --target=<host> -c -x ir <ir> -o <obj>`。

    `-Wno-override-module`：IR 里的 wasm32 target triple 会被 --target 覆盖。
    """
    cmd = [clang, f"--target={target}", "-Wno-override-module", "-O0", "-c"]
    if extra_args:
        cmd += list(extra_args)
    cmd += ["-x", "ir", ir_path, "-o", obj_path]
    return cmd


def llvm_cov_show_command(llvm_cov: str, obj_path: str, profdata: str, outdir: str,
                          fmt: str = "html", extra_args: Optional[List[str]] = None) -> List[str]:
    cmd = [llvm_cov, "show", obj_path,
           f"-instr-profile={profdata}",
           f"-format={fmt}",
           f"-output-dir={outdir}",
           "-show-line-counts-or-regions",
           "-show-instantiations=false"]
    if extra_args:
        cmd += list(extra_args)
    return cmd


def llvm_cov_export_command(llvm_cov: str, obj_path: str, profdata: str,
                            extra_args: Optional[List[str]] = None) -> List[str]:
    cmd = [llvm_cov, "export", obj_path, f"-instr-profile={profdata}", "-format=text"]
    if extra_args:
        cmd += list(extra_args)
    return cmd


def path_equivalence_args(mapping: Optional[str]) -> List[str]:
    """`FROM,TO` -> ['-path-equivalence=FROM,TO']，用于把构建机上的源码路径映射到本地。"""
    if not mapping:
        return []
    return [f"-path-equivalence={mapping}"]


__all__ = [
    "profdata_merge_command",
    "clang_object_command",
    "llvm_cov_show_command",
    "llvm_cov_export_command",
    "path_equivalence_args",
]
