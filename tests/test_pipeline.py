import csv
import struct

import pytest

from ir_samples import make_ir
from wasmcov_py.core.errors import ConfigurationError, ToolError
from wasmcov_py.core.pipeline import SUMMARY_CSV, Pipeline, PipelineConfig
from wasmcov_py.instrumentation.dump_sink import DumpSink
from wasmcov_py.instrumentation.raw_artifacts import RAW_MAGIC_64
from wasmcov_py.ir.sanitizer import UNREACHABLE_BODY

ARTIFACT_SIZE = 2_100_000


def write_artifacts(cov_dir, n=3, module="token"):
    sink = DumpSink(str(cov_dir))
    header = struct.pack("<QQ", RAW_MAGIC_64, 8)
    return [sink.persist(module, header + bytes([i + 1]) * ARTIFACT_SIZE) for i in range(n)]


def make_config(tmp_path, fake_tools, **kwargs):
    ir = tmp_path / "token.ll"
    if not ir.exists():
        ir.write_text(make_ir(50), encoding="utf-8")
    values = dict(
        artifacts_dir=str(tmp_path / "cov"),
        ir_path=str(ir),
        outdir=str(tmp_path / "out"),
        llvm_profdata=fake_tools.path("llvm-profdata"),
        llvm_cov=fake_tools.path("llvm-cov"),
        clang=fake_tools.path("clang"),
        target="x86_64-unknown-linux-gnu",
    )
    values.update(kwargs)
    return PipelineConfig(**values)


def test_end_to_end(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov")
    lines = []
    result = Pipeline(make_config(tmp_path, fake_tools), progress=lines.append).run()

    assert len(result.raw_files) == 3
    assert result.profdata == tmp_path / "out" / "all.profdata"
    assert result.profdata.read_text().startswith("profdata 3 ")
    sanitized = result.sanitized_ir.read_text(encoding="utf-8")
    assert sanitized.count(UNREACHABLE_BODY) == 50
    assert "@llvm.wasm.memory.size.i32(i32 0)" not in sanitized
    assert result.sanitized_functions == 50
    assert result.host_object.exists()
    assert (result.report_dir / "index.html").exists()

    assert result.summary_csv == result.report_dir / SUMMARY_CSV
    with open(result.summary_csv, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 50
    assert [r["function"] for r in rows[:2]] == ["fn_0", "fn_1"]
    assert len(result.functions) == 50
    assert sum(1 for fn in result.functions if fn.count) == 25
    assert any(line.startswith("merging 3 raw files") for line in lines)


def test_tool_invocations(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=2)
    Pipeline(make_config(tmp_path, fake_tools, report_format="text",
                         path_equivalence="/build,/src")).run()
    show = [c for c in fake_tools.calls("llvm-cov") if c and c[0] == "show"]
    assert len(show) == 1
    assert "-format=text" in show[0]
    assert "-path-equivalence=/build,/src" in show[0]
    clang = [c for c in fake_tools.calls("clang") if "--version" not in c]
    assert clang[0][0] == "--target=x86_64-unknown-linux-gnu"
    assert clang[0][clang[0].index("-x") + 2].endswith("token.sanitized.ll")


def test_module_filter(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=2, module="token")
    write_artifacts(tmp_path / "cov", n=1, module="registry")
    result = Pipeline(make_config(tmp_path, fake_tools, module="registry")).run()
    assert [p.parent.name for p in result.raw_files] == ["registry"]
    assert result.profdata.name == "registry.profdata"


def test_rerun_with_more_artifacts_gives_superset(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=1)
    first = Pipeline(make_config(tmp_path, fake_tools)).run().profdata.read_text()
    write_artifacts(tmp_path / "cov", n=2)
    second = Pipeline(make_config(tmp_path, fake_tools)).run().profdata.read_text()
    assert first.startswith("profdata 1 ")
    assert second.startswith("profdata 2 ")


def test_missing_inputs(tmp_path, fake_tools):
    config = make_config(tmp_path, fake_tools)
    with pytest.raises(ConfigurationError, match="artifact directory not found") as ei:
        Pipeline(config).run()
    assert ei.value.stage == "inputs"

    (tmp_path / "cov" / "token").mkdir(parents=True)
    with pytest.raises(ConfigurationError, match="no raw coverage artifacts"):
        Pipeline(config).run()

    with pytest.raises(ConfigurationError, match="IR file not found"):
        Pipeline(make_config(tmp_path, fake_tools, ir_path=str(tmp_path / "missing.ll"))).run()
    assert not (tmp_path / "out").exists()


def test_compile_failure_keeps_profile(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=2)
    fake_tools.make("clang", fail="error: unknown intrinsic")
    with pytest.raises(ToolError) as ei:
        Pipeline(make_config(tmp_path, fake_tools)).run()
    assert ei.value.stage == "compile"
    assert "unknown intrinsic" in ei.value.stderr
    assert (tmp_path / "out" / "all.profdata").exists()
    assert (tmp_path / "out" / "token.sanitized.ll").exists()
    assert not (tmp_path / "out" / "report").exists()


def test_merge_failure_stops_before_report(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=2)
    fake_tools.make("llvm-profdata", fail="error: malformed instrumentation profile data")
    with pytest.raises(ToolError) as ei:
        Pipeline(make_config(tmp_path, fake_tools)).run()
    assert ei.value.stage == "merge"
    assert not any(c and c[0] == "show" for c in fake_tools.calls("llvm-cov"))


def test_version_mismatch_stops_before_merge(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=1)
    fake_tools.make("llvm-profdata", version="16.0.0")
    with pytest.raises(ConfigurationError) as ei:
        Pipeline(make_config(tmp_path, fake_tools)).run()
    assert ei.value.stage == "versions"
    assert not (tmp_path / "out" / "all.profdata").exists()

    result = Pipeline(make_config(tmp_path, fake_tools, verify_versions=False)).run()
    assert result.profdata.exists()


def test_expected_llvm_from_ir_or_override(tmp_path, fake_tools):
    (tmp_path / "token.ll").write_text(make_ir(2, llvm_version="18.1.2"), encoding="utf-8")
    assert Pipeline(make_config(tmp_path, fake_tools)).expected_major() == 18
    assert Pipeline(make_config(tmp_path, fake_tools, expect_llvm=17)).expected_major() == 17

    write_artifacts(tmp_path / "cov", n=1)
    with pytest.raises(ConfigurationError, match="compiler=18"):
        Pipeline(make_config(tmp_path, fake_tools)).run()


def test_sanitize_if_needed_copies_plain_ir(tmp_path, fake_tools):
    ir = tmp_path / "token.ll"
    ir.write_text("define i32 @f() {\nentry:\n  ret i32 0\n}\n", encoding="utf-8")
    write_artifacts(tmp_path / "cov", n=1)
    result = Pipeline(make_config(tmp_path, fake_tools, sanitize_if_needed=True)).run()
    assert result.sanitized_functions == 0
    assert result.sanitized_ir.read_text(encoding="utf-8") == ir.read_text(encoding="utf-8")


def test_config_from_mapping():
    config = {"llvm_cov": "llvm-cov-17", "report_format": "text", "tool_timeout": 30,
              "host_target": "aarch64-unknown-linux-gnu", "raw_extension": ".profraw"}
    pconf = PipelineConfig.from_mapping(config, artifacts_dir="cov", ir_path="a.ll", outdir="out",
                                        report_format=None, module="token")
    assert pconf.llvm_cov == "llvm-cov-17"
    assert pconf.report_format == "text"
    assert pconf.timeout == 30
    assert pconf.target == "aarch64-unknown-linux-gnu"
    assert pconf.module == "token"
    assert pconf.clang == "clang"


def test_source_root_is_tool_working_directory(tmp_path, fake_tools, monkeypatch):
    write_artifacts(tmp_path / "cov", n=1)
    (tmp_path / "src").mkdir()
    monkeypatch.chdir(tmp_path)
    config = make_config(tmp_path, fake_tools, artifacts_dir="cov", ir_path="token.ll",
                         outdir="out", source_root="src")
    result = Pipeline(config).run()

    index = (tmp_path / "out" / "report" / "index.html").read_text()
    assert f"from {(tmp_path / 'src').resolve()}" in index
    export = [c for c in fake_tools.calls("llvm-cov") if c and c[0] == "export"]
    assert export[0][1] == str((tmp_path / "out" / "token.o").resolve())
    assert len(result.functions) == 50


def test_missing_source_root(tmp_path, fake_tools):
    write_artifacts(tmp_path / "cov", n=1)
    with pytest.raises(ConfigurationError) as ei:
        Pipeline(make_config(tmp_path, fake_tools, source_root=str(tmp_path / "nope"))).run()
    assert ei.value.stage == "inputs"
