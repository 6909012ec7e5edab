import threading

import pytest

from wasmcov_py.core.errors import ConfigurationError, DumpIOError
from wasmcov_py.instrumentation import dump_sink
from wasmcov_py.instrumentation.dump_sink import DumpSink, check_module_name, fingerprint


def test_fingerprint_is_truncated_sha256():
    fp = fingerprint(b"counters")
    assert len(fp) == 32
    assert fp == fingerprint(b"counters")
    assert fp != fingerprint(b"counters2")


def test_persist_writes_under_module_group(tmp_path):
    sink = DumpSink(str(tmp_path))
    path = sink.persist("token", b"\x01\x02\x03")
    assert path == tmp_path / "token" / (fingerprint(b"\x01\x02\x03") + ".profraw")
    assert path.read_bytes() == b"\x01\x02\x03"


def test_identical_buffers_are_deduplicated(tmp_path):
    sink = DumpSink(str(tmp_path))
    first = sink.persist("token", b"same")
    second = sink.persist("token", b"same")
    assert first == second
    assert len(list((tmp_path / "token").iterdir())) == 1


def test_modules_are_namespaced(tmp_path):
    sink = DumpSink(str(tmp_path))
    sink.persist("token", b"same")
    sink.persist("registry", b"same")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["registry", "token"]


def test_distinct_buffers_get_distinct_files(tmp_path):
    sink = DumpSink(str(tmp_path))
    for i in range(5):
        sink.persist("token", bytes([i]) * 16)
    assert len(list((tmp_path / "token").glob("*.profraw"))) == 5


def test_unconfigured_sink_is_noop(tmp_path):
    sink = DumpSink(None)
    assert not sink.enabled
    assert sink.persist("token", b"data") is None
    assert list(tmp_path.iterdir()) == []


def test_from_env(tmp_path):
    sink = DumpSink.from_env({"WASM_COVERAGE_DIR": str(tmp_path)})
    assert sink.enabled
    assert sink.output_dir == tmp_path
    assert not DumpSink.from_env({}).enabled
    assert not DumpSink.from_env({"WASM_COVERAGE_DIR": ""}).enabled


def test_from_env_required_but_unset():
    with pytest.raises(ConfigurationError) as ei:
        DumpSink.from_env({}, required=True)
    assert ei.value.stage == "dump"
    assert "WASM_COVERAGE_DIR" in str(ei.value)


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", "x\0y"])
def test_invalid_module_names(tmp_path, name):
    with pytest.raises(ValueError):
        check_module_name(name)
    with pytest.raises(ValueError):
        DumpSink(str(tmp_path)).persist(name, b"data")


def test_unwritable_directory_raises_dump_io_error(tmp_path):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory")
    sink = DumpSink(str(blocker))
    with pytest.raises(DumpIOError) as ei:
        sink.persist("token", b"data")
    assert ei.value.stage == "dump"


def test_failed_write_leaves_no_partial_file(tmp_path, monkeypatch):
    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(dump_sink.os, "replace", boom)
    sink = DumpSink(str(tmp_path))
    with pytest.raises(DumpIOError, match="disk full"):
        sink.persist("token", b"data")
    assert list((tmp_path / "token").iterdir()) == []


def test_concurrent_writers(tmp_path):
    sink = DumpSink(str(tmp_path))
    buffers = [bytes([i % 4]) * 4096 for i in range(32)]
    errors = []

    def worker(buf):
        try:
            sink.persist("token", buf)
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(b,)) for b in buffers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    files = sorted((tmp_path / "token").iterdir())
    assert len(files) == 4
    assert all(p.suffix == ".profraw" for p in files)
    for p in files:
        assert p.name == fingerprint(p.read_bytes()) + ".profraw"
