import json
import os
import stat
import sys
from pathlib import Path

import pytest

# 项目根目录与 tests 目录加入 sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))
tests_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(tests_dir))

from ir_samples import SAMPLE_IR  # noqa: E402


_FAKE_TOOL_BODY = r'''
import hashlib
import json
import os
import re
import sys
from pathlib import Path

args = sys.argv[1:]
with open(LOG, "a", encoding="utf-8") as f:
    f.write(json.dumps([NAME] + args) + "\n")

if "--version" in args:
    if NAME == "clang":
        print("clang version %s" % VERSION)
    else:
        print("LLVM (http://llvm.org/):\n  LLVM version %s" % VERSION)
    sys.exit(0)

if FAIL:
    sys.stderr.write(FAIL + "\n")
    sys.exit(1)


def value(prefix):
    for a in args:
        if a.startswith(prefix):
            return a[len(prefix):]
    return None


if NAME == "llvm-profdata":
    out = Path(args[args.index("-o") + 1])
    listed = value("-input-files=")
    if listed:
        inputs = Path(listed).read_text().split()
    else:
        inputs = [a for a in args[1:args.index("-o")] if not a.startswith("-")]
    digest = hashlib.sha256()
    for p in sorted(set(inputs)):
        digest.update(Path(p).read_bytes())
    out.write_text("profdata %d %s\n" % (len(set(inputs)), digest.hexdigest()))
elif NAME == "clang":
    src = args[args.index("-x") + 2]
    out = Path(args[args.index("-o") + 1])
    out.write_text(Path(src).read_text())
elif NAME == "llvm-cov" and args[0] == "show":
    outdir = Path(value("-output-dir="))
    outdir.mkdir(parents=True, exist_ok=True)
    (outdir / "index.html").write_text("<html>coverage for %s from %s</html>" % (args[1], os.getcwd()))
elif NAME == "llvm-cov" and args[0] == "export":
    text = Path(args[1]).read_text()
    names = re.findall(r'^define[^@\n]*@"?([\w.$]+)"?\(', text, re.M)
    functions = []
    for i, name in enumerate(names):
        count = 1 if i % 2 == 0 else 0
        functions.append({"name": name, "count": count, "filenames": ["src/lib.rs"],
                          "regions": [[1, 1, 3, 2, count, 0, 0, 0], [2, 5, 2, 9, 0, 0, 0, 0]]})
    print(json.dumps({"type": "llvm.coverage.json.export", "version": "2.0.1", "cwd": os.getcwd(),
                      "data": [{"files": [], "functions": functions}]}))
'''


class FakeTools:
    """在 tmp 目录里生成假的 llvm-profdata / clang / llvm-cov 可执行脚本。"""

    def __init__(self, root: Path):
        self.bindir = root / "bin"
        self.bindir.mkdir()
        self.log = root / "tools.log"
        for name in ("llvm-profdata", "clang", "llvm-cov"):
            self.make(name)

    def make(self, name, version="17.0.6", fail=None, filename=None):
        path = self.bindir / (filename or name)
        header = (f"#!{sys.executable}\n"
                  f"NAME = {name!r}\nVERSION = {version!r}\nFAIL = {fail!r}\nLOG = {str(self.log)!r}\n")
        path.write_text(header + _FAKE_TOOL_BODY, encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    def path(self, name):
        return str(self.bindir / name)

    def calls(self, name=None):
        if not self.log.exists():
            return []
        out = []
        for line in self.log.read_text(encoding="utf-8").splitlines():
            rec = json.loads(line)
            if name is None or rec[0] == name:
                out.append(rec[1:])
        return out


@pytest.fixture
def sample_ir():
    return SAMPLE_IR


@pytest.fixture
def fake_tools(tmp_path):
    return FakeTools(tmp_path)


@pytest.fixture
def tool_env(fake_tools, monkeypatch):
    """通过环境变量把工具查找指向假工具。"""
    monkeypatch.setenv("LLVM_PROFDATA_PATH", fake_tools.path("llvm-profdata"))
    monkeypatch.setenv("LLVM_COV_PATH", fake_tools.path("llvm-cov"))
    monkeypatch.setenv("CLANG_PATH", fake_tools.path("clang"))
    return fake_tools


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("WASM_COVERAGE_DIR", raising=False)
    return os.environ
