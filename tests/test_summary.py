import pytest

from wasmcov_py.core.summary import (
    CSV_HEADER,
    FunctionCoverage,
    export_function_csv,
    function_coverage,
    read_function_csv,
    totals,
)

EXPORT = {
    "type": "llvm.coverage.json.export",
    "data": [{
        "functions": [
            {"name": "token_balance", "count": 3,
             "regions": [[1, 1, 4, 2, 3, 0, 0, 0], [2, 5, 2, 9, 0, 0, 0, 0],
                         [3, 1, 3, 4, 3, 0, 0, 2]]},  # kind 2 不是代码 region
            {"name": "mint", "count": 0, "regions": [[1, 1, 2, 2, 0, 0, 0, 0]]},
            {"name": "generic<T>", "count": 1, "regions": [[1, 1, 2, 2, 1, 0, 0, 0]]},
            {"name": "generic<T>", "count": 2, "regions": [[1, 1, 2, 2, 2, 0, 0, 0]]},
            {"name": "empty", "count": 1, "regions": []},
        ],
    }],
}


def test_function_coverage_rows():
    rows = function_coverage(EXPORT)
    assert [r.name for r in rows] == ["token_balance", "mint", "generic<T>", "empty"]
    bal = rows[0]
    assert (bal.count, bal.regions, bal.covered) == (3, 2, 1)
    assert bal.percent == pytest.approx(50.0)
    assert rows[1].percent == 0.0
    assert rows[2].count == 3
    assert rows[3].percent == 100.0


def test_totals():
    rows = function_coverage(EXPORT)
    assert totals(rows) == (4, 3, pytest.approx(75.0))
    assert totals([]) == (0, 0, 0.0)


def test_csv_export_and_read(tmp_path):
    rows = function_coverage(EXPORT)
    path = tmp_path / "function_coverage.csv"
    export_function_csv(rows, str(path))
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(CSV_HEADER)
    assert lines[1] == "token_balance,3,2,1,50.00"
    back = read_function_csv(str(path))
    assert [(r.name, r.count, r.regions, r.covered) for r in back] == \
        [(r.name, r.count, r.regions, r.covered) for r in rows]


def test_plot_writes_png(tmp_path):
    from wasmcov_py.utils.plot import plot_function_coverage

    rows = [FunctionCoverage(f"fn_{i}", i % 2, 4, i % 5) for i in range(12)]
    out = plot_function_coverage(rows, str(tmp_path / "cov.png"), title="token", sort=True, limit=10)
    data = (tmp_path / "cov.png").read_bytes()
    assert out == str(tmp_path / "cov.png")
    assert data[:8] == b"\x89PNG\r\n\x1a\n"
