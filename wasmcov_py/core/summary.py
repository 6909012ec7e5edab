"""
函数级覆盖汇总

把 `llvm-cov export` 的 JSON 转成每个函数一行的覆盖率（按代码 region 计），
并导出为 CSV 以便绘图或进一步分析。
"""
from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import List, Tuple

# region 数组字段：LineStart, ColumnStart, LineEnd, ColumnEnd, ExecutionCount, FileID, ExpandedFileID, Kind
_REGION_COUNT = 4
_REGION_KIND = 7
_CODE_REGION = 0

CSV_HEADER = ["function", "execution_count", "regions", "covered_regions", "percent"]


@dataclass
class FunctionCoverage:
    name: str
    count: int
    regions: int
    covered: int

    @property
    def percent(self) -> float:
        if self.regions == 0:
            return 100.0 if self.count else 0.0
        return 100.0 * self.covered / self.regions


def function_coverage(export: dict) -> List[FunctionCoverage]:
    """按导出顺序返回每个函数的覆盖情况。同名函数（多个实例化）合并为一行。"""
    rows: List[FunctionCoverage] = []
    by_name = {}
    for data in export.get("data", []):
        for fn in data.get("functions", []):
            regions = [r for r in fn.get("regions", [])
                       if len(r) <= _REGION_KIND or r[_REGION_KIND] == _CODE_REGION]
            covered = sum(1 for r in regions if len(r) > _REGION_COUNT and r[_REGION_COUNT] > 0)
            name = fn.get("name", "")
            if name in by_name:
                row = by_name[name]
                row.count += int(fn.get("count", 0))
                row.covered = max(row.covered, covered)
                row.regions = max(row.regions, len(regions))
                continue
            row = FunctionCoverage(name=name, count=int(fn.get("count", 0)),
                                   regions=len(regions), covered=covered)
            by_name[name] = row
            rows.append(row)
    return rows


def totals(rows: List[FunctionCoverage]) -> Tuple[int, int, float]:
    """返回 (函数总数, 执行过的函数数, 函数覆盖率百分比)。"""
    total = len(rows)
    hit = sum(1 for r in rows if r.count > 0)
    return total, hit, (100.0 * hit / total if total else 0.0)


def export_function_csv(rows: List[FunctionCoverage], path: str) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for r in rows:
            writer.writerow([r.name, r.count, r.regions, r.covered, f"{r.percent:.2f}"])


def read_function_csv(path: str) -> List[FunctionCoverage]:
    rows: List[FunctionCoverage] = []
    with open(path, newline="", encoding="utf-8") as f:
        for rec in csv.DictReader(f):
            rows.append(FunctionCoverage(name=rec["function"], count=int(rec["execution_count"]),
                                         regions=int(rec["regions"]), covered=int(rec["covered_regions"])))
    return rows


__all__ = [
    "FunctionCoverage",
    "function_coverage",
    "totals",
    "export_function_csv",
    "read_function_csv",
    "CSV_HEADER",
]
