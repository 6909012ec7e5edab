"""
函数覆盖率柱状图

把 function_coverage.csv 画成横向柱状图（每个函数一根柱，0-100%）。

用法示例:
  wasmcov plot report/function_coverage.csv -o coverage.png --sort
"""
from __future__ import annotations

from typing import List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from ..core.summary import FunctionCoverage


def plot_function_coverage(rows: List[FunctionCoverage], output: str, title: str = '',
                           dpi: int = 150, sort: bool = False, limit: Optional[int] = None,
                           style: Optional[str] = None) -> str:
    """绘图并保存到 output，返回输出路径。"""
    if style:
        plt.style.use(style)
    rows = list(rows)
    if sort:
        rows.sort(key=lambda r: r.percent)
    if limit is not None:
        rows = rows[:limit]

    # 高度随函数数量增长，避免标签重叠
    height = max(2.0, 0.25 * len(rows) + 1.0)
    fig, ax = plt.subplots(figsize=(8, height))
    names = [r.name for r in rows]
    values = [r.percent for r in rows]
    colors = ['tab:green' if v >= 80 else 'tab:orange' if v > 0 else 'tab:red' for v in values]
    ax.barh(range(len(rows)), values, color=colors)
    ax.set_yticks(range(len(rows)))
    ax.set_yticklabels(names, fontsize=7)
    ax.invert_yaxis()
    ax.set_xlim(0, 100)
    ax.set_xlabel('Region coverage (%)')
    if title:
        ax.set_title(title)
    ax.grid(True, axis='x')
    fig.tight_layout()
    fig.savefig(output, dpi=dpi)
    plt.close(fig)
    return output


__all__ = ["plot_function_coverage"]
