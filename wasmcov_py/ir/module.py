"""
文本 LLVM IR 的结构扫描

这里不是完整的 IR 解析器，只识别清洗需要的结构：
- 词法：空白、`;` 注释、`"..."` 字符串、单字符括号/标点、其它连续字符（词）；
- 顶层语句：`define` 函数定义（函数头 + 平衡花括号包围的函数体），
  以及全局变量、declare、元数据、类型、attributes 等声明。

函数头里可能出现结构体返回类型 `{ i32, i64 }`、`addrspace(1)`、`comdat($c)`、
`prefix`/`prologue` 常量等带括号的部分，因此函数体起点按结构定位：
参数列表之后、深度为 0 的第一个 `{`（跳过 prefix/prologue 的类型与值）。
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.errors import IRParseError

_TOKEN_RE = re.compile(
    r'(?P<space>[ \t\r\n]+)'
    r'|(?P<comment>;[^\n]*)'
    r'|(?P<string>"[^"]*")'
    r'|(?P<punct>[(){}\[\]<>,=*])'
    r'|(?P<word>[^ \t\r\n;"(){}\[\]<>,=*]+)'
)

_OPEN = {"(": ")", "{": "}", "[": "]"}
_CLOSE = {")": "(", "}": "{", "]": "["}


@dataclass(frozen=True)
class Token:
    kind: str  # 'string' | 'punct' | 'word'
    text: str
    start: int
    end: int


@dataclass(frozen=True)
class FunctionDef:
    """一个 define 定义在文本中的位置。

    - start: `define` 关键字起点
    - body_start / body_end: 函数体 `{` 的位置与匹配 `}` 之后的位置
    """

    name: str
    start: int
    body_start: int
    body_end: int
    line: int


def tokenize(text: str) -> List[Token]:
    """把 IR 文本切成记号（丢弃空白与注释）。"""
    tokens: List[Token] = []
    pos = 0
    n = len(text)
    while pos < n:
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            # 只可能是没有闭合的字符串
            raise IRParseError("unterminated string literal", line=text.count("\n", 0, pos) + 1)
        kind = m.lastgroup
        if kind in ("string", "punct", "word"):
            tokens.append(Token(kind, m.group(), m.start(), m.end()))
        pos = m.end()
    return tokens


class IRModule:
    """IR 文档的结构视图。"""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self._functions: Optional[List[FunctionDef]] = None

    def _line_of(self, pos: int) -> int:
        return self.text.count("\n", 0, pos) + 1

    def _match(self, i: int) -> int:
        """给定开括号记号下标，返回匹配的闭括号记号下标。"""
        toks = self.tokens
        stack = [toks[i].text]
        j = i + 1
        while j < len(toks):
            t = toks[j]
            if t.kind == "punct":
                if t.text in _OPEN:
                    stack.append(t.text)
                elif t.text in _CLOSE:
                    if stack[-1] != _CLOSE[t.text]:
                        raise IRParseError(f"mismatched {t.text!r}", line=self._line_of(t.start))
                    stack.pop()
                    if not stack:
                        return j
            j += 1
        raise IRParseError(f"unbalanced {toks[i].text!r}", line=self._line_of(toks[i].start))

    def _skip_operand(self, i: int) -> int:
        """跳过一个类型或常量（平衡括号组或单个词/字符串），返回其后的下标。"""
        toks = self.tokens
        if i >= len(toks):
            return i
        t = toks[i]
        if t.kind == "punct" and t.text == "<":
            # <{ ... }> 紧凑结构体 或 <4 x i32> 向量
            j = i + 1
            depth = 1
            while j < len(toks) and depth:
                if toks[j].text in _OPEN:
                    j = self._match(j)
                elif toks[j].text == "<":
                    depth += 1
                elif toks[j].text == ">":
                    depth -= 1
                j += 1
            return j
        if t.kind == "punct" and t.text in _OPEN:
            return self._match(i) + 1
        j = i + 1
        # 词后紧跟字符串或括号组的情况：c"..."、@"name"、!{...}
        if j < len(toks) and toks[j].start == t.end and (toks[j].kind == "string" or toks[j].text in _OPEN):
            return self._skip_operand(j)
        return j

    def _parse_define(self, i: int) -> FunctionDef:
        toks = self.tokens
        start_tok = toks[i]
        j = i + 1
        name = None
        # 函数名：返回类型之后的第一个 @ 全局名
        while j < len(toks):
            t = toks[j]
            if t.kind == "punct" and t.text in _OPEN:
                j = self._match(j) + 1
                continue
            if t.kind == "word" and t.text.startswith("@"):
                if t.text == "@" and j + 1 < len(toks) and toks[j + 1].kind == "string":
                    name = toks[j + 1].text[1:-1]
                    j += 2
                else:
                    name = t.text[1:]
                    j += 1
                break
            if t.kind == "word" and t.text in ("define", "declare"):
                break
            j += 1
        if name is None:
            raise IRParseError("function definition without a name", line=self._line_of(start_tok.start))
        if j >= len(toks) or toks[j].text != "(":
            raise IRParseError(f"missing parameter list for @{name}", line=self._line_of(start_tok.start))
        j = self._match(j) + 1

        # 参数列表之后到函数体 `{` 之间的修饰
        while j < len(toks):
            t = toks[j]
            if t.kind == "punct" and t.text == "{":
                close = self._match(j)
                return FunctionDef(name=name, start=start_tok.start, body_start=t.start,
                                   body_end=toks[close].end, line=self._line_of(start_tok.start))
            if t.kind == "word" and t.text in ("prefix", "prologue"):
                j = self._skip_operand(self._skip_operand(j + 1))
                continue
            if t.kind == "word" and t.text in ("define", "declare"):
                break
            if t.kind == "punct" and t.text in _OPEN:
                j = self._match(j) + 1
                continue
            j += 1
        raise IRParseError(f"missing body for @{name}", line=self._line_of(start_tok.start))

    def functions(self) -> List[FunctionDef]:
        """顶层 define 定义列表（按出现顺序）。"""
        if self._functions is not None:
            return self._functions
        funcs: List[FunctionDef] = []
        toks = self.tokens
        i = 0
        while i < len(toks):
            t = toks[i]
            if t.kind == "word" and t.text == "define":
                fn = self._parse_define(i)
                funcs.append(fn)
                # 跳到函数体之后
                while i < len(toks) and toks[i].start < fn.body_end:
                    i += 1
                continue
            if t.kind == "punct" and t.text in _OPEN:
                i = self._match(i) + 1
                continue
            i += 1
        self._functions = funcs
        return funcs

    def _statement_end(self, i: int) -> int:
        """顶层语句结束位置：括号回到 0 层后遇到的第一个换行。"""
        toks = self.tokens
        j = i
        while j < len(toks):
            if toks[j].kind == "punct" and toks[j].text in _OPEN:
                j = self._match(j)
            end = toks[j].end
            nxt = toks[j + 1].start if j + 1 < len(toks) else len(self.text)
            if "\n" in self.text[end:nxt] or j + 1 >= len(toks):
                return end
            j += 1
        return len(self.text)

    def declarations(self) -> Dict[str, str]:
        """函数定义以外的顶层声明：{名字: 语句原文}。

        名字形如 `@__profc_foo`、`!llvm.ident`、`!3`、`%struct.T`、`$comdat`、
        `#0`（attributes）、`declare @f`。用于检查清洗前后声明是否保持不变。
        """
        decls: Dict[str, str] = {}
        toks = self.tokens
        spans = [(f.start, f.body_end) for f in self.functions()]
        span_idx = 0
        i = 0
        while i < len(toks):
            t = toks[i]
            while span_idx < len(spans) and spans[span_idx][1] <= t.start:
                span_idx += 1
            if span_idx < len(spans) and spans[span_idx][0] <= t.start < spans[span_idx][1]:
                i += 1
                continue
            key = None
            if t.kind == "word" and t.text[:1] in "@!%$" and i + 1 < len(toks) and toks[i + 1].text == "=":
                key = t.text
            elif (t.kind == "word" and t.text in ("@", "%") and i + 2 < len(toks)
                  and toks[i + 1].kind == "string" and toks[i + 2].text == "="):
                # @"name" / %"name" 形式的带引号名字
                key = t.text + toks[i + 1].text
            elif t.kind == "word" and t.text == "attributes" and i + 1 < len(toks):
                key = "attributes " + toks[i + 1].text
            elif t.kind == "word" and t.text == "source_filename":
                key = t.text
            elif t.kind == "word" and t.text == "target" and i + 1 < len(toks):
                key = t.text + " " + toks[i + 1].text
            elif t.kind == "word" and t.text == "module" and i + 1 < len(toks) and toks[i + 1].text == "asm":
                key = t.text + " " + toks[i + 1].text
            elif t.kind == "word" and t.text == "declare":
                key = "declare " + self._declared_name(i)
            if key is None:
                if t.kind == "punct" and t.text in _OPEN:
                    i = self._match(i) + 1
                else:
                    i += 1
                continue
            end = self._statement_end(i)
            if key in decls:
                # module asm 等可重复出现的语句
                n = 2
                while f"{key}#{n}" in decls:
                    n += 1
                key = f"{key}#{n}"
            decls[key] = self.text[t.start:end]
            while i < len(toks) and toks[i].start < end:
                i += 1
        return decls

    def _declared_name(self, i: int) -> str:
        toks = self.tokens
        for j in range(i + 1, len(toks)):
            t = toks[j]
            if t.kind == "word" and t.text.startswith("@"):
                if t.text == "@" and j + 1 < len(toks) and toks[j + 1].kind == "string":
                    return "@" + toks[j + 1].text
                return t.text
        return f"<anonymous@{self._line_of(self.tokens[i].start)}>"

    def top_level_names(self) -> List[str]:
        names = list(self.declarations())
        names.extend("define @" + f.name for f in self.functions())
        return names


__all__ = ["IRModule", "FunctionDef", "Token", "tokenize"]
