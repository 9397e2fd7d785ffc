"""Formula syntax checking, function-name extraction and range helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from payxl._errors import FormulaSyntaxError
from payxl._utils import a1_to_rowcol, rowcol_to_a1

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Function names: SUM(...), ROUND(...)
_FUNC_RE = re.compile(r"([A-Z][A-Z0-9_.]*)\s*\(", re.IGNORECASE)

# Strings in formulas (to skip names inside string literals)
_STRING_RE = re.compile(r'"(?:[^"]|"")*"')

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"]|"")*")
  | (?P<error>\#(?:NULL!|DIV/0!|VALUE!|REF!|NAME\?|NUM!|N/A))
  | (?P<ref>(?:'(?:[^']|'')+'!|[A-Za-z_][A-Za-z0-9_.]*!)?
        \$?[A-Za-z]{1,3}\$?\d+(?:\s*:\s*\$?[A-Za-z]{1,3}\$?\d+)?(?![A-Za-z0-9_.(]))
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_\\][A-Za-z0-9_.\\]*)
  | (?P<op><>|<=|>=|[-+*/^&=<>])
  | (?P<percent>%)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<comma>,)
    """,
    re.VERBOSE,
)


def _strip_strings(formula: str) -> str:
    """Remove string literals so names inside quotes aren't matched."""
    return _STRING_RE.sub("", formula)


# ---------------------------------------------------------------------------
# Tokenizer + syntax check
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(formula: str) -> list[Token]:
    """Split *formula* (no leading ``=``) into tokens, dropping whitespace.

    Raises :class:`FormulaSyntaxError` on characters outside the grammar,
    including unterminated string literals.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(formula):
        m = _TOKEN_RE.match(formula, pos)
        if m is None:
            if formula[pos] == '"':
                raise FormulaSyntaxError(
                    f"Unterminated string literal at position {pos} in {formula!r}",
                    formula, pos,
                )
            raise FormulaSyntaxError(
                f"Unexpected character {formula[pos]!r} at position {pos} in {formula!r}",
                formula, pos,
            )
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    return tokens


class _SyntaxChecker:
    """Recursive descent over the token stream; builds nothing, only checks.

    Grammar (lowest to highest precedence)::

        expr     := concat (CMP concat)*
        concat   := additive ('&' additive)*
        additive := term (('+' | '-') term)*
        term     := power (('*' | '/') power)*
        power    := unary ('^' unary)*
        unary    := ('+' | '-') unary | postfix
        postfix  := primary '%'*
        primary  := NUMBER | STRING | ERROR | REF | NAME
                  | NAME '(' [arg (',' arg)*] ')' | '(' expr ')'
    """

    _CMP = frozenset({"=", "<>", "<", ">", "<=", ">="})

    def __init__(self, formula: str, tokens: list[Token]) -> None:
        self._formula = formula
        self._tokens = tokens
        self._i = 0

    def _peek(self) -> Token | None:
        return self._tokens[self._i] if self._i < len(self._tokens) else None

    def _fail(self, message: str, token: Token | None) -> FormulaSyntaxError:
        pos = token.pos if token is not None else len(self._formula)
        where = f"'{token.text}' at position {pos}" if token is not None else "end of formula"
        return FormulaSyntaxError(
            f"{message}: unexpected {where} in {self._formula!r}", self._formula, pos
        )

    def _at_op(self, ops: frozenset[str] | set[str]) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == "op" and tok.text in ops

    def check(self) -> None:
        if not self._tokens:
            raise FormulaSyntaxError("Formula is empty", self._formula, 0)
        self._expr()
        tok = self._peek()
        if tok is not None:
            raise self._fail("Expected an operator", tok)

    def _expr(self) -> None:
        self._concat()
        while self._at_op(self._CMP):
            self._i += 1
            self._concat()

    def _concat(self) -> None:
        self._additive()
        while self._at_op({"&"}):
            self._i += 1
            self._additive()

    def _additive(self) -> None:
        self._term()
        while self._at_op({"+", "-"}):
            self._i += 1
            self._term()

    def _term(self) -> None:
        self._power()
        while self._at_op({"*", "/"}):
            self._i += 1
            self._power()

    def _power(self) -> None:
        self._unary()
        while self._at_op({"^"}):
            self._i += 1
            self._unary()

    def _unary(self) -> None:
        if self._at_op({"+", "-"}):
            self._i += 1
            self._unary()
            return
        self._primary()
        tok = self._peek()
        while tok is not None and tok.kind == "percent":
            self._i += 1
            tok = self._peek()

    def _primary(self) -> None:
        tok = self._peek()
        if tok is None:
            raise self._fail("Expected an operand", None)
        if tok.kind in ("number", "string", "error", "ref"):
            self._i += 1
            return
        if tok.kind == "name":
            self._i += 1
            nxt = self._peek()
            if nxt is not None and nxt.kind == "lparen":
                self._i += 1
                self._arguments()
            return
        if tok.kind == "lparen":
            self._i += 1
            self._expr()
            self._close_paren()
            return
        raise self._fail("Expected an operand", tok)

    def _arguments(self) -> None:
        tok = self._peek()
        if tok is not None and tok.kind == "rparen":
            self._i += 1
            return
        while True:
            tok = self._peek()
            # empty arguments are legal, e.g. IF(A1,,1)
            if tok is None or tok.kind not in ("comma", "rparen"):
                self._expr()
            tok = self._peek()
            if tok is not None and tok.kind == "comma":
                self._i += 1
                continue
            self._close_paren()
            return

    def _close_paren(self) -> None:
        tok = self._peek()
        if tok is None or tok.kind != "rparen":
            raise self._fail("Missing closing parenthesis", tok)
        self._i += 1


def checked_tokens(formula: str) -> list[Token]:
    """Tokens of *formula* (no leading ``=``) after a full syntax check."""
    tokens = tokenize(formula)
    _SyntaxChecker(formula, tokens).check()
    return tokens


def check_syntax(formula: str) -> None:
    """Raise :class:`FormulaSyntaxError` if *formula* (no leading ``=``) is malformed."""
    checked_tokens(formula)


# ---------------------------------------------------------------------------
# Function names
# ---------------------------------------------------------------------------


def parse_functions(formula: str) -> list[str]:
    """Extract all function names used in a formula."""
    clean = _strip_strings(formula)
    funcs: list[str] = []
    seen: set[str] = set()
    for m in _FUNC_RE.finditer(clean):
        name = m.group(1).upper()
        if name not in seen:
            funcs.append(name)
            seen.add(name)
    return funcs


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def _split_range(range_ref: str) -> tuple[str | None, tuple[int, int], tuple[int, int]]:
    sheet: str | None = None
    ref_part = range_ref

    if "!" in range_ref:
        sheet, ref_part = range_ref.rsplit("!", 1)
        sheet = sheet.strip("'")

    parts = ref_part.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid range: {range_ref!r}")

    start = a1_to_rowcol(parts[0].replace("$", "").strip())
    end = a1_to_rowcol(parts[1].replace("$", "").strip())
    return sheet, start, end


def range_shape(range_ref: str) -> tuple[int, int]:
    """``"A1:C2"`` -> ``(2, 3)`` (rows, columns)."""
    _, (r1, c1), (r2, c2) = _split_range(range_ref)
    return abs(r2 - r1) + 1, abs(c2 - c1) + 1


def expand_range(range_ref: str) -> list[str]:
    """Expand a range like "A1:A5" into individual cell refs ["A1", "A2", ..., "A5"].

    The range_ref can be with or without sheet prefix.
    Returns refs in the same format as input (with or without sheet).
    """
    sheet, (start_row, start_col), (end_row, end_col) = _split_range(range_ref)

    # Normalize order
    r_min, r_max = min(start_row, end_row), max(start_row, end_row)
    c_min, c_max = min(start_col, end_col), max(start_col, end_col)

    cells: list[str] = []
    for r in range(r_min, r_max + 1):
        for c in range(c_min, c_max + 1):
            ref = rowcol_to_a1(r, c)
            if sheet is not None:
                cells.append(f"{sheet}!{ref}")
            else:
                cells.append(ref)

    return cells
