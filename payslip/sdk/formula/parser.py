"""Formula tokenizer and recursive-descent parser.

Formulas are parsed once into a small AST which the evaluator walks.
Nothing is ever substituted back into text or executed as Python.

Grammar (lowest to highest precedence):

    comparison  := concat (("=" | "<>" | "<" | ">" | "<=" | ">=") concat)*
    concat      := additive ("&" additive)*
    additive    := term (("+" | "-") term)*
    term        := unary (("*" | "/") unary)*
    unary       := ("+" | "-") unary | power
    power       := postfix (("^" | "**") unary)?
    postfix     := primary "%"*
    primary     := NUMBER | STRING | TRUE | FALSE
                 | NAME "(" [comparison ("," comparison)*] ")"
                 | CELL ":" CELL
                 | NAME
                 | "(" comparison ")"
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple, Union

from .cells import cell_to_coords, expand_range, is_cell_ref

EXPRESSION_MARKER = "="

COMPARISON_OPS = ("=", "<>", "<", ">", "<=", ">=")


class FormulaError(Exception):
    """Base class for formula failures."""
    pass


class FormulaSyntaxError(FormulaError):
    """Raised when a formula cannot be tokenized or parsed."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


# =============================================================================
# AST
# =============================================================================


@dataclass(frozen=True)
class Number:
    value: Union[int, float]


@dataclass(frozen=True)
class String:
    value: str


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Reference:
    """A field id or single cell address."""
    name: str


@dataclass(frozen=True)
class Range:
    """A rectangular block of cells, e.g. A1:B3."""
    start: str
    end: str

    def cells(self) -> List[str]:
        return expand_range(self.start, self.end)


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple["Node", ...]


Node = Union[Number, String, Boolean, Reference, Range, UnaryOp, BinaryOp, FunctionCall]


# =============================================================================
# Tokenizer
# =============================================================================

_TOKEN_SPEC = [
    ("NUMBER", r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"),
    ("STRING", r'"(?:[^"]|"")*"'),
    ("NAME", r"[A-Za-z_$][A-Za-z0-9_.$]*"),
    ("OP", r"<=|>=|<>|\*\*|[-+*/^&%=<>]"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("COLON", r":"),
    ("SKIP", r"\s+"),
    ("MISMATCH", r"."),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def _normalize_name(text: str, position: int) -> str:
    """Strip absolute-address markers ($A$1 -> A1); reject '$' elsewhere."""
    if "$" not in text:
        return text
    stripped = text.replace("$", "")
    if not is_cell_ref(stripped):
        raise FormulaSyntaxError(f"Unexpected '$' in name '{text}'", position)
    return stripped


def tokenize(text: str) -> List[Token]:
    """Split an expression (without the leading '=') into tokens."""
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        value = match.group()
        position = match.start()
        if kind == "SKIP":
            continue
        if kind == "MISMATCH":
            raise FormulaSyntaxError(f"Unexpected character '{value}'", position)
        if kind == "NAME":
            value = _normalize_name(value, position)
        tokens.append(Token(kind, value, position))
    tokens.append(Token("END", "", len(text)))
    return tokens


# =============================================================================
# Parser
# =============================================================================


class _Parser:
    def __init__(self, text: str):
        self.tokens = tokenize(text)
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _at_op(self, *ops: str) -> bool:
        return self.current.kind == "OP" and self.current.text in ops

    def _expect(self, kind: str) -> Token:
        token = self.current
        if token.kind != kind:
            found = token.text or "end of formula"
            raise FormulaSyntaxError(f"Expected {kind.lower()}, found '{found}'", token.position)
        return self._advance()

    def parse(self) -> Node:
        if self.current.kind == "END":
            raise FormulaSyntaxError("Empty formula", 0)
        node = self._comparison()
        if self.current.kind != "END":
            raise FormulaSyntaxError(f"Unexpected '{self.current.text}'", self.current.position)
        return node

    def _comparison(self) -> Node:
        node = self._concat()
        while self._at_op(*COMPARISON_OPS):
            op = self._advance().text
            node = BinaryOp(op, node, self._concat())
        return node

    def _concat(self) -> Node:
        node = self._additive()
        while self._at_op("&"):
            self._advance()
            node = BinaryOp("&", node, self._additive())
        return node

    def _additive(self) -> Node:
        node = self._term()
        while self._at_op("+", "-"):
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._at_op("*", "/"):
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._at_op("+", "-"):
            op = self._advance().text
            return UnaryOp(op, self._unary())
        return self._power()

    def _power(self) -> Node:
        base = self._postfix()
        if self._at_op("^", "**"):
            self._advance()
            return BinaryOp("^", base, self._unary())
        return base

    def _postfix(self) -> Node:
        node = self._primary()
        while self._at_op("%"):
            self._advance()
            node = UnaryOp("%", node)
        return node

    def _primary(self) -> Node:
        token = self.current

        if token.kind == "NUMBER":
            self._advance()
            if any(ch in token.text for ch in ".eE"):
                return Number(float(token.text))
            return Number(int(token.text))

        if token.kind == "STRING":
            self._advance()
            return String(token.text[1:-1].replace('""', '"'))

        if token.kind == "LPAREN":
            self._advance()
            node = self._comparison()
            self._expect("RPAREN")
            return node

        if token.kind == "NAME":
            self._advance()
            if self.current.kind == "LPAREN":
                return self._call(token)
            if token.text.upper() in ("TRUE", "FALSE"):
                return Boolean(token.text.upper() == "TRUE")
            if self.current.kind == "COLON":
                self._advance()
                end = self._expect("NAME")
                try:
                    cell_to_coords(token.text)
                    cell_to_coords(end.text)
                except ValueError:
                    raise FormulaSyntaxError(
                        f"Invalid range '{token.text}:{end.text}'", token.position
                    )
                return Range(token.text.upper(), end.text.upper())
            return Reference(token.text)

        found = token.text or "end of formula"
        raise FormulaSyntaxError(f"Unexpected '{found}'", token.position)

    def _call(self, name_token: Token) -> FunctionCall:
        self._expect("LPAREN")
        args = []
        if self.current.kind != "RPAREN":
            args.append(self._comparison())
            while self.current.kind == "COMMA":
                self._advance()
                args.append(self._comparison())
        self._expect("RPAREN")
        return FunctionCall(name_token.text.upper(), tuple(args))


def is_expression(formula) -> bool:
    """True if formula is a string carrying the expression marker."""
    return isinstance(formula, str) and formula.lstrip().startswith(EXPRESSION_MARKER)


def parse_formula(formula: str) -> Node:
    """Parse a formula into an AST.

    The leading '=' is optional here; callers decide whether unmarked text
    is a literal.

    Raises:
        FormulaSyntaxError: If the formula is malformed
    """
    text = formula.strip()
    if text.startswith(EXPRESSION_MARKER):
        text = text[len(EXPRESSION_MARKER):]
    return _Parser(text).parse()


def formula_references(node: Node) -> Set[str]:
    """Collect every field id / cell address an AST reads.

    Ranges contribute each cell they cover. Function names are not included.
    """
    found: Set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Reference):
            found.add(current.name)
        elif isinstance(current, Range):
            found.update(current.cells())
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, BinaryOp):
            stack.extend((current.left, current.right))
        elif isinstance(current, FunctionCall):
            stack.extend(current.args)
    return found
