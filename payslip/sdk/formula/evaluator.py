"""Formula evaluation over a parsed AST.

evaluate_formula() is the public entry point. It never raises: every call
returns a FormulaResult carrying either a value or an error message, so one
bad formula cannot abort the evaluation of its siblings.

Supported functions: SUM, IF, VLOOKUP (VLOOKUP is a stub that returns the
lookup value unchanged).
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .parser import (
    COMPARISON_OPS,
    Boolean,
    BinaryOp,
    FormulaError,
    FormulaSyntaxError,
    FunctionCall,
    Node,
    Number,
    Range,
    Reference,
    String,
    UnaryOp,
    is_expression,
    parse_formula,
)
from .values import CoercionError, is_number, sort_key, to_number, to_text

logger = logging.getLogger(__name__)

FieldLookup = Callable[[str], Any]
SectionLookup = Callable[[str], Optional[float]]

# Value stored for a field whose formula failed
ERROR_SENTINEL = 0
ERROR_DISPLAY = "#ERROR"

MAX_RANGE_CELLS = 10000

# Integer powers with more digits than this are #NUM! (past the float range)
MAX_POWER_DIGITS = 308


class FormulaEvaluationError(FormulaError):
    """Raised when a well-formed formula cannot be computed (#VALUE!, #DIV/0!)."""
    pass


class UnresolvedReferenceError(FormulaError):
    """Raised in strict mode when a formula reads a field with no value."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unresolved reference: {name}")


@dataclass
class FormulaResult:
    """Outcome of evaluating one formula.

    On failure, value is ERROR_SENTINEL and error/error_type describe why.
    unresolved lists references that had no value and were read as 0.
    """
    value: Any
    error: Optional[str] = None
    error_type: Optional[str] = None  # "syntax", "evaluation" or "reference"
    unresolved: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def display(self) -> Any:
        """Value for presentation: the value, or "#ERROR" on failure."""
        return self.value if self.ok else ERROR_DISPLAY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "error": self.error,
            "error_type": self.error_type,
            "unresolved": list(self.unresolved),
        }


def _no_sections(section_id: str) -> Optional[float]:
    return None


class Evaluator:
    """Walks an AST, resolving references through the supplied lookups.

    field_lookup returns None for an unknown id. section_lookup returns None
    for an id that is not a section.
    """

    def __init__(
        self,
        field_lookup: FieldLookup,
        section_lookup: Optional[SectionLookup] = None,
        strict: bool = False,
    ):
        self.field_lookup = field_lookup
        self.section_lookup = section_lookup or _no_sections
        self.strict = strict
        self.unresolved: List[str] = []

    def resolve(self, name: str) -> Any:
        value = self.field_lookup(name)
        if value is None:
            if self.strict:
                raise UnresolvedReferenceError(name)
            if name not in self.unresolved:
                self.unresolved.append(name)
            return 0
        return value

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, (String, Boolean)):
            return node.value
        if isinstance(node, Reference):
            return self.resolve(node.name)
        if isinstance(node, Range):
            raise FormulaEvaluationError(
                f"#VALUE!: range {node.start}:{node.end} can only be used inside SUM"
            )
        if isinstance(node, UnaryOp):
            return self._unary(node)
        if isinstance(node, BinaryOp):
            return self._binary(node)
        if isinstance(node, FunctionCall):
            handler = FUNCTIONS.get(node.name)
            if handler is None:
                raise FormulaEvaluationError(f"#NAME?: unknown function {node.name}")
            return handler(self, node.args)
        raise FormulaEvaluationError(f"Unsupported expression: {node!r}")

    def number(self, node: Node) -> Any:
        try:
            return to_number(self.evaluate(node))
        except CoercionError as e:
            raise FormulaEvaluationError(str(e))

    def _unary(self, node: UnaryOp) -> Any:
        operand = self.number(node.operand)
        if node.op == "-":
            return -operand
        if node.op == "%":
            return operand / 100
        return operand

    def _binary(self, node: BinaryOp) -> Any:
        op = node.op

        if op == "&":
            return to_text(self.evaluate(node.left)) + to_text(self.evaluate(node.right))

        if op in COMPARISON_OPS:
            left = sort_key(self.evaluate(node.left))
            right = sort_key(self.evaluate(node.right))
            return _compare(op, left, right)

        left = self.number(node.left)
        right = self.number(node.right)

        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise FormulaEvaluationError("#DIV/0!: division by zero")
            return left / right
        if op == "^":
            return _power(left, right)

        raise FormulaEvaluationError(f"Unsupported operator '{op}'")


def _compare(op: str, left, right) -> bool:
    if op == "=":
        return left == right
    if op == "<>":
        return left != right
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


def _power(base, exponent):
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0 and abs(base) > 1:
        if exponent * math.log10(abs(base)) > MAX_POWER_DIGITS:
            raise FormulaEvaluationError("#NUM!: result too large")
    try:
        result = base ** exponent
    except ZeroDivisionError:
        raise FormulaEvaluationError("#DIV/0!: zero raised to a negative power")
    except OverflowError:
        raise FormulaEvaluationError("#NUM!: result too large")
    if isinstance(result, complex) or (isinstance(result, float) and math.isinf(result)):
        raise FormulaEvaluationError("#NUM!: result is not a real number")
    return result


# =============================================================================
# Functions
# =============================================================================


def _sum(evaluator: Evaluator, args) -> Any:
    """SUM over ranges, sections, references and plain expressions.

    Cells and fields holding text contribute 0; expression arguments must be
    numeric.
    """
    total = 0
    for arg in args:
        if isinstance(arg, Range):
            cells = arg.cells()
            if len(cells) > MAX_RANGE_CELLS:
                raise FormulaEvaluationError(
                    f"#VALUE!: range {arg.start}:{arg.end} covers more than {MAX_RANGE_CELLS} cells"
                )
            for cell in cells:
                value = evaluator.field_lookup(cell)
                if is_number(value):
                    total += value
        elif isinstance(arg, Reference):
            section_total = evaluator.section_lookup(arg.name)
            if section_total is not None:
                total += section_total
                continue
            value = evaluator.resolve(arg.name)
            if is_number(value):
                total += value
        else:
            total += evaluator.number(arg)
    return total


def _if(evaluator: Evaluator, args) -> Any:
    if len(args) not in (2, 3):
        raise FormulaEvaluationError(f"IF expects 2 or 3 arguments, got {len(args)}")

    condition = evaluator.evaluate(args[0])
    try:
        truthy = bool(to_number(condition))
    except CoercionError:
        raise FormulaEvaluationError(f"#VALUE!: IF condition is text ({condition!r})")

    if truthy:
        return evaluator.evaluate(args[1])
    if len(args) == 3:
        return evaluator.evaluate(args[2])
    return False


def _vlookup(evaluator: Evaluator, args) -> Any:
    # Stub: table lookups are not supported; the key is returned unchanged.
    if len(args) not in (3, 4):
        raise FormulaEvaluationError(f"VLOOKUP expects 3 or 4 arguments, got {len(args)}")
    logger.debug("VLOOKUP is not implemented, returning lookup value")
    return evaluator.evaluate(args[0])


FUNCTIONS = {
    "SUM": _sum,
    "IF": _if,
    "VLOOKUP": _vlookup,
}


# =============================================================================
# Public API
# =============================================================================


def evaluate_node(
    node: Node,
    field_lookup: FieldLookup,
    section_lookup: Optional[SectionLookup] = None,
    strict: bool = False,
) -> FormulaResult:
    """Evaluate an already-parsed formula. Never raises FormulaError."""
    evaluator = Evaluator(field_lookup, section_lookup, strict=strict)
    try:
        value = evaluator.evaluate(node)
    except UnresolvedReferenceError as e:
        return FormulaResult(ERROR_SENTINEL, str(e), "reference", [e.name])
    except FormulaEvaluationError as e:
        return FormulaResult(ERROR_SENTINEL, str(e), "evaluation", evaluator.unresolved)
    except RecursionError:
        return FormulaResult(ERROR_SENTINEL, "Formula nested too deeply", "evaluation")
    except (OverflowError, ValueError) as e:
        return FormulaResult(ERROR_SENTINEL, f"#NUM!: {e}", "evaluation", evaluator.unresolved)

    return FormulaResult(value, unresolved=evaluator.unresolved)


def evaluate_formula(
    formula: Any,
    field_lookup: FieldLookup,
    section_lookup: Optional[SectionLookup] = None,
    strict: bool = False,
) -> FormulaResult:
    """Evaluate a formula string against the current field values.

    Args:
        formula: Formula text. Text without the leading '=' (and any
                 non-string value) is returned verbatim as a literal.
        field_lookup: Returns the current value for a field id or cell
                      address, or None if it has no value
        section_lookup: Returns the total for a section id, or None if the
                        id is not a section (used by SUM(section))
        strict: Treat references without a value as errors instead of 0

    Returns:
        FormulaResult with the value, or ERROR_SENTINEL plus error details

    Example:
        >>> values = {"A1": 10, "A2": 20}
        >>> evaluate_formula("=SUM(A1:A3)", values.get).value
        30
    """
    if not is_expression(formula):
        return FormulaResult(formula)

    try:
        node = parse_formula(formula)
    except FormulaSyntaxError as e:
        logger.debug(f"Syntax error in formula {formula!r}: {e}")
        return FormulaResult(ERROR_SENTINEL, str(e), "syntax")
    except RecursionError:
        return FormulaResult(ERROR_SENTINEL, "Formula nested too deeply", "syntax")

    result = evaluate_node(node, field_lookup, section_lookup, strict=strict)
    if not result.ok:
        logger.debug(f"Failed to evaluate {formula!r}: {result.error}")
    return result
