"""formula - Spreadsheet-style formula engine for payslip fields.

Scope:
- Tokenize and parse formulas into an AST (parser.py)
- Evaluate ASTs against field/section lookups (evaluator.py)
- A1 address helpers and range expansion (cells.py)
- Value coercion and currency formatting (values.py)

Constraints:
- Stateless - every call is a pure function of its arguments
- Never executes Python code built from formula text
- evaluate_formula() never raises; failures come back in FormulaResult
- Only SUM, IF and VLOOKUP (stub) are supported

Usage:
    from payslip.sdk.formula import evaluate_formula

    values = {"A1": 10, "A2": 20}
    result = evaluate_formula("=SUM(A1:A3)", values.get)
    result.value   # 30
"""

from .cells import cell_to_coords, coords_to_cell, expand_range, is_cell_ref
from .parser import (
    EXPRESSION_MARKER,
    FormulaError,
    FormulaSyntaxError,
    formula_references,
    is_expression,
    parse_formula,
)
from .evaluator import (
    ERROR_DISPLAY,
    ERROR_SENTINEL,
    FormulaEvaluationError,
    FormulaResult,
    UnresolvedReferenceError,
    evaluate_formula,
    evaluate_node,
)
from .values import format_currency, parse_percentage, to_number, to_text

__all__ = [
    # Cells
    "cell_to_coords",
    "coords_to_cell",
    "expand_range",
    "is_cell_ref",
    # Parsing
    "EXPRESSION_MARKER",
    "formula_references",
    "is_expression",
    "parse_formula",
    # Evaluation
    "ERROR_DISPLAY",
    "ERROR_SENTINEL",
    "FormulaResult",
    "evaluate_formula",
    "evaluate_node",
    # Errors
    "FormulaError",
    "FormulaSyntaxError",
    "FormulaEvaluationError",
    "UnresolvedReferenceError",
    # Values
    "format_currency",
    "parse_percentage",
    "to_number",
    "to_text",
]
