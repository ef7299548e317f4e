"""Payslip template loading and formula-field calculation.

calculate_formulas() evaluates every formula field of a template from one
snapshot of input values and returns the calculated-value map. Fields are
evaluated in dependency order (a field that reads another formula field, or
a section containing one, is evaluated after it). Fields caught in a
reference cycle get an error instead of a value; every other field is
still computed.

Usage:
    from payslip.sdk.templates import load_template, calculate_formulas

    template = load_template("templates/monthly.yaml")
    calc = calculate_formulas(template, {"basic_salary": 4000, "bonus": 250})
    calc.values["gross_pay"]
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

import yaml
from pydantic import ValidationError

from .config import get_templates_dir
from .formula import (
    ERROR_DISPLAY,
    ERROR_SENTINEL,
    FormulaSyntaxError,
    evaluate_node,
    formula_references,
    parse_formula,
)
from .formula.values import number_or_zero, parse_number
from .schemas import NUMERIC_FIELD_TYPES, PayslipTemplate

logger = logging.getLogger(__name__)

CIRCULAR_REFERENCE = "circular reference"
DEPENDS_ON_CIRCULAR = "depends on a field with a circular reference"

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".json")


class TemplateValidationError(Exception):
    """Raised when a template file fails schema validation."""

    def __init__(self, errors: List[str], source: Optional[str] = None):
        self.errors = errors
        self.source = source
        prefix = f"Invalid template {source}" if source else "Invalid template"
        super().__init__(f"{prefix}: {'; '.join(errors)}")


class TemplateNotFoundError(FileNotFoundError):
    """Raised when a named template cannot be found."""
    pass


@dataclass
class TemplateCalculation:
    """Calculated values for every formula field of a template.

    values holds a value for every formula field (ERROR_SENTINEL where the
    formula failed); errors and unresolved are keyed by field id.
    """
    values: Dict[str, Any]
    errors: Dict[str, str] = field(default_factory=dict)
    unresolved: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def display_values(self) -> Dict[str, Any]:
        """Values with "#ERROR" in place of failed fields."""
        return {
            field_id: ERROR_DISPLAY if field_id in self.errors else value
            for field_id, value in self.values.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "errors": dict(self.errors),
            "unresolved": {k: list(v) for k, v in self.unresolved.items()},
        }


# =============================================================================
# Loading
# =============================================================================


def template_from_dict(data: Mapping[str, Any], source: Optional[str] = None) -> PayslipTemplate:
    """Validate a template dict.

    Raises:
        TemplateValidationError: With one message per schema problem
    """
    try:
        return PayslipTemplate.model_validate(data)
    except ValidationError as e:
        messages = []
        for err in e.errors():
            location = ".".join(str(p) for p in err["loc"])
            messages.append(f"{location}: {err['msg']}" if location else err["msg"])
        raise TemplateValidationError(messages, source)


def load_template(path: Union[str, Path]) -> PayslipTemplate:
    """Load a template from a YAML or JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        TemplateValidationError: If the content is not a valid template
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Template file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if not isinstance(data, dict):
        raise TemplateValidationError(["template must be a mapping"], path.name)

    return template_from_dict(data, path.name)


def find_template(name_or_path: Union[str, Path]) -> PayslipTemplate:
    """Load a template by path, or by name from the configured templates dir.

    Raises:
        TemplateNotFoundError: If neither a file nor a named template exists
    """
    path = Path(name_or_path)
    if path.exists():
        return load_template(path)

    templates_dir = get_templates_dir()
    for suffix in TEMPLATE_SUFFIXES:
        candidate = templates_dir / f"{name_or_path}{suffix}"
        if candidate.exists():
            return load_template(candidate)

    raise TemplateNotFoundError(
        f"Template '{name_or_path}' not found (checked path and {templates_dir})"
    )


# =============================================================================
# Section totals and dependency graph
# =============================================================================


def section_total(
    template: PayslipTemplate,
    section_id: str,
    values: Mapping[str, Any],
    exclude: Optional[str] = None,
) -> Optional[float]:
    """Sum of the number and formula fields of a section.

    Non-numeric values count as 0. Returns None if section_id is not a
    section of the template.

    Args:
        exclude: Field id left out of the total (a total field that lives
                 inside the section it sums)
    """
    section = template.get_section(section_id)
    if section is None:
        return None

    total = 0
    for field_def in section.fields:
        if field_def.id == exclude or field_def.type not in NUMERIC_FIELD_TYPES:
            continue
        total += number_or_zero(values.get(field_def.id))
    return total


def _parse_formula_fields(template: PayslipTemplate) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Parse every formula once. Returns (nodes, syntax_errors) keyed by field id."""
    nodes = {}
    errors = {}
    for field_id, formula in template.formula_fields().items():
        try:
            nodes[field_id] = parse_formula(formula)
        except FormulaSyntaxError as e:
            errors[field_id] = str(e)
        except RecursionError:
            errors[field_id] = "Formula nested too deeply"
    return nodes, errors


def _field_inputs(template: PayslipTemplate, field_id: str, node) -> Set[str]:
    """Every field id a formula reads, with section references expanded to members."""
    inputs = set()
    for name in formula_references(node):
        section = template.get_section(name)
        if section is not None:
            inputs.update(f.id for f in section.fields if f.id != field_id)
        else:
            inputs.add(name)
    return inputs


def build_dependency_graph(template: PayslipTemplate, nodes: Optional[Dict[str, Any]] = None) -> Dict[str, Set[str]]:
    """Map each formula field to the formula fields it must be evaluated after."""
    if nodes is None:
        nodes, _ = _parse_formula_fields(template)

    parsed_ids = set(nodes)
    return {
        field_id: _field_inputs(template, field_id, node) & parsed_ids
        for field_id, node in nodes.items()
    }


def _reaches(graph: Dict[str, Set[str]], start: str) -> bool:
    """True if start can reach itself through the graph."""
    stack = list(graph.get(start, ()))
    seen = set()
    while stack:
        current = stack.pop()
        if current == start:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(graph.get(current, ()))
    return False


def evaluation_order(graph: Dict[str, Set[str]], field_order: List[str]) -> Tuple[List[str], Dict[str, str]]:
    """Order fields so each comes after its dependencies.

    Returns:
        Tuple of (ordered field ids, errors for fields that cannot be ordered)
    """
    done: List[str] = []
    done_set: Set[str] = set()
    pending = [f for f in field_order if f in graph]

    progress = True
    while pending and progress:
        progress = False
        for field_id in list(pending):
            if graph[field_id] <= done_set:
                done.append(field_id)
                done_set.add(field_id)
                pending.remove(field_id)
                progress = True

    errors = {
        field_id: CIRCULAR_REFERENCE if _reaches(graph, field_id) else DEPENDS_ON_CIRCULAR
        for field_id in pending
    }
    return done, errors


# =============================================================================
# Calculation
# =============================================================================


def normalize_inputs(template: PayslipTemplate, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Prepare raw input values for evaluation.

    - template defaults fill missing inputs
    - values supplied for formula fields are dropped
    - number fields: numeric text becomes a number, empty text is dropped
    """
    formula_ids = set(template.formula_fields())
    values = template.default_values()
    values.update({k: v for k, v in data.items() if k not in formula_ids})

    for field_def in template.iter_fields():
        if field_def.type != "number" or field_def.id not in values:
            continue
        raw = values[field_def.id]
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            del values[field_def.id]
        elif isinstance(raw, str):
            number = parse_number(raw)
            if number is not None:
                values[field_def.id] = number

    return values


def calculate_formulas(template: PayslipTemplate, data: Mapping[str, Any]) -> TemplateCalculation:
    """Evaluate every formula field of a template.

    Lookups resolve previously computed formula results first, then raw
    input values; anything else reads as 0 and is listed in unresolved.
    The caller's mapping is never modified.

    Args:
        template: The payslip template
        data: Raw input values keyed by field id

    Returns:
        TemplateCalculation with a value for every formula field
    """
    inputs = normalize_inputs(template, data)
    nodes, syntax_errors = _parse_formula_fields(template)
    graph = build_dependency_graph(template, nodes)

    field_order = list(template.formula_fields())
    order, order_errors = evaluation_order(graph, field_order)

    # Fields that failed to parse read as the error sentinel
    calculated: Dict[str, Any] = {field_id: ERROR_SENTINEL for field_id in syntax_errors}
    errors: Dict[str, str] = dict(syntax_errors)
    errors.update(order_errors)
    unresolved: Dict[str, List[str]] = {}

    def field_lookup(name: str) -> Any:
        if name in calculated:
            return calculated[name]
        return inputs.get(name)

    for field_id in order:
        def section_lookup(section_id: str, _exclude: str = field_id) -> Optional[float]:
            merged = {**inputs, **calculated}
            return section_total(template, section_id, merged, exclude=_exclude)

        result = evaluate_node(nodes[field_id], field_lookup, section_lookup)
        calculated[field_id] = result.value
        if result.unresolved:
            unresolved[field_id] = list(result.unresolved)
        if not result.ok:
            errors[field_id] = result.error
            logger.debug(f"Formula field {field_id} failed: {result.error}")

    values = {
        field_id: calculated.get(field_id, ERROR_SENTINEL)
        for field_id in field_order
    }
    return TemplateCalculation(values=values, errors=errors, unresolved=unresolved)


def dependent_fields(template: PayslipTemplate, changed_field_id: str) -> List[str]:
    """Formula fields that must be refreshed when a field changes.

    Follows references transitively, including through sections. The
    changed field itself comes first; the rest follow template order.
    """
    nodes, _ = _parse_formula_fields(template)
    inputs = {
        field_id: _field_inputs(template, field_id, node)
        for field_id, node in nodes.items()
    }

    affected: Set[str] = set()
    frontier = {changed_field_id}
    while frontier:
        next_frontier = set()
        for field_id, reads in inputs.items():
            if field_id not in affected and reads & frontier:
                affected.add(field_id)
                next_frontier.add(field_id)
        frontier = next_frontier

    ordered = [changed_field_id]
    ordered.extend(f for f in template.formula_fields() if f in affected and f != changed_field_id)
    return ordered
