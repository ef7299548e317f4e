"""Pydantic schemas for payslip templates.

Templates are authored as YAML/JSON (often exported from the web builder),
so presentation-only keys such as styling or layout are ignored rather than
rejected. Structural mistakes (duplicate ids, formula fields without a
formula) raise clear errors.
"""

from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


FieldType = Literal["text", "number", "date", "select", "formula"]

# Field types whose values count toward a section total
NUMERIC_FIELD_TYPES = ("number", "formula")


class FieldValidation(BaseModel):
    """Optional input constraints for a field."""

    model_config = ConfigDict(extra="ignore")

    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


class FieldDefinition(BaseModel):
    """A single payslip field. Formula fields are always read-only."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Field identifier referenced by formulas")
    label: str = Field(default="", description="Display label")
    type: FieldType = Field(default="text")
    value: Any = Field(default=None, description="Default value for input fields")
    formula: Optional[str] = Field(default=None, description="Expression for formula fields")
    options: Optional[List[str]] = Field(default=None, description="Choices for select fields")
    required: bool = False
    readonly: bool = False
    validation: Optional[FieldValidation] = None

    @model_validator(mode="after")
    def check_formula(self) -> "FieldDefinition":
        if self.type == "formula":
            if not self.formula or not self.formula.strip():
                raise ValueError(f"formula field '{self.id}' has no formula")
            self.readonly = True
        elif self.formula:
            raise ValueError(f"field '{self.id}' has a formula but type '{self.type}'")
        return self

    @property
    def is_formula(self) -> bool:
        return self.type == "formula"


class SectionDefinition(BaseModel):
    """Named group of fields, addressable from formulas as SUM(<section id>)."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    title: str = Field(default="")
    type: Literal["static", "dynamic", "repeating"] = Field(default="static")
    fields: List[FieldDefinition] = Field(default_factory=list)


class PayslipTemplate(BaseModel):
    """A payslip template: sections of fields plus template-level formulas."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    version: str = Field(default="1.0")
    description: Optional[str] = None
    type: Literal["basic", "custom"] = Field(default="custom")
    sections: List[SectionDefinition] = Field(default_factory=list)
    global_formulas: Dict[str, str] = Field(
        default_factory=dict, alias="globalFormulas",
        description="Formula fields that belong to no section, keyed by id",
    )

    @model_validator(mode="after")
    def check_ids(self) -> "PayslipTemplate":
        """Field ids and section ids must each be unique."""
        errors = []

        seen_sections = set()
        for section in self.sections:
            if section.id in seen_sections:
                errors.append(f"duplicate section id '{section.id}'")
            seen_sections.add(section.id)

        seen_fields = set()
        for field_def in self.iter_fields():
            if field_def.id in seen_fields:
                errors.append(f"duplicate field id '{field_def.id}'")
            seen_fields.add(field_def.id)

        for field_id in self.global_formulas:
            if field_id in seen_fields:
                errors.append(f"global formula '{field_id}' duplicates a section field id")

        if errors:
            raise ValueError("; ".join(errors))

        return self

    def iter_fields(self) -> Iterator[FieldDefinition]:
        """All section fields in template order."""
        for section in self.sections:
            yield from section.fields

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        for field_def in self.iter_fields():
            if field_def.id == field_id:
                return field_def
        return None

    def get_section(self, section_id: str) -> Optional[SectionDefinition]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def formula_fields(self) -> Dict[str, str]:
        """Formula text keyed by field id: section fields first, then global formulas."""
        formulas = {f.id: f.formula for f in self.iter_fields() if f.is_formula}
        formulas.update(self.global_formulas)
        return formulas

    def default_values(self) -> Dict[str, Any]:
        """Default values of input fields that define one."""
        return {
            f.id: f.value
            for f in self.iter_fields()
            if not f.is_formula and f.value is not None
        }
