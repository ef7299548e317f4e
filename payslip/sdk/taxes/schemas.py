"""Pydantic schemas for tax rules, tax inputs and tax results.

These schemas validate the rules/*.yaml files and provide typed access
to brackets, surcharge, credits and contribution rates.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Tax rules (loaded from rules/<year>.yaml)
# =============================================================================


class TaxBracket(BaseModel):
    """Single progressive bracket. max is exclusive; None means unbounded."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    min: float = Field(..., ge=0, description="Lower bound of annual salary")
    max: Optional[float] = Field(default=None, description="Upper bound (None for the top bracket)")
    rate: float = Field(..., ge=0, le=1, description="Marginal rate as decimal")


class SolidaritySurcharge(BaseModel):
    """Surcharge applied on top of the bracket tax."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    standard_rate: float = Field(..., ge=0, le=1)
    high_rate: float = Field(..., ge=0, le=1)
    high_rate_thresholds: Dict[int, float] = Field(
        ..., description="Annual salary above which high_rate applies, by tax class"
    )


class TaxCredits(BaseModel):
    """Monthly tax credits."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    single_parent_monthly: float = Field(..., ge=0, description="Credit for tax class 1 with children")


class SocialSecurityRates(BaseModel):
    """Employee social security rates (on monthly gross)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sickness: float = Field(..., ge=0, le=1)
    pension: float = Field(..., ge=0, le=1)
    dependency: float = Field(..., ge=0, le=1)


class EmployerRates(BaseModel):
    """Employer contribution rates (on monthly gross)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sickness_and_cash: float = Field(..., ge=0, le=1)
    accident: float = Field(..., ge=0, le=1)
    health: float = Field(..., ge=0, le=1)
    mutuality: float = Field(..., ge=0, le=1)
    pension: float = Field(..., ge=0, le=1)


class TaxRules(BaseModel):
    """Complete payroll rules for a year."""
    model_config = ConfigDict(extra="ignore", frozen=True)  # Allow unknown fields for forward compat

    year: int
    country: str = "LU"
    currency: str = "EUR"
    income_tax_brackets: List[TaxBracket] = Field(..., min_length=1)
    solidarity_surcharge: SolidaritySurcharge
    credits: TaxCredits
    social_security: SocialSecurityRates
    employer_contributions: EmployerRates

    @model_validator(mode="after")
    def check_brackets(self) -> "TaxRules":
        """Brackets must cover 0 to infinity in ascending, contiguous order."""
        errors = []
        brackets = self.income_tax_brackets

        if brackets[0].min != 0:
            errors.append(f"first bracket must start at 0, starts at {brackets[0].min}")

        for i, bracket in enumerate(brackets):
            is_last = i == len(brackets) - 1
            if bracket.max is None:
                if not is_last:
                    errors.append(f"bracket {i + 1} is unbounded but is not the last bracket")
                continue
            if bracket.max <= bracket.min:
                errors.append(f"bracket {i + 1} max ({bracket.max}) must exceed min ({bracket.min})")
            if is_last:
                errors.append("last bracket must be unbounded (no max)")
            elif brackets[i + 1].min != bracket.max:
                errors.append(
                    f"bracket {i + 2} min ({brackets[i + 1].min}) != "
                    f"bracket {i + 1} max ({bracket.max})"
                )

        if errors:
            raise ValueError("; ".join(errors))

        return self


# =============================================================================
# Calculation inputs and outputs
# =============================================================================


class TaxParameters(BaseModel):
    """Inputs for a monthly tax calculation.

    Accepts snake_case or the camelCase keys used by JSON consumers
    (monthlyGrossSalary, taxClass, hasChildren).
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    monthly_gross_salary: float = Field(
        ..., ge=0, allow_inf_nan=False, alias="monthlyGrossSalary",
        description="Monthly gross salary",
    )
    tax_class: Literal[1, 2] = Field(
        default=1, alias="taxClass", description="1 = single, 2 = married/partnered"
    )
    has_children: bool = Field(default=False, alias="hasChildren")


class SocialSecurityContributions(BaseModel):
    """Employee social security contributions."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sickness: float = Field(..., ge=0)
    pension: float = Field(..., ge=0)
    dependency: float = Field(..., ge=0)
    total: float = Field(..., ge=0)

    def scaled(self, factor: float) -> "SocialSecurityContributions":
        return SocialSecurityContributions(
            sickness=self.sickness * factor,
            pension=self.pension * factor,
            dependency=self.dependency * factor,
            total=self.total * factor,
        )


class EmployerContributions(BaseModel):
    """Employer-side contributions."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sickness_and_cash: float = Field(..., ge=0)
    accident: float = Field(..., ge=0)
    health: float = Field(..., ge=0)
    mutuality: float = Field(..., ge=0)
    pension: float = Field(..., ge=0)
    total: float = Field(..., ge=0)

    def scaled(self, factor: float) -> "EmployerContributions":
        return EmployerContributions(
            sickness_and_cash=self.sickness_and_cash * factor,
            accident=self.accident * factor,
            health=self.health * factor,
            mutuality=self.mutuality * factor,
            pension=self.pension * factor,
            total=self.total * factor,
        )


class TaxResult(BaseModel):
    """Tax and contribution breakdown for a period. Amounts are unrounded."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    gross_salary: float = Field(..., ge=0)
    income_tax: float = Field(..., ge=0, description="Income tax after credits")
    social_security: SocialSecurityContributions
    employer_contributions: EmployerContributions
    net_salary: float = Field(..., description="Gross - income tax - employee social security")
    total_cost_to_employer: float = Field(..., ge=0, description="Gross + employer contributions")

    def scaled(self, factor: float) -> "TaxResult":
        """Multiply every amount by factor (12 for the annual view)."""
        return TaxResult(
            gross_salary=self.gross_salary * factor,
            income_tax=self.income_tax * factor,
            social_security=self.social_security.scaled(factor),
            employer_contributions=self.employer_contributions.scaled(factor),
            net_salary=self.net_salary * factor,
            total_cost_to_employer=self.total_cost_to_employer * factor,
        )
