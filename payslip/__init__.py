"""Payslip Calc - payslip formula and Luxembourg payroll tax calculations."""

__version__ = "0.3.0"
