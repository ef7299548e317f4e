"""Payslip CLI - click commands over the payslip SDK."""
