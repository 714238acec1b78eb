"""Payroll settlement engine.

Turns attendance into gross salary, applies statutory pension and health
deductions, and drives each monthly settlement through
pending → approved|rejected → paid.
"""

__version__ = "0.1.0"
