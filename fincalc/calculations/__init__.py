"""
Financial Calculation Engine

Core calculation modules for the loan, mortgage, investment and real
estate calculators. Payment and rate functions match Excel's
PMT/IPMT/PPMT/NPV/IRR/XIRR behavior.
"""

from fincalc.calculations import (
    amortization,
    apr,
    errors,
    interest,
    investment,
    irr,
    metrics,
    overlays,
    rates,
    refinance,
    rental,
    solver,
    tvm,
)

__all__ = [
    "amortization",
    "apr",
    "errors",
    "interest",
    "investment",
    "irr",
    "metrics",
    "overlays",
    "rates",
    "refinance",
    "rental",
    "solver",
    "tvm",
]
