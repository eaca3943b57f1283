"""
Valuation Engine
================

Pure numeric valuation models used by the /dcf, /dcf-fcf and /graham commands.

Two five-year discounted projections:

- earnings based: EPS compounded by its growth rate, priced at a fair P/E
- free-cash-flow based: FCF/share compounded by its growth rate, priced at a
  target FCF yield

and the Graham intrinsic-value shortcut ``V = EPS * (8.5 + 2g) * (4.4 / Y)``.

Rates arrive as percentages (``10`` means 10%). Negative growth/return rates
are clamped to zero before conversion. The loop-carried per-share value keeps
full precision; only the recorded yearly values are rounded to cents.

The DCF functions do not guard against a zero multiple, yield or current
price: callers validate those before invoking the engine.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Tuple

from .errors import InvalidInput

FORECAST_YEARS = 5

# Graham constants: no-growth P/E base and the 1962 AAA yield.
GRAHAM_BASE_PE = 8.5
GRAHAM_AAA_YIELD = 4.4


@dataclass(frozen=True)
class ValuationInput:
    current_price: float
    # EPS (earnings mode) or FCF per share (FCF mode)
    per_share: float
    growth_rate_pct: float
    # P/E multiple (earnings mode) or FCF yield in percent (FCF mode)
    yield_or_multiple: float
    desired_return_pct: float
    horizon_years: int = FORECAST_YEARS


@dataclass(frozen=True)
class ValuationResult:
    # Discounted value per year, rounded to cents; index 0 is year 1.
    yearly_values: Tuple[float, ...]
    # Annualised return (percent) from buying at the current price.
    return_from_current_price: float
    # Price to pay today for the desired return (= discounted final year).
    entry_price: float
    # Undiscounted final-year price, full precision.
    final_projected_price: float


def to_fraction(rate_pct: float) -> float:
    """Convert a percentage to a fraction, clamping negatives to zero."""
    return rate_pct / 100.0 if rate_pct >= 0 else 0.0


def annualized_return(final_price: float, current_price: float, years: int) -> float:
    """Compound annual return, in percent, rounded to 2 decimals.

    Returns ``nan`` when the price ratio is negative (no real root).
    """
    ratio = final_price / current_price
    if ratio < 0:
        return math.nan
    return round((ratio ** (1.0 / years) - 1.0) * 100.0, 2)


def _project(
    inp: ValuationInput, price_from_per_share: Callable[[float], float]
) -> ValuationResult:
    growth = to_fraction(inp.growth_rate_pct)
    discount = to_fraction(inp.desired_return_pct)

    per_share = inp.per_share
    projected_price = 0.0
    values = []
    for year in range(1, inp.horizon_years + 1):
        per_share *= 1.0 + growth
        projected_price = price_from_per_share(per_share)
        values.append(round(projected_price / (1.0 + discount) ** year, 2))

    return ValuationResult(
        yearly_values=tuple(values),
        return_from_current_price=annualized_return(
            projected_price, inp.current_price, inp.horizon_years
        ),
        entry_price=values[-1],
        final_projected_price=projected_price,
    )


def dcf_earnings(inp: ValuationInput) -> ValuationResult:
    """Earnings-based projection: price = P/E multiple x compounded EPS."""
    multiple = inp.yield_or_multiple
    return _project(inp, lambda eps: multiple * eps)


def dcf_fcf(inp: ValuationInput) -> ValuationResult:
    """FCF-based projection: price = compounded FCF/share / FCF yield (fraction)."""
    fcf_yield = inp.yield_or_multiple / 100.0
    return _project(inp, lambda fcf: fcf / fcf_yield)


def graham_value(eps: float, growth_pct: float, bond_yield_pct: float) -> float:
    """
    Benjamin Graham's revised intrinsic value formula.

    ``growth_pct`` and ``bond_yield_pct`` are percentages (7.61, 5.25), not
    fractions.

    Raises
    ------
    InvalidInput
        If the bond yield is zero
    """
    if bond_yield_pct == 0:
        raise InvalidInput("AAA bond yield cannot be zero")
    value = eps * (GRAHAM_BASE_PE + 2 * growth_pct) * (GRAHAM_AAA_YIELD / bond_yield_pct)
    return round(value, 2)
