"""Usage-based cost estimation and plan ranking.

Pure functions: nothing here touches flow state or the network.  The
flow controller calls :func:`rank_plans` whenever the usage profile
changes and then :func:`reconcile_selection` to keep (or drop) the
user's chosen plan.

Cost model::

    annual  = sum(monthly_kwh) * rate_per_kwh_cents / 100 + 12 * monthly_fee
    monthly = annual / 12

Badges are evaluated independently of rank position:

- the cheapest plan that is not 100% renewable gets ``BEST_VALUE``
- every plan with renewable percentage >= 100 gets ``GREEN``
- a plan carries at most one badge, best-value checked first
"""

from __future__ import annotations

import dataclasses
import datetime
from collections.abc import Sequence

from movein.models import HomeDetails, PlanBadge, ServicePlan, UsageProfile

DEFAULT_VISIBLE_PLANS = 3

# Monthly multipliers applied to a single average figure (Jan-Dec).
SEASONAL_MULTIPLIERS: tuple[float, ...] = (
    0.85, 0.80, 0.85, 0.95, 1.10, 1.30, 1.40, 1.40, 1.20, 1.00, 0.90, 0.85,
)

USAGE_PRESETS: dict[str, int] = {
    "small": 600,
    "medium": 1000,
    "large": 1500,
}

MIN_MONTHLY_USAGE = 400
MAX_MONTHLY_USAGE = 2500
USAGE_STEP = 50


# ---------------------------------------------------------------------------
# Cost
# ---------------------------------------------------------------------------


def annual_cost(
    usage: Sequence[float],
    rate_per_kwh_cents: float,
    monthly_fee: float,
) -> float:
    """Return the yearly cost in dollars for a 12-month usage profile.

    :param usage: Twelve non-negative monthly kWh values.
    :param rate_per_kwh_cents: Energy rate in hundredths of a dollar per kWh.
    :param monthly_fee: Flat dollar amount billed every month.
    :raises ValueError: If *usage* is not 12 non-negative values.
    """
    if len(usage) != 12:
        raise ValueError(f"Expected 12 monthly usage values, got {len(usage)}")
    if any(v < 0 for v in usage):
        raise ValueError("Usage values must be non-negative")
    energy = sum(usage) * rate_per_kwh_cents / 100
    return energy + 12 * monthly_fee


def monthly_estimate(
    usage: Sequence[float],
    rate_per_kwh_cents: float,
    monthly_fee: float,
) -> float:
    """Average monthly cost; always ``annual_cost(...) / 12``."""
    return annual_cost(usage, rate_per_kwh_cents, monthly_fee) / 12


def price_plan(plan: ServicePlan, usage: Sequence[float]) -> ServicePlan:
    """Return a copy of *plan* with ``annual_cost`` and ``monthly_estimate`` filled in."""
    yearly = annual_cost(usage, plan.rate.rate_per_kwh_cents, plan.rate.monthly_fee)
    return dataclasses.replace(plan, annual_cost=yearly, monthly_estimate=yearly / 12)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def assign_badges(plans: Sequence[ServicePlan]) -> list[ServicePlan]:
    """Attach badges to already-priced plans without changing their order."""
    best_value_id: str | None = None
    cheapest: float | None = None
    for plan in plans:
        if plan.is_green or plan.annual_cost is None:
            continue
        # Strict comparison keeps the earliest plan on ties.
        if cheapest is None or plan.annual_cost < cheapest:
            cheapest = plan.annual_cost
            best_value_id = plan.id

    badged: list[ServicePlan] = []
    for plan in plans:
        badge: PlanBadge | None = None
        if plan.id == best_value_id:
            badge = PlanBadge.BEST_VALUE
        elif plan.is_green:
            badge = PlanBadge.GREEN
        badged.append(dataclasses.replace(plan, badge=badge))
    return badged


def rank_plans(plans: Sequence[ServicePlan], usage: Sequence[float]) -> list[ServicePlan]:
    """Price, sort and badge *plans* for *usage*.

    Sorting is ascending by annual cost.  Python's sort is stable, so
    plans with equal cost keep their catalog order.
    """
    priced = [price_plan(p, usage) for p in plans]
    ranked = sorted(priced, key=lambda p: p.annual_cost)
    return assign_badges(ranked)


def visible_plans(
    ranked: Sequence[ServicePlan],
    *,
    show_all: bool = False,
    limit: int = DEFAULT_VISIBLE_PLANS,
) -> list[ServicePlan]:
    """Plans to display: the top *limit* by default, everything with *show_all*."""
    if show_all:
        return list(ranked)
    return list(ranked[:limit])


def best_value_plan(ranked: Sequence[ServicePlan]) -> ServicePlan | None:
    """The badged best-value plan, else the first ranked plan."""
    for plan in ranked:
        if plan.badge is PlanBadge.BEST_VALUE:
            return plan
    return ranked[0] if ranked else None


def reconcile_selection(
    selected_id: str | None,
    ranked: Sequence[ServicePlan],
) -> ServicePlan | None:
    """Re-resolve a selection by plan id after a re-rank.

    Returns the refreshed plan when its id survives, otherwise ``None``.
    No substitute plan is ever chosen here.
    """
    if selected_id is None:
        return None
    for plan in ranked:
        if plan.id == selected_id:
            return plan
    return None


# ---------------------------------------------------------------------------
# Usage profiles
# ---------------------------------------------------------------------------


def seasonal_usage(monthly_kwh: float) -> tuple[int, ...]:
    """Spread an average monthly figure over the year."""
    return tuple(round(monthly_kwh * m) for m in SEASONAL_MULTIPLIERS)


def adjusted_profile(monthly_kwh: float, previous: UsageProfile | None = None) -> UsageProfile:
    """Build a user-adjusted profile, keeping home facts from *previous*.

    :raises ValueError: If *monthly_kwh* is outside the slider bounds.
    """
    if not MIN_MONTHLY_USAGE <= monthly_kwh <= MAX_MONTHLY_USAGE:
        raise ValueError(
            f"Monthly usage must be between {MIN_MONTHLY_USAGE} and {MAX_MONTHLY_USAGE} kWh"
        )
    return UsageProfile(
        usage=seasonal_usage(monthly_kwh),
        home_age=previous.home_age if previous else 0,
        square_footage=previous.square_footage if previous else 0,
        found_home_details=False,
        user_adjusted=True,
    )


def home_details(profile: UsageProfile, *, today: datetime.date | None = None) -> HomeDetails:
    today = today or datetime.date.today()
    return HomeDetails(
        square_footage=profile.square_footage,
        home_age=profile.home_age,
        year_built=today.year - profile.home_age if profile.home_age > 0 else 0,
        annual_kwh=profile.annual_kwh,
        found_details=profile.found_home_details,
    )
