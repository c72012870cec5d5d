# Insight rule table.
# Each rule looks at the analysis context and returns one Insight or None.
# RULES order is the emission order consumers rely on; append new rules at the end.

import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..engine.calculations import UNCATEGORIZED
from ..schemas import BillRecord, CostSummary, Insight, PeerComparison, SolarEfficiency, UsageSummary

USAGE_CHANGE_THRESHOLD_PCT = 10.0
TIER_ESCALATION_KWH = 500.0
SOLAR_EFFICIENCY_WARNING_PCT = 70.0
SOLAR_POTENTIAL_TIP_KWH = 50.0
PEER_SCORE_TIP_THRESHOLD = 90

INFO, WARNING, TIP = "info", "warning", "tip"
SCOPE_PHRASES = {"neighborhood": "in your neighborhood", "city": "across your city"}

_TIER_1 = re.compile(r"\btier\s*1\b", re.IGNORECASE)
_TIER_2 = re.compile(r"\btier\s*2\b", re.IGNORECASE)


@dataclass(frozen=True)
class InsightContext:
    bill: BillRecord
    usage: UsageSummary
    costs: CostSummary
    solar: Optional[SolarEfficiency] = None
    comparison: Optional[PeerComparison] = None


def find_rate(rates, pattern) -> Optional[float]:
    for name, rate in rates.items():
        if pattern.search(name):
            return rate
    return None


def usage_spike(ctx: InsightContext) -> Optional[Insight]:
    if ctx.usage.change <= USAGE_CHANGE_THRESHOLD_PCT:
        return None
    return Insight(
        title="Usage Increase Alert",
        description=f"Your energy usage has increased by {ctx.usage.change:.1f}% compared to last month.",
        type=WARNING,
        value=ctx.usage.current,
        compare_value=ctx.usage.previous,
        change=ctx.usage.change,
    )


def usage_drop(ctx: InsightContext) -> Optional[Insight]:
    if ctx.usage.change >= -USAGE_CHANGE_THRESHOLD_PCT:
        return None
    return Insight(
        title="Usage Reduction",
        description=(f"Great job! Your energy usage has decreased by {abs(ctx.usage.change):.1f}% "
                     "compared to last month."),
        type=INFO,
        value=ctx.usage.current,
        compare_value=ctx.usage.previous,
        change=ctx.usage.change,
    )


def daily_average(ctx: InsightContext) -> Optional[Insight]:
    return Insight(
        title="Daily Consumption",
        description=f"Your average daily consumption is {ctx.usage.average_daily:.1f} kWh.",
        type=INFO,
        value=ctx.usage.average_daily,
    )


def cost_driver(ctx: InsightContext) -> Optional[Insight]:
    description = f"{ctx.costs.largest_expense} makes up {ctx.costs.largest_share:.1f}% of your total bill."
    if ctx.costs.largest_expense == UNCATEGORIZED:
        description += " No cost breakdown was available for this bill."
    return Insight(
        title="Main Cost Driver",
        description=description,
        type=INFO,
        value=ctx.costs.largest_amount,
        compare_value=ctx.bill.total_amount,
    )


def tier_escalation(ctx: InsightContext) -> Optional[Insight]:
    if ctx.bill.energy_usage_kwh <= TIER_ESCALATION_KWH:
        return None
    tier2 = find_rate(ctx.bill.rates, _TIER_2)
    if tier2 is None:
        return None
    return Insight(
        title="Rate Tier Impact",
        description="Your usage has entered the higher rate tier, which increases your cost per kWh.",
        type=TIP,
        value=tier2,
        compare_value=find_rate(ctx.bill.rates, _TIER_1),
    )


def solar_efficiency(ctx: InsightContext) -> Optional[Insight]:
    if ctx.solar is None:
        return None
    return Insight(
        title="Solar Efficiency",
        description=(f"Your solar panels are operating at {ctx.solar.efficiency:.1f}% efficiency "
                     "compared to ideal forecasted production."),
        type=WARNING if ctx.solar.efficiency < SOLAR_EFFICIENCY_WARNING_PCT else INFO,
        value=ctx.solar.efficiency,
        compare_value=100.0,
    )


def solar_optimization(ctx: InsightContext) -> Optional[Insight]:
    if ctx.solar is None or ctx.solar.potential_savings <= SOLAR_POTENTIAL_TIP_KWH:
        return None
    return Insight(
        title="Optimization Opportunity",
        description=(f"You could generate an additional {ctx.solar.potential_savings:.0f} kWh "
                     "with optimal solar panel performance."),
        type=TIP,
        value=ctx.solar.potential_savings,
    )


def peer_ranking(ctx: InsightContext) -> Optional[Insight]:
    c = ctx.comparison
    if c is None:
        return None
    where = SCOPE_PHRASES.get(c.scope, "nearby")
    description = (f"Your system ranks #{c.user_rank} of {len(c.ranking)} systems {where} "
                   f"with a score of {c.user_score}%.")
    if c.user_score < PEER_SCORE_TIP_THRESHOLD:
        description += " " + "; ".join(c.suggestions) + "."
    return Insight(
        title="Peer Ranking",
        description=description,
        type=TIP if c.user_score < PEER_SCORE_TIP_THRESHOLD else INFO,
        value=float(c.user_rank),
        compare_value=float(len(c.ranking)),
    )


RULES: tuple[Callable[[InsightContext], Optional[Insight]], ...] = (
    usage_spike,
    usage_drop,
    daily_average,
    cost_driver,
    tier_escalation,
    solar_efficiency,
    solar_optimization,
    peer_ranking,
)


def synthesize_insights(ctx: InsightContext, rules=RULES) -> list[Insight]:
    insights = []
    for rule in rules:
        insight = rule(ctx)
        if insight is not None:
            insights.append(insight)
    return insights
