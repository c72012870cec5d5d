from datetime import datetime, time, timezone
from typing import Optional

from ..schemas import BillingPeriod, BillRecord, CostSummary, ForecastSeries, SolarEfficiency, UsageSummary

UNCATEGORIZED = "Uncategorized"
DEFAULT_DAYS = 30


def days_in_period(bill: BillRecord) -> int:
    if bill.period is None:
        return DEFAULT_DAYS
    return bill.period.days


def usage_change_pct(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100.0


def analyze_usage(bill: BillRecord) -> UsageSummary:
    return UsageSummary(
        current=bill.energy_usage_kwh,
        previous=bill.previous_usage_kwh,
        change=usage_change_pct(bill.energy_usage_kwh, bill.previous_usage_kwh),
        average_daily=bill.average_daily_usage_kwh,
        days=days_in_period(bill),
    )


def share_pct(amount: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return min(100.0, max(0.0, amount / total * 100.0))


def dominant_cost_driver(charges: dict) -> tuple[str, float]:
    # First category wins ties, matching the extraction order.
    if not charges:
        return UNCATEGORIZED, 0.0
    name, amount = UNCATEGORIZED, 0.0
    for category, value in charges.items():
        if name == UNCATEGORIZED or value > amount:
            name, amount = category, value
    return name, amount


def derive_unit_rate(bill: BillRecord) -> float:
    """Effective cost per kWh across every charge on the bill."""
    if bill.energy_usage_kwh <= 0:
        return 0.0
    return bill.total_amount / bill.energy_usage_kwh


def analyze_costs(bill: BillRecord) -> CostSummary:
    charges = dict(bill.charges)
    largest, amount = dominant_cost_driver(charges)
    shares = {name: share_pct(value, bill.total_amount) for name, value in charges.items()}
    return CostSummary(
        breakdown=charges,
        shares=shares,
        largest_expense=largest,
        largest_share=share_pct(amount, bill.total_amount) if charges else 0.0,
        largest_amount=amount,
        breakdown_total=sum(charges.values()),
        effective_unit_rate=derive_unit_rate(bill),
    )


def efficiency_pct(actual: float, ideal: float) -> float:
    if ideal <= 0:
        return 0.0
    return actual / ideal * 100.0


def _window(period: Optional[BillingPeriod]):
    if period is None:
        return None, None
    start = datetime.combine(period.start, time.min, tzinfo=timezone.utc)
    end = datetime.combine(period.end, time.min, tzinfo=timezone.utc)
    return start, end


def ideal_generation(forecast: ForecastSeries, period: Optional[BillingPeriod] = None) -> float:
    """Sum of the forecast track, restricted to samples ending inside the billing period."""
    start, end = _window(period)
    total = 0.0
    for sample in forecast.forecasts:
        if start is not None and not (start < sample.period_end <= end):
            continue
        total += sample.pv_estimate
    return total


def solar_efficiency(actual_kwh: float, forecast: ForecastSeries,
                     period: Optional[BillingPeriod] = None) -> SolarEfficiency:
    # The billed generation is authoritative; the provider's actuals track is not used here.
    ideal = ideal_generation(forecast, period)
    return SolarEfficiency(
        efficiency=efficiency_pct(actual_kwh, ideal),
        ideal_generation=ideal,
        actual_generation=actual_kwh,
        potential_savings=max(0.0, ideal - actual_kwh),
    )
