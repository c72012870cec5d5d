import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Optional, Union

from .cohort import CohortSource
from .config import SolcastConfig
from .engine.calculations import analyze_costs, analyze_usage, solar_efficiency
from .errors import ForecastUnavailable
from .ingest import validate_bill
from .rules.insight_rules import InsightContext, synthesize_insights
from .schemas import (
    BillRecord, CostSummary, ForecastSeries, Insight, InsightBundle, PeerComparison,
    SolarEfficiency, UsageSummary,
)
from .scoring import compare_with_peers
from .solcast import SolcastClient

logger = logging.getLogger(__name__)


def assemble_bundle(bill: BillRecord, usage: UsageSummary, costs: CostSummary,
                    insights: list[Insight], solar: Optional[SolarEfficiency] = None,
                    comparison: Optional[PeerComparison] = None) -> InsightBundle:
    return InsightBundle(
        total_amount=bill.total_amount,
        due_date=bill.due_date,
        billing_period=bill.billing_period,
        usage=usage,
        costs=costs,
        insights=tuple(insights),
        solar=solar,
        comparison=comparison,
        warnings=bill.warnings,
        data_quality_score=bill.data_quality_score,
    )


def _usage_and_costs(bill: BillRecord) -> tuple[UsageSummary, CostSummary]:
    return analyze_usage(bill), analyze_costs(bill)


def _peer_comparison(bill: BillRecord, solar: SolarEfficiency, cohort_source: Optional[CohortSource],
                     scope: str) -> Optional[PeerComparison]:
    if cohort_source is None:
        return None
    try:
        cohort = list(cohort_source(bill.location, bill.period))
    except Exception:
        logger.warning("Cohort source failed; peer comparison skipped", exc_info=True)
        return None
    return compare_with_peers(solar, cohort, scope=scope)


def derive_solar(bill: BillRecord, forecast: Optional[ForecastSeries],
                 cohort_source: Optional[CohortSource] = None,
                 scope: str = "city") -> tuple[Optional[SolarEfficiency], Optional[PeerComparison]]:
    if forecast is None:
        return None, None
    solar = solar_efficiency(bill.solar_generation_kwh, forecast, bill.period)
    return solar, _peer_comparison(bill, solar, cohort_source, scope)


def build_bundle(bill: BillRecord, forecast: Optional[ForecastSeries] = None,
                 cohort_source: Optional[CohortSource] = None, scope: str = "city") -> InsightBundle:
    """Pure analysis of an already validated bill and an already fetched forecast."""
    usage, costs = _usage_and_costs(bill)
    solar, comparison = derive_solar(bill, forecast, cohort_source, scope)
    ctx = InsightContext(bill=bill, usage=usage, costs=costs, solar=solar, comparison=comparison)
    return assemble_bundle(bill, usage, costs, synthesize_insights(ctx), solar, comparison)


def fetch_forecast(bill: BillRecord, client: Optional[SolcastClient]) -> Optional[ForecastSeries]:
    """Forecast for the bill's period, or None when the solar branch does not apply."""
    if not bill.has_solar:
        return None
    if bill.period is None:
        logger.warning("Billing period %r is malformed; skipping solar analysis", bill.billing_period)
        return None
    if bill.location is None:
        logger.info("No location on bill %s; skipping solar analysis", bill.account_id or "<unknown>")
        return None
    if client is None or not client.config.enabled:
        logger.info("No Solcast credential supplied; skipping solar analysis")
        return None
    try:
        return client.fetch(bill.location, bill.period)
    except ForecastUnavailable as e:
        logger.warning("Solar forecast unavailable: %s", e)
        return None


def analyze_bill(raw: Union[dict, BillRecord], config: Optional[SolcastConfig] = None, *,
                 client: Optional[SolcastClient] = None,
                 cohort_source: Optional[CohortSource] = None,
                 scope: str = "city",
                 executor: Optional[Executor] = None) -> InsightBundle:
    """Validate a bill and produce its InsightBundle.

    Usage/cost analysis and the solar fetch run side by side and are joined
    before synthesis. Only IncompleteBillError is raised; every solar problem
    results in a bundle without a solar block.
    """
    bill = raw if isinstance(raw, BillRecord) else validate_bill(raw)
    if client is None and config is not None:
        client = SolcastClient(config)

    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="billinsight")
    try:
        costs_future = pool.submit(_usage_and_costs, bill)
        solar_future = pool.submit(
            lambda: derive_solar(bill, fetch_forecast(bill, client), cohort_source, scope)
        )
        usage, costs = costs_future.result()
        solar, comparison = solar_future.result()
    finally:
        if own_executor:
            pool.shutdown(wait=True)

    ctx = InsightContext(bill=bill, usage=usage, costs=costs, solar=solar, comparison=comparison)
    return assemble_bundle(bill, usage, costs, synthesize_insights(ctx), solar, comparison)
