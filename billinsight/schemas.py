from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Mapping, Optional


def _frozen_map(values) -> Mapping[str, float]:
    return MappingProxyType({str(k): float(v) for k, v in dict(values or {}).items()})


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class BillingPeriod:
    """Half-open date range [start, end)."""
    start: date
    end: date  # exclusive
    label: str = ""

    @property
    def days(self) -> int:
        return max(1, (self.end - self.start).days)

    @property
    def last_day(self) -> date:
        return self.end - timedelta(days=1)


@dataclass(frozen=True)
class BillRecord:
    account_id: str
    billing_period: str  # as printed on the bill
    period: Optional[BillingPeriod]  # None when the label could not be parsed
    total_amount: float
    due_date: str
    energy_usage_kwh: float
    previous_usage_kwh: float
    average_daily_usage_kwh: float
    location: Optional[GeoLocation]
    solar_generation_kwh: float  # 0 means no solar system
    rates: Mapping[str, float] = field(default_factory=dict)  # tier name -> unit rate
    charges: Mapping[str, float] = field(default_factory=dict)  # cost category -> amount
    warnings: tuple = ()
    data_quality_score: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "rates", _frozen_map(self.rates))
        object.__setattr__(self, "charges", _frozen_map(self.charges))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def has_solar(self) -> bool:
        return self.solar_generation_kwh > 0


@dataclass(frozen=True)
class ForecastSample:
    period_end: datetime  # tz-aware UTC
    period: str  # ISO-8601 duration, e.g. PT30M
    pv_estimate: float


@dataclass(frozen=True)
class ForecastSeries:
    estimated_actuals: tuple = ()  # ForecastSample, ordered by period_end
    forecasts: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "estimated_actuals", tuple(sorted(self.estimated_actuals, key=lambda s: s.period_end)))
        object.__setattr__(self, "forecasts", tuple(sorted(self.forecasts, key=lambda s: s.period_end)))


@dataclass(frozen=True)
class UsageSummary:
    current: float
    previous: float
    change: float  # signed percent
    average_daily: float
    days: int


@dataclass(frozen=True)
class CostSummary:
    breakdown: Mapping[str, float]
    shares: Mapping[str, float]  # percent of total amount
    largest_expense: str
    largest_share: float
    largest_amount: float
    breakdown_total: float
    effective_unit_rate: float  # total amount per kWh

    def __post_init__(self):
        object.__setattr__(self, "breakdown", _frozen_map(self.breakdown))
        object.__setattr__(self, "shares", _frozen_map(self.shares))


@dataclass(frozen=True)
class SolarEfficiency:
    efficiency: float  # percent
    ideal_generation: float  # kWh, sum of forecast track
    actual_generation: float  # kWh, as billed
    potential_savings: float  # kWh, max(0, ideal - actual)


@dataclass(frozen=True)
class CohortMember:
    id: str
    name: str
    actual_generation: float
    expected_generation: float
    system_size_kw: float
    location: str  # bucket, e.g. "Nearby", "Same Block"


@dataclass(frozen=True)
class RankingEntry:
    id: str
    name: str
    score: int  # 0-100
    actual_generation: float
    expected_generation: float
    system_size_kw: float
    location: str
    is_current_user: bool = False


@dataclass(frozen=True)
class PeerComparison:
    ranking: tuple  # RankingEntry, best first
    user_rank: int  # 1-based
    user_score: int
    missed_generation: float
    loss_percentage: float
    performance_tier: str  # "excellent", "fair", "poor"
    suggestions: tuple = ()
    scope: str = "city"  # "neighborhood" or "city"


@dataclass(frozen=True)
class Insight:
    title: str
    description: str
    type: str  # "info", "warning", "tip"
    value: Optional[float] = None
    compare_value: Optional[float] = None
    change: Optional[float] = None


@dataclass(frozen=True)
class InsightBundle:
    total_amount: float
    due_date: str
    billing_period: str
    usage: UsageSummary
    costs: CostSummary
    insights: tuple  # Insight, in emission order
    solar: Optional[SolarEfficiency] = None
    comparison: Optional[PeerComparison] = None
    warnings: tuple = ()
    data_quality_score: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "insights", tuple(self.insights))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def to_dict(self) -> dict:
        """Renderer-facing shape: primitives and nested dicts only."""
        out = {
            "summary": {
                "totalAmount": self.total_amount,
                "dueDate": self.due_date,
                "billingPeriod": self.billing_period,
            },
            "usage": {
                "current": self.usage.current,
                "previous": self.usage.previous,
                "change": self.usage.change,
                "averageDaily": self.usage.average_daily,
                "days": self.usage.days,
            },
            "costs": {
                "breakdown": dict(self.costs.breakdown),
                "shares": dict(self.costs.shares),
                "largestExpense": self.costs.largest_expense,
                "largestShare": self.costs.largest_share,
                "largestAmount": self.costs.largest_amount,
                "breakdownTotal": self.costs.breakdown_total,
                "effectiveUnitRate": self.costs.effective_unit_rate,
            },
            "solar": None,
            "comparison": None,
            "insights": [_insight_to_dict(i) for i in self.insights],
            "warnings": list(self.warnings),
            "dataQualityScore": self.data_quality_score,
        }
        if self.solar is not None:
            out["solar"] = {
                "efficiency": self.solar.efficiency,
                "idealGeneration": self.solar.ideal_generation,
                "actualGeneration": self.solar.actual_generation,
                "potentialSavings": self.solar.potential_savings,
            }
        if self.comparison is not None:
            c = self.comparison
            out["comparison"] = {
                "ranking": [_entry_to_dict(e) for e in c.ranking],
                "userRank": c.user_rank,
                "userScore": c.user_score,
                "missedGeneration": c.missed_generation,
                "lossPercentage": c.loss_percentage,
                "performanceTier": c.performance_tier,
                "suggestions": list(c.suggestions),
                "scope": c.scope,
            }
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "InsightBundle":
        summary, usage, costs = data["summary"], data["usage"], data["costs"]
        solar = data.get("solar")
        comparison = data.get("comparison")
        return cls(
            total_amount=summary["totalAmount"],
            due_date=summary["dueDate"],
            billing_period=summary["billingPeriod"],
            usage=UsageSummary(
                current=usage["current"],
                previous=usage["previous"],
                change=usage["change"],
                average_daily=usage["averageDaily"],
                days=usage["days"],
            ),
            costs=CostSummary(
                breakdown=costs["breakdown"],
                shares=costs["shares"],
                largest_expense=costs["largestExpense"],
                largest_share=costs["largestShare"],
                largest_amount=costs["largestAmount"],
                breakdown_total=costs["breakdownTotal"],
                effective_unit_rate=costs["effectiveUnitRate"],
            ),
            insights=tuple(
                Insight(
                    title=i["title"],
                    description=i["description"],
                    type=i["type"],
                    value=i.get("value"),
                    compare_value=i.get("compareValue"),
                    change=i.get("change"),
                )
                for i in data.get("insights", [])
            ),
            solar=SolarEfficiency(
                efficiency=solar["efficiency"],
                ideal_generation=solar["idealGeneration"],
                actual_generation=solar["actualGeneration"],
                potential_savings=solar["potentialSavings"],
            ) if solar else None,
            comparison=PeerComparison(
                ranking=tuple(
                    RankingEntry(
                        id=e["id"],
                        name=e["name"],
                        score=e["score"],
                        actual_generation=e["actualGeneration"],
                        expected_generation=e["expectedGeneration"],
                        system_size_kw=e["systemSize"],
                        location=e["location"],
                        is_current_user=e["isCurrentUser"],
                    )
                    for e in comparison["ranking"]
                ),
                user_rank=comparison["userRank"],
                user_score=comparison["userScore"],
                missed_generation=comparison["missedGeneration"],
                loss_percentage=comparison["lossPercentage"],
                performance_tier=comparison["performanceTier"],
                suggestions=tuple(comparison["suggestions"]),
                scope=comparison.get("scope", "city"),
            ) if comparison else None,
            warnings=tuple(data.get("warnings", ())),
            data_quality_score=data.get("dataQualityScore", 1.0),
        )


def _insight_to_dict(insight: Insight) -> dict:
    out = {"title": insight.title, "description": insight.description, "type": insight.type}
    if insight.value is not None:
        out["value"] = insight.value
    if insight.compare_value is not None:
        out["compareValue"] = insight.compare_value
    if insight.change is not None:
        out["change"] = insight.change
    return out


def _entry_to_dict(entry: RankingEntry) -> dict:
    return {
        "id": entry.id,
        "name": entry.name,
        "score": entry.score,
        "actualGeneration": entry.actual_generation,
        "expectedGeneration": entry.expected_generation,
        "systemSize": entry.system_size_kw,
        "location": entry.location,
        "isCurrentUser": entry.is_current_user,
    }
