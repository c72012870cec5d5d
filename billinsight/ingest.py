# Bill record validation and cohort loading.
# Upstream extraction hands us loosely typed dicts; "Unknown" marks a field it could not resolve.

import logging
import math
import re
from datetime import timedelta
from typing import Optional

import pandas as pd

from .errors import IncompleteBillError, MalformedBillingPeriod
from .schemas import BillingPeriod, BillRecord, CohortMember, GeoLocation

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
DEFAULT_BILLING_DAYS = 30
COST_TOLERANCE_FRACTION = 0.01
COST_TOLERANCE_MIN = 0.01

_PERIOD_SPLIT = re.compile(r"\s*[–—]\s*|\s+(?:-|to|through|until)\s+", re.IGNORECASE)
_NUMBER = re.compile(r"-?\d[\d,]*(?:\.\d+)?")


def coerce_number(value) -> Optional[float]:
    """Turn '$1,234.50', 'Rs. 450', '450 kWh', 12 or 'Unknown' into a float (or None).

    The first numeric token wins; currency prefixes and unit suffixes are ignored.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text or text.lower() == UNKNOWN.lower():
            return None
        match = _NUMBER.search(text)
        if match is None:
            return None
        number = float(match.group().replace(",", ""))
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _is_unknown(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in ("", UNKNOWN.lower()))


def parse_billing_period(text: str) -> BillingPeriod:
    """Parse 'Jan 1, 2024 - Jan 31, 2024' style labels into a half-open range.

    The printed end date is inclusive, so the range ends the day after it.
    """
    if _is_unknown(text):
        raise MalformedBillingPeriod(text)
    parts = [p.strip() for p in _PERIOD_SPLIT.split(str(text).strip())]
    if len(parts) != 2 or not all(parts):
        raise MalformedBillingPeriod(text)
    # Both ends share one inferred format; day-first is the fallback for DD/MM labels.
    try:
        dates = pd.to_datetime(parts)
    except (ValueError, TypeError, OverflowError):
        try:
            dates = pd.to_datetime(parts, dayfirst=True)
        except (ValueError, TypeError, OverflowError) as e:
            raise MalformedBillingPeriod(text) from e
    start, last = dates[0].date(), dates[1].date()
    if last < start:
        raise MalformedBillingPeriod(text)
    return BillingPeriod(start=start, end=last + timedelta(days=1), label=str(text).strip())


def _parse_location(raw) -> Optional[GeoLocation]:
    if not isinstance(raw, dict):
        return None
    lat = coerce_number(raw.get("latitude"))
    lon = coerce_number(raw.get("longitude"))
    if lat is None or lon is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return GeoLocation(latitude=lat, longitude=lon)


def _parse_amounts(raw, label: str, warnings: list[str]) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    amounts = {}
    for name, value in raw.items():
        number = coerce_number(value)
        if number is None or number < 0:
            warnings.append(f"Ignored {label} entry {name!r}: not a non-negative number")
            continue
        amounts[str(name)] = number
    return amounts


def data_quality_score(warnings: list[str]) -> float:
    score = 1.0 - 0.2 * len(warnings)
    return max(0.0, round(score, 2))


def validate_bill(raw: dict) -> BillRecord:
    """Check and normalise an extracted bill.

    Only totalAmount and energyUsage are mandatory; everything else falls back to
    a documented default and leaves a warning on the record.
    """
    total = coerce_number(raw.get("totalAmount"))
    usage = coerce_number(raw.get("energyUsage"))
    missing = []
    if total is None or total < 0:
        missing.append("totalAmount")
    if usage is None or usage < 0:
        missing.append("energyUsage")
    if missing:
        raise IncompleteBillError(missing)

    warnings = []

    previous = coerce_number(raw.get("previousUsage"))
    if previous is None or previous < 0:
        previous = usage
        warnings.append("previousUsage missing; assumed equal to current usage")

    average_daily = coerce_number(raw.get("averageDailyUsage"))
    if average_daily is None or average_daily < 0:
        average_daily = usage / DEFAULT_BILLING_DAYS
        warnings.append(f"averageDailyUsage missing; derived from a {DEFAULT_BILLING_DAYS}-day period")

    label = "" if _is_unknown(raw.get("billingPeriod")) else str(raw["billingPeriod"]).strip()
    try:
        period = parse_billing_period(label)
    except MalformedBillingPeriod:
        period = None
        warnings.append(f"Billing period {label!r} could not be parsed")

    location = _parse_location(raw.get("location"))
    if location is None:
        warnings.append("Location missing or invalid")

    solar = coerce_number(raw.get("solarGeneration"))
    if solar is None or solar < 0:
        solar = 0.0

    rates = _parse_amounts(raw.get("rates"), "rate", warnings)
    charges = _parse_amounts(raw.get("charges"), "charge", warnings)
    if charges:
        charges_total = sum(charges.values())
        tolerance = max(COST_TOLERANCE_MIN, total * COST_TOLERANCE_FRACTION)
        if abs(charges_total - total) > tolerance:
            warnings.append(
                f"Cost breakdown sums to {charges_total:.2f}, total amount is {total:.2f}"
            )

    for w in warnings:
        logger.info("Bill validation: %s", w)

    return BillRecord(
        account_id="" if _is_unknown(raw.get("accountNumber")) else str(raw["accountNumber"]),
        billing_period=label,
        period=period,
        total_amount=total,
        due_date="" if _is_unknown(raw.get("dueDate")) else str(raw["dueDate"]),
        energy_usage_kwh=usage,
        previous_usage_kwh=previous,
        average_daily_usage_kwh=average_daily,
        location=location,
        solar_generation_kwh=solar,
        rates=rates,
        charges=charges,
        warnings=tuple(warnings),
        data_quality_score=data_quality_score(warnings),
    )


def parse_cohort_csv(file_path: str) -> list[CohortMember]:
    """Load peer systems from a CSV.

    Columns: name, actual_generation, expected_generation, system_size_kw,
    location, and optionally id.
    """
    df = pd.read_csv(file_path)
    members = []
    for i, row in df.iterrows():
        member_id = row["id"] if "id" in df.columns and pd.notna(row["id"]) else f"home-{i}"
        members.append(CohortMember(
            id=str(member_id),
            name=str(row["name"]),
            actual_generation=float(row["actual_generation"]),
            expected_generation=float(row["expected_generation"]),
            system_size_kw=float(row["system_size_kw"]),
            location=str(row["location"]),
        ))
    return members
