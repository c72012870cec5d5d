import copy
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests

from billinsight.schemas import ForecastSample, ForecastSeries

SAMPLE_BILL = {
    "accountNumber": "1234-5678",
    "billingPeriod": "Mar 1, 2024 - Mar 31, 2024",
    "totalAmount": "$142.67",
    "dueDate": "Apr 15, 2024",
    "energyUsage": "450 kWh",
    "previousUsage": 380,
    "averageDailyUsage": 14.5,
    "location": {"latitude": -33.86, "longitude": 151.21},
    "solarGeneration": 320,
    "rates": {"Tier 1 (0-500 kWh)": 0.12, "Tier 2 (501+ kWh)": 0.15},
    "charges": {"Energy Charge": 98.5, "Delivery Charge": 32.17, "Taxes & Fees": 12.0},
}


@pytest.fixture
def raw_bill():
    return copy.deepcopy(SAMPLE_BILL)


def forecast_rows(total: float, count: int = 15, start=datetime(2024, 3, 1, 12, tzinfo=timezone.utc)):
    step = total / count
    return [
        {
            "period_end": (start + timedelta(days=i)).isoformat().replace("+00:00", "Z"),
            "period": "PT30M",
            "pv_estimate": step,
        }
        for i in range(count)
    ]


@pytest.fixture
def make_forecast():
    """ForecastSeries whose forecast track sums to `total` inside March 2024."""
    def _make(total: float = 375.0, count: int = 15) -> ForecastSeries:
        start = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        samples = [
            ForecastSample(period_end=start + timedelta(days=i), period="PT30M", pv_estimate=total / count)
            for i in range(count)
        ]
        return ForecastSeries(estimated_actuals=samples, forecasts=samples)
    return _make


def _response(payload, status_error=None):
    resp = Mock()
    resp.json.return_value = payload
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    return resp


@pytest.fixture
def solcast_session():
    """Mock requests.Session answering both Solcast endpoints."""
    def _make(forecast_total: float = 375.0, actuals_total: float = 330.0, error=None):
        session = Mock(spec=requests.Session)

        def get(url, params=None, timeout=None):
            if error is not None:
                raise error
            if url.endswith("/estimated_actuals"):
                return _response({"estimated_actuals": forecast_rows(actuals_total)})
            return _response({"forecasts": forecast_rows(forecast_total)})

        session.get.side_effect = get
        return session
    return _make
