from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from billinsight.config import SolcastConfig
from billinsight.errors import ForecastUnavailable
from billinsight.schemas import BillingPeriod, GeoLocation
from billinsight.solcast import SolcastClient, parse_samples

LOCATION = GeoLocation(latitude=-33.86, longitude=151.21)
PERIOD = BillingPeriod(start=date(2024, 3, 1), end=date(2024, 4, 1))
CONFIG = SolcastConfig(api_key="test-key")


def test_fetch_both_tracks(solcast_session):
    session = solcast_session(forecast_total=375.0, actuals_total=330.0)
    series = SolcastClient(CONFIG, session=session).fetch(LOCATION, PERIOD)

    assert len(series.forecasts) == 15
    assert len(series.estimated_actuals) == 15
    assert sum(s.pv_estimate for s in series.forecasts) == pytest.approx(375.0)
    assert series.forecasts[0].period_end == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert series.forecasts[0].period == "PT30M"

    urls = [c.args[0] for c in session.get.call_args_list]
    assert urls == [
        "https://api.solcast.com.au/pv_power/estimated_actuals",
        "https://api.solcast.com.au/pv_power/forecasts",
    ]


def test_request_parameters(solcast_session):
    session = solcast_session()
    SolcastClient(CONFIG, session=session).fetch(LOCATION, PERIOD)
    kwargs = session.get.call_args.kwargs
    assert kwargs["timeout"] == 15.0
    assert kwargs["params"] == {
        "latitude": -33.86,
        "longitude": 151.21,
        "capacity": 5.0,
        "start": "2024-03-01T00:00:00Z",
        "end": "2024-04-01T00:00:00Z",
        "format": "json",
        "api_key": "test-key",
    }


def test_results_are_cached(solcast_session):
    session = solcast_session()
    client = SolcastClient(CONFIG, session=session)
    first = client.fetch(LOCATION, PERIOD)
    second = client.fetch(LOCATION, PERIOD)
    assert first is second
    assert session.get.call_count == 2


def test_missing_credential():
    session = Mock(spec=requests.Session)
    with pytest.raises(ForecastUnavailable):
        SolcastClient(SolcastConfig(api_key="  "), session=session).fetch(LOCATION, PERIOD)
    session.get.assert_not_called()


@pytest.mark.parametrize("error", [requests.ConnectionError("boom"), requests.Timeout("slow")])
def test_transport_errors(solcast_session, error):
    with pytest.raises(ForecastUnavailable) as exc:
        SolcastClient(CONFIG, session=solcast_session(error=error)).fetch(LOCATION, PERIOD)
    assert exc.value.__cause__ is error


def test_non_2xx_response():
    resp = Mock()
    resp.raise_for_status.side_effect = requests.HTTPError("429 Too Many Requests")
    session = Mock(spec=requests.Session)
    session.get.return_value = resp
    client = SolcastClient(CONFIG, session=session)
    with pytest.raises(ForecastUnavailable):
        client.fetch(LOCATION, PERIOD)
    # failures are not cached
    with pytest.raises(ForecastUnavailable):
        client.fetch(LOCATION, PERIOD)
    assert session.get.call_count == 2


def test_single_retry(solcast_session):
    healthy = solcast_session()
    session = Mock(spec=requests.Session)
    session.get.side_effect = [requests.ConnectionError("reset")] + [
        healthy.get(url) for url in ("x/estimated_actuals", "x/forecasts")
    ]
    config = SolcastConfig(api_key="test-key", retries=1, retry_jitter_s=0.0)
    series = SolcastClient(config, session=session).fetch(LOCATION, PERIOD)
    assert len(series.forecasts) == 15
    assert session.get.call_count == 3


def test_empty_tracks_are_valid():
    series_payload = {"forecasts": []}
    assert parse_samples(series_payload, "forecasts") == ()
    assert parse_samples({}, "forecasts") == ()


@pytest.mark.parametrize("payload", [
    {"forecasts": [{"period_end": "2024-03-01T12:00:00Z", "period": "PT30M"}]},
    {"forecasts": [{"period_end": "not a time", "period": "PT30M", "pv_estimate": 1.0}]},
    {"forecasts": [{"period_end": "2024-03-01T12:00:00Z", "pv_estimate": "lots"}]},
    {"forecasts": [{"period_end": "2024-03-01T12:00:00Z", "period": "PT30M", "pv_estimate": "NaN"}]},
    {"forecasts": [{"period_end": "2024-03-01T12:00:00Z", "period": "PT30M", "pv_estimate": float("inf")}]},
    {"forecasts": [{"period_end": "2024-03-01T12:00:00Z", "period": "PT30M", "pv_estimate": -2.0}]},
    {"forecasts": [{"period_end": None, "period": "PT30M", "pv_estimate": 1.0}]},
    ["not", "a", "dict"],
])
def test_malformed_payload(payload):
    with pytest.raises(ForecastUnavailable):
        parse_samples(payload, "forecasts")


def test_cache_evicts_oldest_entry(solcast_session):
    session = solcast_session()
    client = SolcastClient(CONFIG, session=session, cache_size=1)
    april = BillingPeriod(start=date(2024, 4, 1), end=date(2024, 5, 1))
    client.fetch(LOCATION, PERIOD)
    client.fetch(LOCATION, april)
    client.fetch(LOCATION, april)
    assert session.get.call_count == 4
    client.fetch(LOCATION, PERIOD)
    assert session.get.call_count == 6
