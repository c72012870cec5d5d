import logging
import math
import random
import threading
import time
from collections import OrderedDict
from datetime import datetime, time as dtime, timezone
from typing import Optional

import pandas as pd
import requests

from .config import SolcastConfig
from .errors import ForecastUnavailable
from .schemas import BillingPeriod, ForecastSample, ForecastSeries, GeoLocation

logger = logging.getLogger(__name__)

ESTIMATED_ACTUALS_PATH = "/pv_power/estimated_actuals"
FORECASTS_PATH = "/pv_power/forecasts"
CACHE_SIZE = 128  # (location, period) entries kept per client


def _iso(d) -> str:
    return datetime.combine(d, dtime.min, tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_samples(payload, key: str) -> tuple:
    """Read a `{key: [{period_end, period, pv_estimate}, ...]}` response body."""
    if not isinstance(payload, dict):
        raise ForecastUnavailable(f"Unexpected response body for {key}")
    rows = payload.get(key) or []
    samples = []
    try:
        for row in rows:
            period_end = pd.to_datetime(row["period_end"], utc=True)
            pv_estimate = float(row["pv_estimate"])
            if period_end is None or pd.isna(period_end):
                raise ValueError(f"missing period_end in {row!r}")
            if not math.isfinite(pv_estimate) or pv_estimate < 0:
                raise ValueError(f"pv_estimate {pv_estimate!r} is not a non-negative number")
            samples.append(ForecastSample(
                period_end=period_end.to_pydatetime(),
                period=str(row.get("period", "")),
                pv_estimate=pv_estimate,
            ))
    except (KeyError, TypeError, ValueError) as e:
        raise ForecastUnavailable(f"Malformed {key} sample: {e}") from e
    return tuple(samples)


class SolcastClient:
    """Fetches estimated actuals and forecasts for a rooftop PV site.

    Successful fetches are memoised per (location, period), oldest evicted
    past `cache_size`; failures are not cached.
    """

    def __init__(self, config: SolcastConfig, session: Optional[requests.Session] = None,
                 cache_size: int = CACHE_SIZE):
        self.config = config
        self.session = session or requests.Session()
        self.cache_size = max(1, cache_size)
        self._cache: OrderedDict = OrderedDict()
        self._lock = threading.Lock()

    def _params(self, location: GeoLocation, period: BillingPeriod) -> dict:
        return {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "capacity": self.config.capacity_kw,
            "start": _iso(period.start),
            "end": _iso(period.end),
            "format": "json",
            "api_key": self.config.api_key,
        }

    def _get(self, path: str, params: dict):
        url = self.config.base_url.rstrip("/") + path
        attempts = 1 + max(0, self.config.retries)
        for attempt in range(attempts):
            try:
                resp = self.session.get(url, params=params, timeout=self.config.timeout_s)
                resp.raise_for_status()
                return resp.json()
            except (requests.RequestException, ValueError) as e:
                if attempt + 1 < attempts:
                    delay = random.uniform(0, self.config.retry_jitter_s)
                    logger.info("Solcast request to %s failed (%s); retrying in %.2fs", path, e, delay)
                    time.sleep(delay)
                    continue
                raise ForecastUnavailable(f"Solcast request to {path} failed: {e}") from e

    def fetch(self, location: GeoLocation, period: BillingPeriod) -> ForecastSeries:
        if not self.config.enabled:
            raise ForecastUnavailable("No Solcast API key configured")
        key = (location.latitude, location.longitude, period.start, period.end)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
        if cached is not None:
            return cached

        params = self._params(location, period)
        actuals = parse_samples(self._get(ESTIMATED_ACTUALS_PATH, params), "estimated_actuals")
        forecasts = parse_samples(self._get(FORECASTS_PATH, params), "forecasts")
        series = ForecastSeries(estimated_actuals=actuals, forecasts=forecasts)
        logger.debug("Fetched %d actual and %d forecast samples for %s",
                     len(actuals), len(forecasts), key)

        with self._lock:
            self._cache[key] = series
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return series
