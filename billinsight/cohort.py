# Cohort sources for the peer comparator.
# Any callable (GeoLocation, BillingPeriod) -> list[CohortMember] will do; these two cover demos and files.

import random
from typing import Callable, Optional

from .ingest import parse_cohort_csv
from .schemas import BillingPeriod, CohortMember, GeoLocation

CohortSource = Callable[[Optional[GeoLocation], Optional[BillingPeriod]], list]

DEMO_HOMES = [
    ("Solar Home A", 5.2, "Nearby"),
    ("Solar Home B", 4.8, "Nearby"),
    ("Solar Home C", 6.0, "Nearby"),
    ("Solar Home D", 3.5, "Same Block"),
    ("Solar Home E", 7.2, "Adjacent Area"),
    ("Solar Home F", 4.0, "Same Block"),
    ("Solar Home G", 5.8, "Nearby"),
    ("Solar Home H", 4.5, "Adjacent Area"),
]
KWH_PER_KW = 150.0  # expected monthly yield per installed kW
HISTORY_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]


class FixtureCohort:
    """Demo neighbourhood with 70-130% performance jitter, reproducible per seed."""

    def __init__(self, seed: int = 0, homes=None):
        self.seed = seed
        self.homes = list(homes or DEMO_HOMES)

    def __call__(self, location=None, period=None) -> list[CohortMember]:
        rng = random.Random(self.seed)
        members = []
        for index, (name, size, bucket) in enumerate(self.homes):
            expected = size * KWH_PER_KW
            actual = expected * (0.7 + rng.random() * 0.6)
            members.append(CohortMember(
                id=f"home-{index}",
                name=name,
                actual_generation=float(round(actual)),
                expected_generation=float(round(expected)),
                system_size_kw=size,
                location=bucket,
            ))
        return members

    def history(self) -> list[tuple]:
        rng = random.Random(self.seed)
        months = []
        for month in HISTORY_MONTHS:
            expected = 450 + rng.random() * 100
            actual = expected * (0.75 + rng.random() * 0.35)
            months.append((month, float(round(actual)), float(round(expected))))
        return months


class CsvCohort:
    def __init__(self, file_path: str):
        self.file_path = file_path

    def __call__(self, location=None, period=None) -> list[CohortMember]:
        return parse_cohort_csv(self.file_path)
