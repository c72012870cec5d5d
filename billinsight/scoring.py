import math

from .schemas import CohortMember, PeerComparison, RankingEntry, SolarEfficiency

USER_ENTRY_ID = "current-user"
DEFAULT_USER_SYSTEM_SIZE_KW = 5.0
CITY_ONLY_BUCKETS = {"Adjacent Area", "City"}

IMPROVEMENT_SUGGESTIONS = (
    "Consider cleaning solar panels to improve efficiency",
    "Check for shading issues from nearby trees or structures",
    "Schedule an inverter performance check",
    "Optimize energy usage during peak solar hours",
)


def compute_score(actual: float, expected: float) -> int:
    if expected <= 0:
        return 0
    raw = math.floor(actual / expected * 100.0 + 0.5)
    return int(min(100, max(0, raw)))


def missed_generation(expected: float, actual: float) -> float:
    return max(0.0, expected - actual)


def loss_percentage(missed: float, expected: float) -> float:
    if expected <= 0:
        return 0.0
    return missed / expected * 100.0


def performance_tier(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "fair"
    return "poor"


def to_entry(member: CohortMember, is_current_user: bool = False) -> RankingEntry:
    return RankingEntry(
        id=member.id,
        name=member.name,
        score=compute_score(member.actual_generation, member.expected_generation),
        actual_generation=member.actual_generation,
        expected_generation=member.expected_generation,
        system_size_kw=member.system_size_kw,
        location=member.location,
        is_current_user=is_current_user,
    )


def user_member(solar: SolarEfficiency, system_size_kw: float = DEFAULT_USER_SYSTEM_SIZE_KW) -> CohortMember:
    return CohortMember(
        id=USER_ENTRY_ID,
        name="Your System",
        actual_generation=solar.actual_generation,
        expected_generation=solar.ideal_generation,
        system_size_kw=system_size_kw,
        location="Your Location",
    )


def rank_entries(entries: list[RankingEntry]) -> list[RankingEntry]:
    # sorted() is stable, so insertion order settles whatever score and deviation leave tied
    return sorted(entries, key=lambda e: (-e.score, abs(e.expected_generation - e.actual_generation)))


def filter_scope(members: list[CohortMember], scope: str = "neighborhood") -> list[CohortMember]:
    if scope == "city":
        return list(members)
    return [m for m in members if m.location not in CITY_ONLY_BUCKETS]


def compare_with_peers(solar: SolarEfficiency, cohort: list[CohortMember], scope: str = "city",
                       system_size_kw: float = DEFAULT_USER_SYSTEM_SIZE_KW) -> PeerComparison:
    """Rank the user's system against a cohort.

    Any cohort member that reuses the user entry id is dropped so the user
    appears exactly once.
    """
    members = [m for m in filter_scope(cohort, scope) if m.id != USER_ENTRY_ID]
    entries = [to_entry(m) for m in members]
    user = to_entry(user_member(solar, system_size_kw), is_current_user=True)
    entries.append(user)

    ranking = rank_entries(entries)
    rank = next(i for i, e in enumerate(ranking, 1) if e.is_current_user)
    missed = missed_generation(user.expected_generation, user.actual_generation)
    return PeerComparison(
        ranking=tuple(ranking),
        user_rank=rank,
        user_score=user.score,
        missed_generation=missed,
        loss_percentage=loss_percentage(missed, user.expected_generation),
        performance_tier=performance_tier(user.score),
        suggestions=IMPROVEMENT_SUGGESTIONS if user.score < 90 else (),
        scope="city" if scope == "city" else "neighborhood",
    )


def score_history(months: list[tuple]) -> list[dict]:
    """Monthly score trend from (label, actual, expected) triples."""
    history = []
    for label, actual, expected in months:
        history.append({
            "month": label,
            "score": compute_score(actual, expected),
            "actualGeneration": actual,
            "expectedGeneration": expected,
        })
    return history
