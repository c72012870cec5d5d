import pytest

from billinsight.cohort import FixtureCohort
from billinsight.schemas import CohortMember, RankingEntry, SolarEfficiency
from billinsight.scoring import (
    IMPROVEMENT_SUGGESTIONS, USER_ENTRY_ID, compare_with_peers, compute_score, filter_scope,
    loss_percentage, missed_generation, performance_tier, rank_entries, score_history,
)


def member(id, actual, expected, location="Nearby"):
    return CohortMember(id=id, name=id.title(), actual_generation=actual,
                        expected_generation=expected, system_size_kw=5.0, location=location)


def entry(id, score, actual, expected):
    return RankingEntry(id=id, name=id, score=score, actual_generation=actual,
                        expected_generation=expected, system_size_kw=5.0, location="Nearby")


@pytest.fixture
def user_solar():
    return SolarEfficiency(efficiency=320 / 375 * 100, ideal_generation=375.0,
                           actual_generation=320.0, potential_savings=55.0)


class TestScores:

    @pytest.mark.parametrize("actual, expected, score", [
        (320, 375, 85),
        (0, 100, 0),
        (130, 100, 100),
        (10, 0, 0),
        (849, 1000, 85),
        (851, 1000, 85),
        (856, 1000, 86),
    ])
    def test_compute_score(self, actual, expected, score):
        assert compute_score(actual, expected) == score

    def test_missed_and_loss(self):
        assert missed_generation(375, 320) == 55
        assert missed_generation(300, 320) == 0
        assert loss_percentage(55, 375) == pytest.approx(14.6667, rel=1e-4)
        assert loss_percentage(10, 0) == 0.0

    @pytest.mark.parametrize("score, tier", [(100, "excellent"), (90, "excellent"), (89, "fair"),
                                             (75, "fair"), (74, "poor"), (0, "poor")])
    def test_performance_tier(self, score, tier):
        assert performance_tier(score) == tier


class TestRanking:

    def test_descending_by_score(self):
        ranked = rank_entries([entry("a", 70, 70, 100), entry("b", 95, 95, 100), entry("c", 80, 80, 100)])
        assert [e.id for e in ranked] == ["b", "c", "a"]

    def test_ties_broken_by_deviation_then_insertion(self):
        ranked = rank_entries([
            entry("wide", 90, 180, 200),
            entry("first", 90, 90, 100),
            entry("second", 90, 90, 100),
        ])
        assert [e.id for e in ranked] == ["first", "second", "wide"]

    def test_user_appears_once(self, user_solar):
        cohort = [member("home-0", 700, 780), member(USER_ENTRY_ID, 1, 1), member("home-1", 500, 525)]
        result = compare_with_peers(user_solar, cohort)
        users = [e for e in result.ranking if e.is_current_user]
        assert len(users) == 1
        assert len(result.ranking) == 3

    def test_user_rank_and_metrics(self, user_solar):
        cohort = [member("home-0", 950, 1000), member("home-1", 500, 1000), member("home-2", 880, 1000)]
        result = compare_with_peers(user_solar, cohort)
        assert [e.id for e in result.ranking] == ["home-0", "home-2", USER_ENTRY_ID, "home-1"]
        assert result.user_rank == 3
        assert result.user_score == 85
        assert result.missed_generation == pytest.approx(55.0)
        assert result.loss_percentage == pytest.approx(55 / 375 * 100)
        assert result.performance_tier == "fair"
        assert result.suggestions == IMPROVEMENT_SUGGESTIONS

    def test_excellent_user_gets_no_suggestions(self):
        solar = SolarEfficiency(efficiency=96.0, ideal_generation=500.0,
                                actual_generation=480.0, potential_savings=20.0)
        result = compare_with_peers(solar, [])
        assert result.user_rank == 1
        assert result.suggestions == ()

    def test_ranking_is_total_order(self, user_solar):
        result = compare_with_peers(user_solar, FixtureCohort(seed=7)())
        scores = [e.score for e in result.ranking]
        assert scores == sorted(scores, reverse=True)
        assert result.ranking[result.user_rank - 1].is_current_user

    def test_neighborhood_scope(self, user_solar):
        cohort = [member("a", 1, 1, "Nearby"), member("b", 1, 1, "Adjacent Area"), member("c", 1, 1, "Same Block")]
        assert [m.id for m in filter_scope(cohort, "neighborhood")] == ["a", "c"]
        assert len(filter_scope(cohort, "city")) == 3
        result = compare_with_peers(user_solar, cohort, scope="neighborhood")
        assert {e.id for e in result.ranking} == {"a", "c", USER_ENTRY_ID}
        assert result.scope == "neighborhood"
        assert compare_with_peers(user_solar, cohort).scope == "city"


def test_fixture_cohort_is_deterministic():
    assert FixtureCohort(seed=3)() == FixtureCohort(seed=3)()
    members = FixtureCohort(seed=3)()
    assert len(members) == 8
    for m in members:
        assert 0.69 * m.expected_generation <= m.actual_generation <= 1.31 * m.expected_generation


def test_score_history():
    history = score_history([("Jan", 450.0, 500.0), ("Feb", 0.0, 0.0)])
    assert history[0] == {"month": "Jan", "score": 90, "actualGeneration": 450.0, "expectedGeneration": 500.0}
    assert history[1]["score"] == 0
    assert len(score_history(FixtureCohort(seed=1).history())) == 6
