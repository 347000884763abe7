"""
Tests for RivuScoreService and the score history views.

Covers:
- get_score calculates on first read, then returns the stored snapshot
- Upsert of the latest row plus append-only history
- Report shape (factors, ratings, raw factors, recent changes, improvement areas)
- History time ranges, limit and ordering
- Manual history entries
- Goal trajectory estimates
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from rivu.lib.exceptions import NotFoundError, ValidationError
from rivu.models import RivuScore, ScoreHistory
from rivu.services.ledger_reader import GoalSnapshot
from rivu.services.score_history import monthly_averages, parse_time_range, recent_changes
from rivu.services.score_service import (
    RivuScoreService,
    estimate_months_to_goal,
    rating_for,
)


@pytest.fixture()
def score_service(db_session, clock) -> RivuScoreService:
    return RivuScoreService(db_session, clock=clock)


def _history_count(db_session, user_id: int) -> int:
    return db_session.scalar(select(func.count()).select_from(ScoreHistory).where(ScoreHistory.user_id == user_id))


# =============================================================================
# Calculation and persistence
# =============================================================================


class TestRecalculation:
    def test_unknown_user_raises_not_found(self, score_service) -> None:
        with pytest.raises(NotFoundError):
            score_service.recalculate_score(999)

    def test_zero_data_user_without_login(self, score_service, make_user) -> None:
        user = make_user(login_count=0)
        row = score_service.recalculate_score(user.id)
        assert (row.score, row.budget_adherence, row.savings_progress, row.weekly_activity) == (0, 0, 0, 0)

    def test_login_floor(self, score_service, make_user) -> None:
        user = make_user(login_count=1)
        assert score_service.recalculate_score(user.id).score == 10

    def test_upserts_single_row(self, score_service, make_user, add_category, db_session, clock) -> None:
        user = make_user()
        add_category(user, "Rent", "1000", "1200")
        score_service.recalculate_score(user.id)
        clock.advance(hours=1)
        score_service.recalculate_score(user.id)

        rows = db_session.scalars(select(RivuScore).where(RivuScore.user_id == user.id)).all()
        assert len(rows) == 1
        assert rows[0].score == 40
        assert _history_count(db_session, user.id) == 2

    def test_history_records_previous_score(self, score_service, make_user, add_category, db_session, clock) -> None:
        user = make_user()
        category = add_category(user, "Food", "100", "0")
        score_service.recalculate_score(user.id)

        category.spent_amount = Decimal("150")
        db_session.commit()
        clock.advance(hours=1)
        score_service.recalculate_score(user.id, trigger="category_updated")

        latest = db_session.scalars(
            select(ScoreHistory).where(ScoreHistory.user_id == user.id).order_by(ScoreHistory.id.desc())
        ).first()
        assert latest.previous_score == 50
        assert latest.score == 25
        assert latest.change == -25
        assert latest.change_factors["budget_adherence"] == -50
        assert latest.reason == "Recalculated after category_updated"


class TestGetScore:
    def test_calculates_when_missing(self, score_service, make_user, db_session) -> None:
        user = make_user()
        report = score_service.get_score(user.id)
        assert report["score"] == 10
        assert db_session.scalars(select(RivuScore).where(RivuScore.user_id == user.id)).first() is not None

    def test_returns_stored_snapshot(self, score_service, make_user, add_category, clock) -> None:
        user = make_user()
        score_service.recalculate_score(user.id)
        add_category(user, "Rent", "1000", "1200")

        # no recalculation happened, so the stored value is served
        assert score_service.get_score(user.id)["score"] == 10

    def test_report_shape(self, score_service, make_user, add_category) -> None:
        user = make_user()
        add_category(user, "Rent", "1000", "1200")
        report = score_service.get_score(user.id)

        assert report["score"] == 40
        assert report["rating"] == "Poor"
        assert [f["name"] for f in report["factors"]] == [
            "Budget Adherence",
            "Savings Goal Progress",
            "Weekly Activity",
        ]
        assert report["factors"][0] == {"name": "Budget Adherence", "percentage": 80, "rating": "Good"}
        assert report["rawFactors"] == {"budgetAdherence": 80, "savingsProgress": 0, "weeklyActivity": 0}
        assert report["lastUpdated"].startswith("2026-03-18")
        assert "recentChanges" not in report

    def test_recent_changes_after_second_calculation(
        self, score_service, make_user, add_category, add_transaction, clock
    ) -> None:
        user = make_user()
        add_category(user, "Rent", "1000", "1200")
        score_service.recalculate_score(user.id)
        add_transaction(user, when=clock())
        clock.advance(minutes=5)
        score_service.recalculate_score(user.id)

        report = score_service.get_score(user.id)
        assert report["recentChanges"]["netChange"] == 2
        assert report["recentChanges"]["changes"] == [
            {"factor": "Weekly Activity", "change": 10, "reason": "Weekly Activity improved by 10 points"}
        ]

    def test_improvement_areas_sorted_by_gain(self, score_service, make_user, add_category, add_goal) -> None:
        user = make_user()
        add_category(user, "Rent", "1000", "1200")
        add_goal(user, "Trip", "1000", "500")
        report = score_service.get_score(user.id)

        areas = report["improvementAreas"]
        assert [a["factor"] for a in areas] == ["Weekly Activity", "Savings Goal Progress"]
        assert areas[0]["potentialScoreGain"] == 16
        assert areas[1]["potentialScoreGain"] == 9
        assert all(a["targetValue"] == 80 for a in areas)


# =============================================================================
# History views
# =============================================================================


class TestHistory:
    def test_unknown_time_range(self, score_service, make_user) -> None:
        user = make_user()
        with pytest.raises(ValidationError):
            score_service.get_score_history(user.id, "fortnight")

    @pytest.mark.parametrize(("name", "days"), [("1month", 30), ("3months", 90), ("6months", 180), ("year", 365)])
    def test_time_range_windows(self, name: str, days: int) -> None:
        assert parse_time_range(name) == timedelta(days=days)

    def test_range_excludes_old_points(self, score_service, make_user, clock) -> None:
        user = make_user()
        score_service.recalculate_score(user.id)
        clock.advance(days=45)
        score_service.recalculate_score(user.id)

        assert len(score_service.get_score_history(user.id, "1month")) == 1
        assert len(score_service.get_score_history(user.id, "3months")) == 2

    def test_chronological_with_insertion_tiebreak(self, score_service, make_user) -> None:
        user = make_user()
        for _ in range(3):
            score_service.recalculate_score(user.id)

        history = score_service.get_score_history(user.id)
        ids = [point["id"] for point in history]
        assert ids == sorted(ids)

    def test_limit_keeps_most_recent(self, score_service, make_user, clock) -> None:
        user = make_user()
        for _ in range(4):
            score_service.recalculate_score(user.id)
            clock.advance(days=1)

        history = score_service.get_score_history(user.id, "1month", limit=2)
        all_points = score_service.get_score_history(user.id, "1month")
        assert [p["id"] for p in history] == [p["id"] for p in all_points[-2:]]

    def test_manual_entry_requires_score(self, score_service, make_user) -> None:
        user = make_user()
        with pytest.raises(NotFoundError):
            score_service.add_score_history_entry(user.id, "Completed a goal", 5)

    def test_manual_entry(self, score_service, make_user) -> None:
        user = make_user()
        score_service.recalculate_score(user.id)
        entry = score_service.add_score_history_entry(user.id, "Completed a goal", 5, notes="Emergency fund")

        assert entry.kind == "manual"
        assert entry.score == 10
        assert entry.previous_score == 5
        assert entry.notes == "Emergency fund"
        assert len(score_service.get_score_history(user.id)) == 2

    def test_manual_entries_do_not_affect_recent_changes(self, score_service, make_user, clock) -> None:
        user = make_user()
        score_service.recalculate_score(user.id)
        clock.advance(minutes=1)
        score_service.add_score_history_entry(user.id, "Note", 3)

        assert "recentChanges" not in score_service.get_score(user.id)


def test_recent_changes_needs_two_snapshots() -> None:
    assert recent_changes([]) is None


def test_monthly_averages(make_user, score_service, add_category, clock, db_session) -> None:
    user = make_user()
    score_service.recalculate_score(user.id)  # 10 in March
    category = add_category(user, "Rent", "1000", "1200")
    clock.advance(days=20)  # April 7th
    score_service.recalculate_score(user.id)  # 40
    category.spent_amount = Decimal("1000")
    db_session.commit()
    clock.advance(days=1)
    score_service.recalculate_score(user.id)  # 50

    entries = db_session.scalars(
        select(ScoreHistory).where(ScoreHistory.user_id == user.id).order_by(ScoreHistory.id)
    ).all()
    assert monthly_averages(list(entries)) == [
        {"month": "2026-03", "averageScore": 10, "change": 0},
        {"month": "2026-04", "averageScore": 45, "change": 35},
    ]


# =============================================================================
# Ratings and trajectory
# =============================================================================


@pytest.mark.parametrize(
    ("value", "label"),
    [(95, "Excellent"), (90, "Excellent"), (70, "Good"), (50, "Fair"), (30, "Poor"), (29, "Needs Improvement")],
)
def test_rating_bands(value: int, label: str) -> None:
    assert rating_for(value) == label


class TestEstimateMonthsToGoal:
    def test_reached_goal(self) -> None:
        goal = GoalSnapshot(id=1, name="g", target_amount=Decimal("100"), current_amount=Decimal("120"))
        assert estimate_months_to_goal(goal) == 0

    def test_without_history(self) -> None:
        goal = GoalSnapshot(id=1, name="g", target_amount=Decimal("100"), current_amount=Decimal("0"))
        assert estimate_months_to_goal(goal) is None

    def test_rounds_up(self) -> None:
        goal = GoalSnapshot(
            id=1,
            name="g",
            target_amount=Decimal("1000"),
            current_amount=Decimal("300"),
            monthly_savings=(("2026-01", Decimal("100")), ("2026-02", Decimal("200"))),
        )
        # 700 remaining at 150 a month
        assert estimate_months_to_goal(goal) == 5

    def test_non_positive_average(self) -> None:
        goal = GoalSnapshot(
            id=1,
            name="g",
            target_amount=Decimal("1000"),
            current_amount=Decimal("300"),
            monthly_savings=(("2026-01", Decimal("0")),),
        )
        assert estimate_months_to_goal(goal) is None
