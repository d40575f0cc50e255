"""
Tests for weekly aggregation.

Covers: ISO week keys, incomplete-week dropping, category vocabulary,
anomaly spending, savings rate, same-day duplicate averaging, ordering.
"""
import datetime as dt
import random
from decimal import Decimal

import pytest

from analytics.models import Transaction, WellbeingRecord
from constants import DEFAULT_CATEGORY_RULES
from pipeline.aggregator import (
    CategoryClassifier,
    aggregate_weekly,
    latest_financial_vector,
    week_key,
    week_start,
)

MON = dt.date(2026, 1, 5)  # 2026-W02


def _check_in(day, overall=5, sleep=5, activity=5, social=5, diet=5, stress=5):
    return WellbeingRecord(day, overall, sleep, activity, social, diet, stress)


# ─── Week keys ───────────────────────────────────────────────


class TestWeekKey:

    def test_thursday_new_year_is_week_one(self):
        assert week_key(dt.date(2026, 1, 1)) == "2026-W01"

    def test_iso_year_differs_from_calendar_year(self):
        # Monday 30 Dec 2024 belongs to ISO week 1 of 2025
        assert week_key(dt.date(2024, 12, 30)) == "2025-W01"

    def test_sunday_stays_in_mondays_week(self):
        assert week_key(MON) == week_key(MON + dt.timedelta(days=6))
        assert week_key(MON + dt.timedelta(days=7)) == "2026-W03"

    def test_accepts_datetime_and_iso_string(self):
        assert week_key(dt.datetime(2026, 1, 5, 23, 30)) == "2026-W02"
        assert week_key("2026-01-05") == "2026-W02"

    def test_week_start_is_monday(self):
        assert week_start("2026-W02") == MON


# ─── Completeness ────────────────────────────────────────────


class TestIncompleteWeeks:

    def test_empty_input_is_empty_output(self):
        assert aggregate_weekly([], []) == []

    def test_transactions_without_check_ins_dropped(self):
        tx = [Transaction(MON, "Food", 20.0)]
        assert aggregate_weekly(tx, []) == []

    def test_only_weeks_with_both_sides_survive(self):
        tx = [
            Transaction(MON, "Food", 20.0),
            Transaction(MON + dt.timedelta(weeks=1), "Food", 30.0),
        ]
        wb = [
            _check_in(MON + dt.timedelta(weeks=1)),
            _check_in(MON + dt.timedelta(weeks=2)),
        ]
        points = aggregate_weekly(tx, wb)
        assert [p.week for p in points] == ["2026-W03"]
        assert points[0].financial.total_spending == 30.0


# ─── Financial aggregate ─────────────────────────────────────


class TestFinancialAggregate:

    def test_default_vocabulary_subtotals(self):
        tx = [
            Transaction(MON, "Entertainment", 40.0),
            Transaction(MON, "Groceries", 30.0),
            Transaction(MON, "self care", 15.0),
            Transaction(MON, "Parking", 5.0),
        ]
        points = aggregate_weekly(tx, [_check_in(MON)])
        fin = points[0].financial
        assert [name for name, _ in fin.category_spending] == list(DEFAULT_CATEGORY_RULES)
        sub = dict(fin.category_spending)
        assert sub["entertainment"] == 40.0
        assert sub["food"] == 30.0
        assert sub["self-care"] == 15.0
        assert sub["other"] == 5.0
        assert sub["shopping"] == 0.0
        assert fin.total_spending == 90.0

    def test_custom_vocabulary_with_predicate_and_no_catch_all(self):
        categories = {
            "fun": ("games", "movies"),
            "housing": lambda raw: raw.lower().startswith("rent"),
        }
        tx = [
            Transaction(MON, "Games", 25.0),
            Transaction(MON, "Rent March", 800.0),
            Transaction(MON, "Coffee", 4.0),
        ]
        fin = aggregate_weekly(tx, [_check_in(MON)], categories=categories)[0].financial
        assert dict(fin.category_spending) == {"fun": 25.0, "housing": 800.0}
        # unmatched still counts toward the total
        assert fin.total_spending == 829.0

    def test_catch_all_does_not_shadow_later_rules(self):
        categories = {"misc": None, "fun": ("games",)}
        tx = [Transaction(MON, "games", 10.0), Transaction(MON, "books", 7.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)], categories=categories)[0].financial
        assert dict(fin.category_spending) == {"misc": 7.0, "fun": 10.0}

    def test_single_string_rule_is_one_label(self):
        categories = {"food": "groceries", "misc": None}
        tx = [Transaction(MON, "Groceries", 40.0), Transaction(MON, "o", 3.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)], categories=categories)[0].financial
        assert dict(fin.category_spending) == {"food": 40.0, "misc": 3.0}

    def test_reserved_category_name_rejected(self):
        with pytest.raises(ValueError):
            CategoryClassifier({"total_spending": ("x",)})

    def test_decimal_amounts_accepted(self):
        tx = [Transaction(MON, "Food", Decimal("12.50")), Transaction(MON, "Food", Decimal("7.25"))]
        fin = aggregate_weekly(tx, [_check_in(MON)])[0].financial
        assert fin.total_spending == pytest.approx(19.75)

    def test_financial_vector_names(self):
        tx = [Transaction(MON, "Food", 10.0)]
        vector = aggregate_weekly(tx, [_check_in(MON)])[0].financial.as_vector()
        assert "total_spending" in vector
        assert "anomaly_spending" in vector
        assert "food" in vector
        assert "savings_rate" not in vector


class TestAnomalySpending:

    @staticmethod
    def _history():
        """Nine routine $10 food purchases, then one $100 outlier a week later."""
        tx = [Transaction(MON + dt.timedelta(days=d % 7), "Food", 10.0) for d in range(9)]
        tx.append(Transaction(MON + dt.timedelta(days=8), "Food", 100.0))
        wb = [_check_in(MON), _check_in(MON + dt.timedelta(days=8))]
        return tx, wb

    def test_outlier_flagged_against_full_history(self):
        # mean 19, sample std ≈ 28.5 -> threshold ≈ 75.9 at k=2
        tx, wb = self._history()
        points = aggregate_weekly(tx, wb)
        assert points[0].financial.anomaly_spending == 0.0
        assert points[1].financial.anomaly_spending == 100.0

    def test_k_is_configurable(self):
        tx, wb = self._history()
        points = aggregate_weekly(tx, wb, anomaly_k=10)
        assert all(p.financial.anomaly_spending == 0.0 for p in points)

    def test_labels_sharing_a_bucket_keep_separate_baselines(self):
        # groceries and dining both land in "food" but at very different scales
        groceries = [10.0] * 8 + [40.0]   # mean 13.3, std 10 -> threshold 33.3
        dining = [60.0, 70.0, 65.0, 68.0]
        tx = [Transaction(MON + dt.timedelta(days=i % 7), "Groceries", a) for i, a in enumerate(groceries)]
        tx += [Transaction(MON + dt.timedelta(days=i), "Dining", a) for i, a in enumerate(dining)]
        fin = aggregate_weekly(tx, [_check_in(MON)])[0].financial
        assert dict(fin.category_spending)["food"] == pytest.approx(sum(groceries) + sum(dining))
        # pooled into one "food" baseline the 40.0 would sit well under the threshold
        assert fin.anomaly_spending == 40.0

    def test_single_transaction_category_has_no_anomaly(self):
        tx = [Transaction(MON, "Shopping", 500.0), Transaction(MON, "Food", 5.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)])[0].financial
        assert fin.anomaly_spending == 0.0


class TestSavingsRate:

    def test_flat_weekly_income(self):
        tx = [Transaction(MON, "Food", 250.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)], weekly_income=1000.0)[0].financial
        assert fin.savings_rate == pytest.approx(75.0)
        assert fin.as_vector()["savings_rate"] == pytest.approx(75.0)

    def test_income_mapping_only_covers_some_weeks(self):
        tx = [Transaction(MON, "Food", 100.0), Transaction(MON + dt.timedelta(weeks=1), "Food", 100.0)]
        wb = [_check_in(MON), _check_in(MON + dt.timedelta(weeks=1))]
        points = aggregate_weekly(tx, wb, weekly_income={"2026-W02": 400.0})
        assert points[0].financial.savings_rate == pytest.approx(75.0)
        assert points[1].financial.savings_rate is None

    def test_no_income_means_no_savings_rate(self):
        tx = [Transaction(MON, "Food", 100.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)])[0].financial
        assert fin.savings_rate is None

    def test_non_positive_income_ignored(self):
        tx = [Transaction(MON, "Food", 100.0)]
        fin = aggregate_weekly(tx, [_check_in(MON)], weekly_income=0)[0].financial
        assert fin.savings_rate is None


# ─── Wellbeing aggregate ─────────────────────────────────────


class TestWellbeingAggregate:

    def test_same_day_duplicates_are_all_averaged(self):
        tx = [Transaction(MON, "Food", 10.0)]
        wb = [
            _check_in(MON, overall=4, stress=9),
            _check_in(MON, overall=8, stress=3),
            _check_in(MON + dt.timedelta(days=2), overall=6, stress=6),
        ]
        agg = aggregate_weekly(tx, wb)[0].wellbeing
        assert agg.overall_wellbeing == pytest.approx(6.0)
        assert agg.stress_level == pytest.approx(6.0)
        assert agg.n_records == 3

    def test_mean_per_metric(self):
        tx = [Transaction(MON, "Food", 10.0)]
        wb = [_check_in(MON, sleep=7, diet=2), _check_in(MON + dt.timedelta(days=1), sleep=8, diet=3)]
        agg = aggregate_weekly(tx, wb)[0].wellbeing
        assert agg.sleep_quality == pytest.approx(7.5)
        assert agg.diet_quality == pytest.approx(2.5)
        assert agg.social_time == pytest.approx(5.0)


# ─── Ordering / determinism ──────────────────────────────────


class TestOrdering:

    @staticmethod
    def _data():
        tx, wb = [], []
        for w in range(5):
            day = MON + dt.timedelta(weeks=w)
            tx.append(Transaction(day, "Entertainment", 20.0 + w))
            tx.append(Transaction(day + dt.timedelta(days=1), "Food", 13.1 * (w + 1)))
            tx.append(Transaction(day + dt.timedelta(days=2), "Food", 0.7 * (w + 3)))
            wb.append(_check_in(day, overall=4 + w))
        return tx, wb

    def test_ascending_by_week(self):
        tx, wb = self._data()
        weeks = [p.week for p in aggregate_weekly(tx, wb)]
        assert weeks == sorted(weeks)
        assert len(weeks) == 5

    def test_input_order_does_not_matter(self):
        tx, wb = self._data()
        expected = aggregate_weekly(tx, wb)
        rng = random.Random(7)
        tx_shuffled, wb_shuffled = tx[:], wb[:]
        rng.shuffle(tx_shuffled)
        rng.shuffle(wb_shuffled)
        assert aggregate_weekly(tx_shuffled, wb_shuffled) == expected

    def test_latest_financial_vector(self):
        tx, wb = self._data()
        points = aggregate_weekly(tx, wb)
        vector = latest_financial_vector(points)
        assert vector["entertainment"] == 24.0
        assert latest_financial_vector([]) == {}
