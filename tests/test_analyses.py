"""Tests for the time series, recommendation and KPI analyses."""

from datetime import datetime

import pytest

from customer_analytics.analyses import (
    TimeSeriesPoint,
    calculate_kpis,
    calculate_monthly_sales,
    calculate_time_series,
    count_customer_types,
    generate_recommendations,
    parse_products,
    rank_attribution_channels,
    rank_by_propensity,
)
from customer_analytics.analyses.recommendations import (
    build_cooccurrence,
    build_customer_products,
    recommend_for_customer,
)
from customer_analytics.foundation.records import CustomerSummary, TransactionRecord
from customer_analytics.foundation.rfm import score_customers


def _txn(customer_id, products="", date=datetime(2024, 1, 1), net_sales=10.0):
    return TransactionRecord(customer_id, "1", date, products, 1, net_sales, net_sales)


class TestTimeSeries:
    """Test daily bucketing."""

    def test_groups_by_calendar_day(self):
        """Sales are summed and customers counted distinctly per day."""
        transactions = [
            _txn("C1", date=datetime(2024, 1, 2, 9), net_sales=20.0),
            _txn("C2", date=datetime(2024, 1, 2, 18), net_sales=5.5),
            _txn("C1", date=datetime(2024, 1, 2, 20), net_sales=4.5),
            _txn("C3", date=datetime(2024, 1, 1, 12), net_sales=7.0),
        ]

        series = calculate_time_series(transactions)

        assert [(p.date, p.sales, p.customers) for p in series] == [
            ("2024-01-01", 7.0, 1),
            ("2024-01-02", 30.0, 2),
        ]

    def test_sparse_output(self):
        """Days without activity are skipped."""
        series = calculate_time_series(
            [_txn("C1", date=datetime(2024, 1, 1)), _txn("C1", date=datetime(2024, 1, 5))]
        )
        assert [p.date for p in series] == ["2024-01-01", "2024-01-05"]

    def test_empty(self):
        assert calculate_time_series([]) == []


class TestParseProducts:
    """Test product-field parsing."""

    def test_quantity_token_dropped(self):
        assert parse_products("Feed×2, Vaccine") == ["Feed", "Vaccine"]

    def test_mis_decoded_multiplication_sign(self):
        assert parse_products("FeedÃ—3, Vaccine") == ["Feed", "Vaccine"]

    def test_em_dash_delimiter(self):
        assert parse_products("Feed — Vaccine") == ["Feed", "Vaccine"]

    def test_lone_a_tilde_is_part_of_the_name(self):
        assert parse_products("PÃo Feed, Grit") == ["PÃo Feed", "Grit"]

    def test_pipe_delimiter_and_duplicates(self):
        assert parse_products("Hoe | Rake | Hoe") == ["Hoe", "Rake"]

    def test_tokens_with_digits_dropped(self):
        assert parse_products("Layer Mash 50kg, Grit") == ["Grit"]

    @pytest.mark.parametrize("text", ["", "   ", ",,", "×4"])
    def test_empty_results(self, text):
        assert parse_products(text) == []


class TestRecommendations:
    """Test co-occurrence recommendations."""

    def test_cooccurrence_is_symmetric(self):
        customer_products = build_customer_products(
            [_txn("C1", "Feed, Vaccine"), _txn("C2", "Feed, Vaccine, Grit")]
        )
        counts = build_cooccurrence(customer_products)
        assert counts["Feed"]["Vaccine"] == counts["Vaccine"]["Feed"] == 2
        assert counts["Grit"]["Feed"] == counts["Feed"]["Grit"] == 1

    def test_products_collected_across_orders(self):
        """Products bought in separate orders still co-occur."""
        transactions = [
            _txn("C1", "Feed"),
            _txn("C1", "Vaccine"),
            _txn("C2", "Feed"),
        ]
        assert generate_recommendations(transactions)["C2"] == ["Vaccine"]

    def test_owned_products_never_recommended(self):
        transactions = [
            _txn("C1", "Feed, Vaccine, Grit"),
            _txn("C2", "Feed, Vaccine"),
            _txn("C3", "Feed"),
        ]
        recommendations = generate_recommendations(transactions)
        assert recommendations["C1"] == []
        assert recommendations["C2"] == ["Grit"]
        assert recommendations["C3"] == ["Vaccine", "Grit"]

    def test_ranked_by_summed_count(self):
        """Scores add up over every owned product."""
        transactions = [
            _txn("C1", "Feed, Grit"),
            _txn("C2", "Feed, Vaccine"),
            _txn("C3", "Vaccine, Grit"),
            _txn("C4", "Vaccine, Grit"),
            _txn("C5", "Feed, Hoe"),
            _txn("C6", "Hoe, Rake"),
        ]
        recommendations = generate_recommendations(transactions)
        # C5 owns Feed (Grit 1, Vaccine 1) and Hoe (Rake 1)
        assert recommendations["C5"] == ["Grit", "Vaccine", "Rake"]
        # C1 owns Feed (Vaccine 1, Hoe 1) and Grit (Vaccine 2)
        assert recommendations["C1"] == ["Vaccine", "Hoe"]

    def test_equal_scores_keep_first_seen_order(self):
        cooccurrence = {"A": {"X": 1, "Y": 1, "Z": 1}}
        assert recommend_for_customer({"A": None}, cooccurrence) == ["X", "Y", "Z"]

    def test_limit(self):
        transactions = [_txn("C1", "A, B, C, D, E, F, G"), _txn("C2", "A")]
        recommendations = generate_recommendations(transactions)
        assert recommendations["C2"] == ["B", "C", "D", "E", "F"]
        assert len(generate_recommendations(transactions, limit=2)["C2"]) == 2

    def test_customer_without_products(self):
        recommendations = generate_recommendations([_txn("C1", ""), _txn("C2", "Feed")])
        assert recommendations["C1"] == []

    def test_negative_limit_raises(self):
        with pytest.raises(ValueError, match="limit cannot be negative"):
            generate_recommendations([], limit=-1)


class TestKPIs:
    """Test population KPIs."""

    def test_averages(self):
        customers = [
            CustomerSummary("A", frequency=4, monetary=300, customer_lifetime_days=10),
            CustomerSummary("B", frequency=2, monetary=100, customer_lifetime_days=30),
        ]
        kpis = calculate_kpis(score_customers(customers, [], as_of=datetime(2024, 1, 1)))

        assert kpis.total_customers == 2
        assert kpis.total_revenue == 400
        assert kpis.avg_recency == 20
        assert kpis.avg_frequency == 3
        assert kpis.avg_monetary == 200

    def test_empty_population(self):
        kpis = calculate_kpis([])
        assert kpis.total_customers == 0
        assert kpis.avg_monetary == 0.0


class TestRankByPropensity:
    """Test the propensity ranking."""

    def test_descending_with_stable_ties(self):
        customers = score_customers(
            [
                CustomerSummary("A", frequency=1, monetary=10, customer_lifetime_days=200),
                CustomerSummary("B", frequency=9, monetary=900, customer_lifetime_days=1),
                CustomerSummary("C", frequency=9, monetary=900, customer_lifetime_days=1),
            ],
            [],
            as_of=datetime(2024, 1, 1),
        )

        ranked = rank_by_propensity(customers)

        assert [c.customer_id for c in ranked] == ["B", "C", "A"]
        assert ranked[0].propensity >= ranked[-1].propensity

    def test_limit(self):
        customers = score_customers([CustomerSummary(str(i)) for i in range(30)], [])
        assert len(rank_by_propensity(customers)) == 20
        assert len(rank_by_propensity(customers, limit=3)) == 3

    def test_empty(self):
        assert rank_by_propensity([]) == ()

    def test_negative_limit_raises(self):
        with pytest.raises(ValueError, match="limit cannot be negative"):
            rank_by_propensity([], limit=-1)


class TestDemographics:
    """Test customer-type and attribution distributions."""

    @pytest.fixture
    def customers(self):
        return score_customers(
            [
                CustomerSummary("A", customer_type="returning", attribution="Direct"),
                CustomerSummary("B", customer_type="new", attribution="Organic: Google"),
                CustomerSummary("C", customer_type="new", attribution="Organic: Google"),
                CustomerSummary("D", customer_type="new", attribution="Referral"),
                CustomerSummary("E"),
            ],
            [],
        )

    def test_customer_types_in_first_seen_order(self, customers):
        counts = count_customer_types(customers)
        assert list(counts.items()) == [("returning", 1), ("new", 3), ("unknown", 1)]

    def test_customer_type_counts_are_read_only(self, customers):
        with pytest.raises(TypeError):
            count_customer_types(customers)["new"] = 0

    def test_attribution_ranked_by_count(self, customers):
        assert rank_attribution_channels(customers) == [
            ("Organic: Google", 2),
            ("Direct", 1),
            ("Referral", 1),
            ("Unknown", 1),
        ]

    def test_attribution_limit(self, customers):
        assert rank_attribution_channels(customers, limit=1) == [("Organic: Google", 2)]

    def test_attribution_keeps_top_ten(self):
        customers = score_customers(
            [CustomerSummary(str(i), attribution=f"Channel {i}") for i in range(15)], []
        )
        assert len(rank_attribution_channels(customers)) == 10

    def test_empty(self):
        assert dict(count_customer_types([])) == {}
        assert rank_attribution_channels([]) == []


class TestMonthlySales:
    """Test the monthly rollup of the daily series."""

    def test_rolls_days_into_months(self):
        points = [
            TimeSeriesPoint("2024-01-10", 180.0, 1),
            TimeSeriesPoint("2024-01-15", 95.0, 1),
            TimeSeriesPoint("2024-03-05", 15.0, 1),
        ]
        monthly = calculate_monthly_sales(points)
        assert [(m.month, m.sales) for m in monthly] == [("2024-01", 275.0), ("2024-03", 15.0)]

    def test_keeps_latest_twelve_months(self):
        points = [
            TimeSeriesPoint(f"{2023 + (i // 12)}-{i % 12 + 1:02d}-01", float(i), 1)
            for i in range(15)
        ]

        monthly = calculate_monthly_sales(points)

        assert len(monthly) == 12
        assert monthly[0].month == "2023-04"
        assert monthly[-1].month == "2024-03"

    def test_zero_window(self):
        assert calculate_monthly_sales([TimeSeriesPoint("2024-01-01", 1.0, 1)], months=0) == []

    def test_empty(self):
        assert calculate_monthly_sales([]) == []
