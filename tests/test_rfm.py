"""Tests for RFM quintile scoring, segmentation and propensity."""

from datetime import datetime, timedelta

import pytest

from customer_analytics.foundation.records import CustomerSummary, TransactionRecord
from customer_analytics.foundation.rfm import (
    ScoredCustomer,
    Segment,
    assign_segment,
    calculate_propensity,
    calculate_recency,
    latest_transaction_dates,
    quintile_score,
    score_customers,
)

AS_OF = datetime(2024, 6, 30)


def _txn(customer_id: str, days_ago: int, order: str = "1") -> TransactionRecord:
    return TransactionRecord(
        customer_id=customer_id,
        order_number=order,
        date=AS_OF - timedelta(days=days_ago),
        products="",
        items_sold=1,
        revenue=10.0,
        net_sales=10.0,
    )


@pytest.fixture
def population():
    """Ten customers: A is the best on every axis, B the worst."""
    customers = [CustomerSummary("A", frequency=20, monetary=5000)]
    customers += [
        CustomerSummary(f"C{i}", frequency=i + 2, monetary=(i + 1) * 100) for i in range(8)
    ]
    customers.append(CustomerSummary("B", frequency=1, monetary=10))

    transactions = [_txn("A", 2), _txn("B", 200)]
    transactions += [_txn(f"C{i}", 10 * (i + 1)) for i in range(8)]
    return customers, transactions


class TestQuintileScore:
    """Test quintile breakpoint scoring."""

    POPULATION = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]

    @pytest.mark.parametrize(
        "value,expected",
        [(1, 1), (3, 1), (4, 2), (5, 2), (6, 3), (8, 4), (9, 4), (10, 5)],
    )
    def test_breakpoints_use_strict_comparison(self, value, expected):
        """Breakpoints at indices 2/4/6/8 are 3, 5, 7, 9; a value equal to one does not pass it."""
        assert quintile_score(value, self.POPULATION) == expected

    def test_reverse_inverts_score(self):
        """Reverse scoring returns 6 - score."""
        assert quintile_score(1, self.POPULATION, reverse=True) == 5
        assert quintile_score(10, self.POPULATION, reverse=True) == 1
        assert quintile_score(6, self.POPULATION, reverse=True) == 3

    def test_monotonic_in_value(self):
        """Higher values never score lower."""
        scores = [quintile_score(v, self.POPULATION) for v in self.POPULATION]
        assert scores == sorted(scores)

    def test_empty_population_raises(self):
        """Scoring against an empty population is undefined."""
        with pytest.raises(ValueError, match="empty population"):
            quintile_score(1, [])

    def test_single_value_population(self):
        """With one value every breakpoint equals it, so the score is 1."""
        assert quintile_score(7, [7]) == 1
        assert quintile_score(7, [7], reverse=True) == 5


class TestAssignSegment:
    """Test segment priority order."""

    @pytest.mark.parametrize(
        "scores,segment",
        [
            ((4, 4, 4), Segment.CHAMPIONS),
            ((5, 5, 5), Segment.CHAMPIONS),
            ((3, 3, 3), Segment.LOYAL),
            ((5, 5, 3), Segment.LOYAL),
            ((2, 5, 5), Segment.AT_RISK),
            ((1, 3, 1), Segment.AT_RISK),
            ((2, 2, 5), Segment.HIBERNATING),
            ((1, 1, 1), Segment.HIBERNATING),
            ((5, 1, 1), Segment.POTENTIAL_LOYALIST),
            ((3, 2, 5), Segment.POTENTIAL_LOYALIST),
        ],
    )
    def test_first_matching_predicate_wins(self, scores, segment):
        """Each score triple maps to exactly one segment."""
        assert assign_segment(*scores) is segment

    def test_segment_labels(self):
        """Segment values are the report labels."""
        assert [s.value for s in Segment] == [
            "Champions",
            "Loyal",
            "At Risk",
            "Hibernating",
            "Potential Loyalist",
        ]


class TestCalculatePropensity:
    """Test the composite propensity score."""

    def test_formula(self):
        """r*10 + f*8 + m*7 + 100/(recency+1)."""
        assert calculate_propensity(1, 1, 1, 99) == 26
        assert calculate_propensity(1, 1, 1, 3) == 50
        assert calculate_propensity(2, 2, 2, 19) == 55

    def test_rounds_half_up(self):
        """52.5 rounds to 53, not to the even neighbour."""
        assert calculate_propensity(1, 2, 2, 7) == 53

    def test_capped_at_100(self):
        assert calculate_propensity(5, 5, 5, 0) == 100
        assert calculate_propensity(3, 3, 3, 0) == 100


class TestRecency:
    """Test recency derivation."""

    def test_days_since_last_purchase(self):
        customer = CustomerSummary("A")
        assert calculate_recency(customer, AS_OF - timedelta(days=12, hours=5), AS_OF) == 12

    def test_falls_back_to_lifetime_days(self):
        """Customers without transactions use customer_lifetime_days."""
        customer = CustomerSummary("A", customer_lifetime_days=45.7)
        assert calculate_recency(customer, None, AS_OF) == 45

    def test_fractional_lifetime_feeds_propensity_as_whole_days(self):
        scored = score_customers([CustomerSummary("A", customer_lifetime_days=12.7)], [])[0]
        assert scored.recency == 12
        # 5/1/1 scores: 65 + 100 / 13 rounds to 73
        assert scored.propensity == 73

    def test_future_purchase_clamped_to_zero(self):
        customer = CustomerSummary("A")
        assert calculate_recency(customer, AS_OF + timedelta(days=3), AS_OF) == 0

    def test_latest_transaction_dates(self):
        dates = latest_transaction_dates([_txn("A", 30), _txn("A", 5), _txn("B", 9)])
        assert dates == {"A": AS_OF - timedelta(days=5), "B": AS_OF - timedelta(days=9)}


class TestScoredCustomer:
    """Test ScoredCustomer validation."""

    def _make(self, **overrides):
        fields = dict(
            customer=CustomerSummary("C1", frequency=3, monetary=30),
            recency=10,
            r_score=3,
            f_score=3,
            m_score=3,
            rfm_sum=9,
            segment=Segment.LOYAL,
            propensity=84,
        )
        fields.update(overrides)
        return ScoredCustomer(**fields)

    def test_valid_customer(self):
        scored = self._make()
        assert scored.customer_id == "C1"
        assert scored.rfm_code == "333"
        assert scored.frequency == 3
        assert scored.monetary == 30

    def test_score_out_of_range_raises(self):
        with pytest.raises(ValueError, match="r_score must be between 1 and 5"):
            self._make(r_score=6, rfm_sum=12)

    def test_sum_mismatch_raises(self):
        with pytest.raises(ValueError, match="rfm_sum"):
            self._make(rfm_sum=10)

    def test_propensity_out_of_range_raises(self):
        with pytest.raises(ValueError, match="propensity"):
            self._make(propensity=101)


class TestScoreCustomers:
    """Test full-population scoring."""

    def test_empty_input_yields_empty_output(self):
        """No customers is a valid boundary, not an error."""
        assert score_customers([], [], as_of=AS_OF) == []

    def test_best_and_worst_customers(self, population):
        """The strongest customer is a Champion and the weakest is Hibernating."""
        customers, transactions = population

        scored = {c.customer_id: c for c in score_customers(customers, transactions, AS_OF)}

        best = scored["A"]
        assert (best.r_score, best.f_score, best.m_score) == (5, 5, 5)
        assert best.recency == 2
        assert best.segment is Segment.CHAMPIONS
        assert best.propensity == 100

        worst = scored["B"]
        assert (worst.r_score, worst.f_score, worst.m_score) == (1, 1, 1)
        assert worst.recency == 200
        assert worst.segment is Segment.HIBERNATING

    def test_preserves_input_order(self, population):
        customers, transactions = population
        scored = score_customers(customers, transactions, AS_OF)
        assert [c.customer_id for c in scored] == [c.customer_id for c in customers]

    def test_all_scores_in_range(self, population):
        customers, transactions = population
        for scored in score_customers(customers, transactions, AS_OF):
            assert 1 <= scored.r_score <= 5
            assert 1 <= scored.f_score <= 5
            assert 1 <= scored.m_score <= 5
            assert scored.rfm_sum == scored.r_score + scored.f_score + scored.m_score
            assert 0 <= scored.propensity <= 100

    def test_uses_latest_transaction_for_recency(self):
        customers = [CustomerSummary("A", frequency=2, monetary=20)]
        transactions = [_txn("A", 40), _txn("A", 4, order="2")]
        assert score_customers(customers, transactions, AS_OF)[0].recency == 4

    def test_customer_without_transactions_uses_lifetime(self):
        customers = [
            CustomerSummary("A", frequency=2, monetary=20, customer_lifetime_days=90),
            CustomerSummary("B", frequency=2, monetary=20),
        ]
        scored = score_customers(customers, [_txn("B", 1)], AS_OF)
        assert scored[0].recency == 90
        assert scored[1].recency == 1

    def test_two_customer_population(self):
        """Small populations share breakpoints, so scores bunch together."""
        customers = [
            CustomerSummary("A", frequency=10, monetary=1000),
            CustomerSummary("B", frequency=1, monetary=10),
        ]
        scored = score_customers(customers, [_txn("A", 2), _txn("B", 200)], AS_OF)
        assert [c.f_score for c in scored] == [3, 1]
        assert [c.r_score for c in scored] == [5, 3]
        assert scored[0].segment is Segment.LOYAL
