"""
Tests for the payment allocator.

Covers:
- Arrears gate (ok / restricted / blocked) per channel
- Auto strategy: oldest-first settlement, conservation, stale amounts
- Manual strategy: validation order and typed rejections
- PaymentIntent shape validation
"""

import pytest

from membership_engines.payment_allocation import (
    BreakdownEntry,
    ChargeRuleStatus,
    PaymentAllocator,
    PaymentChannel,
    PaymentIntent,
    PaymentStrategy,
    min_periods_to_charge,
    office_charge_rule,
)
from membership_kernel.domain.values import Money
from membership_kernel.exceptions import (
    AmountExceedsBalanceError,
    ArrearsRuleViolationError,
    InvalidPeriodSelectionError,
    PolicyBlockedError,
    StaleLedgerError,
)


def _m(amount):
    return Money.of(amount)


class TestArrearsRule:
    """Tests for the arrears thresholds."""

    @pytest.mark.parametrize("months_due, expected", [(0, 0), (2, 0), (3, 2), (7, 2)])
    def test_min_periods_to_charge(self, months_due, expected):
        assert min_periods_to_charge(months_due) == expected

    def test_ok_below_three(self):
        rule = office_charge_rule(2)
        assert rule.status == ChargeRuleStatus.OK
        assert rule.allows_charge

    def test_restricted_at_three(self):
        rule = office_charge_rule(3)
        assert rule.status == ChargeRuleStatus.RESTRICTED
        assert rule.min_periods_to_charge == 2
        assert rule.allows_charge

    def test_blocked_at_four_in_office(self):
        rule = office_charge_rule(4, PaymentChannel.OFFICE)
        assert rule.status == ChargeRuleStatus.BLOCKED
        assert not rule.allows_charge
        assert "4" in rule.message

    def test_collector_is_only_restricted(self):
        rule = office_charge_rule(5, PaymentChannel.COLLECTOR)
        assert rule.status == ChargeRuleStatus.RESTRICTED


class TestManualAllocation:
    """Tests for caller-selected periods."""

    def setup_method(self):
        self.allocator = PaymentAllocator()

    def test_single_period_with_three_due_violates_arrears_rule(self, ledger):
        rows = ledger(
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
        )
        intent = PaymentIntent.manual([("2025-01", _m("10000"))])

        with pytest.raises(ArrearsRuleViolationError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=intent, months_due=3)

        assert exc_info.value.min_periods_to_charge == 2
        assert exc_info.value.months_due == 3
        assert exc_info.value.selected_count == 1

    def test_two_periods_with_three_due_accepted(self, ledger):
        rows = ledger(
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
        )
        intent = PaymentIntent.manual(
            [("2025-02", _m("10000")), ("2025-01", _m("10000"))]
        )
        result = self.allocator.allocate(ledger=rows, intent=intent)

        assert result.strategy == PaymentStrategy.MANUAL
        assert result.periods_applied == ("2025-01", "2025-02")
        assert result.total_applied == _m("20000")
        assert result.min_periods_to_charge == 2
        assert result.remainder_as_credit.is_zero
        assert result.credit_period is None

    def test_future_period_rejected(self, ledger):
        rows = ledger(("2025-03", "10000", "0"), ("2025-04", "10000", "0"))
        intent = PaymentIntent.manual([("2025-04", _m("10000"))])

        with pytest.raises(InvalidPeriodSelectionError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=intent)

        assert exc_info.value.period == "2025-04"
        assert exc_info.value.status == "future"

    def test_paid_period_rejected(self, ledger):
        rows = ledger(("2025-01", "10000", "10000"))
        intent = PaymentIntent.manual([("2025-01", _m("1"))])
        with pytest.raises(InvalidPeriodSelectionError, match="status: paid"):
            self.allocator.allocate(ledger=rows, intent=intent)

    def test_unknown_period_rejected(self, ledger):
        rows = ledger(("2025-01", "10000", "0"))
        intent = PaymentIntent.manual([("2024-06", _m("1"))])
        with pytest.raises(InvalidPeriodSelectionError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=intent)
        assert exc_info.value.status == "unknown"

    def test_duplicate_period_rejected(self, ledger):
        rows = ledger(("2025-01", "10000", "0"))
        intent = PaymentIntent.manual([("2025-01", _m("100")), ("2025-01", _m("100"))])
        with pytest.raises(InvalidPeriodSelectionError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=intent)
        assert exc_info.value.reason == "duplicate"

    def test_amount_above_balance_rejected(self, ledger):
        rows = ledger(("2025-02", "10000", "3000"))
        intent = PaymentIntent.manual([("2025-02", _m("7000.01"))])

        with pytest.raises(AmountExceedsBalanceError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=intent)

        assert exc_info.value.period == "2025-02"
        assert exc_info.value.balance == "7000"

    def test_selection_checked_before_arrears_rule(self, ledger):
        """A future period is reported even when too few periods are named."""
        rows = ledger(
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
            ("2025-04", "10000", "0"),
        )
        intent = PaymentIntent.manual([("2025-04", _m("10000"))])
        with pytest.raises(InvalidPeriodSelectionError):
            self.allocator.allocate(ledger=rows, intent=intent, channel=PaymentChannel.COLLECTOR)

    def test_partial_payment_of_partial_period(self, ledger):
        rows = ledger(("2025-02", "10000", "3000"))
        intent = PaymentIntent.manual([("2025-02", _m("2000"))])
        result = self.allocator.allocate(ledger=rows, intent=intent)

        line = result.applied_breakdown[0]
        assert line.balance_before == _m("7000")
        assert line.balance_after == _m("5000")
        assert not line.settles_period

    def test_rejection_logged(self, ledger, captured_logs):
        rows = ledger(("2025-04", "10000", "0"))
        with pytest.raises(InvalidPeriodSelectionError):
            self.allocator.allocate(
                ledger=rows, intent=PaymentIntent.manual([("2025-04", _m("1"))])
            )
        rejected = [r for r in captured_logs() if r["message"] == "payment_allocation_rejected"]
        assert rejected[0]["error_code"] == "INVALID_PERIOD_SELECTION"


class TestAutoAllocation:
    """Tests for oldest-first settlement."""

    def setup_method(self):
        self.allocator = PaymentAllocator()

    def test_settles_every_open_period_oldest_first(self, ledger):
        rows = ledger(
            ("2025-03", "10000", "0"),
            ("2025-01", "10000", "4000"),
            ("2025-02", "10000", "10000"),
            ("2025-04", "10000", "0"),
        )
        result = self.allocator.allocate(ledger=rows, intent=PaymentIntent.auto())

        assert result.periods_applied == ("2025-01", "2025-03")
        assert result.total_applied == _m("16000")
        assert all(line.settles_period for line in result.applied_breakdown)

    def test_shown_amount_matching_live_total_accepted(self, ledger):
        rows = ledger(("2025-01", "10000", "0"), ("2025-02", "10000", "2500"))
        result = self.allocator.allocate(
            ledger=rows, intent=PaymentIntent.auto(_m("17500"))
        )
        assert result.total_applied == _m("17500")

    def test_stale_amount_rejected(self, ledger):
        rows = ledger(("2025-01", "10000", "0"), ("2025-02", "10000", "2500"))
        with pytest.raises(StaleLedgerError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=PaymentIntent.auto(_m("20000")))
        assert exc_info.value.expected == "20000"
        assert exc_info.value.actual == "17500"

    def test_nothing_due_returns_empty_result(self, ledger, captured_logs):
        rows = ledger(("2025-01", "10000", "10000"), ("2025-05", "10000", "0"))
        result = self.allocator.allocate(ledger=rows, intent=PaymentIntent.auto())

        assert result.is_empty
        assert result.total_applied.is_zero
        assert any(r["message"] == "payment_allocation_nothing_due" for r in captured_logs())

    def test_auto_allowed_when_restricted(self, ledger):
        rows = ledger(
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
        )
        result = self.allocator.allocate(ledger=rows, intent=PaymentIntent.auto())
        assert result.months_due == 3
        assert len(result.applied_breakdown) == 3

    def test_blocked_in_office(self, ledger):
        rows = ledger(
            ("2024-12", "10000", "0"),
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
        )
        with pytest.raises(PolicyBlockedError) as exc_info:
            self.allocator.allocate(ledger=rows, intent=PaymentIntent.auto())
        assert exc_info.value.months_due == 4
        assert exc_info.value.channel == "office"

    def test_collector_may_collect_when_office_blocked(self, ledger):
        rows = ledger(
            ("2024-12", "10000", "0"),
            ("2025-01", "10000", "0"),
            ("2025-02", "10000", "0"),
            ("2025-03", "10000", "0"),
        )
        result = self.allocator.allocate(
            ledger=rows, intent=PaymentIntent.auto(), channel=PaymentChannel.COLLECTOR
        )
        assert result.total_applied == _m("40000")

    def test_none_ledger_rejected(self):
        with pytest.raises(TypeError):
            self.allocator.allocate(ledger=None, intent=PaymentIntent.auto())


class TestPaymentIntent:
    """Tests for intent shape validation."""

    def test_manual_requires_breakdown(self):
        with pytest.raises(ValueError, match="non-empty breakdown"):
            PaymentIntent(strategy=PaymentStrategy.MANUAL)

    def test_auto_rejects_breakdown(self):
        with pytest.raises(ValueError, match="do not take a breakdown"):
            PaymentIntent(
                strategy="auto",
                breakdown=(BreakdownEntry("2025-01", _m("1")),),
            )

    def test_breakdown_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="must be positive"):
            BreakdownEntry("2025-01", _m("0"))

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            PaymentIntent.auto(_m("-1"))

    def test_manual_amount_must_match_breakdown(self):
        with pytest.raises(ValueError, match="does not match"):
            PaymentIntent(
                strategy=PaymentStrategy.MANUAL,
                amount=_m("5"),
                breakdown=(BreakdownEntry("2025-01", _m("4")),),
            )

    def test_breakdown_total(self):
        intent = PaymentIntent.manual([("2025-01", _m("4")), ("2025-02", _m("6"))])
        assert intent.breakdown_total == _m("10")
