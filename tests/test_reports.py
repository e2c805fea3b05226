"""Tests for the derived ledger reports."""

from datetime import date
from decimal import Decimal

from src.models.transaction import TransactionLine
from src.queries import (
    find_balance_drift,
    summarize,
    transactions_for_period,
    trial_balance,
)


class TestSummary:
    """Tests for summarize()."""

    def test_empty_books(self, registry, ledger_settings):
        """Test the default chart with no credits or investments."""
        summary = summarize([], [], registry.accounts, ledger_settings)
        assert summary.credit_count == 0
        assert summary.total_credits == Decimal("0")
        assert summary.cash_position == Decimal("400")

    def test_totals(self, credit_manager, investment_manager, registry, ledger_settings):
        """Test credit, investment and cash figures after some activity."""
        cash = registry.get_by_name("Cash")
        credit = credit_manager.grant_credit(
            "Ana", 200, 10, date(2024, 1, 1), date(2024, 6, 1), cash.id
        )
        credit_manager.record_payment(credit.id, 110, date(2024, 2, 1), "", cash.id)
        investment = investment_manager.purchase("Phones", "", 100, 10, cash.id)
        investment_manager.purchase("Bike", "", 50, 5, cash.id)
        investment_manager.sell(investment.id, cash.id)

        summary = summarize(
            credit_manager.credits,
            investment_manager.investments,
            registry.accounts,
            ledger_settings,
        )
        assert summary.total_credits == Decimal("220.00")
        assert summary.total_pending == Decimal("110.00")
        assert summary.total_investments == Decimal("165.00")
        assert summary.total_estimated_gains == Decimal("15.00")
        assert summary.total_realized_gains == Decimal("10.00")
        # 400 - 200 + 110 - 100 - 50 + 110
        assert summary.cash_position == Decimal("270.00")
        assert summary.investment_count == 2


class TestTrialBalance:
    """Tests for trial_balance()."""

    def test_default_chart_balances(self, registry):
        """Test debits equal credits for the opening chart."""
        report = trial_balance(registry.accounts)
        assert report.total_debit == Decimal("1000")
        assert report.total_credit == Decimal("1000")
        assert report.difference == Decimal("0")

    def test_balanced_after_activity(self, registry, ledger):
        """Test recording balanced transactions keeps the books balanced."""
        cash = registry.get_by_name("Cash")
        expense = registry.get_by_name("Operating Expense")
        interest = registry.get_by_name("Interest Income")
        ledger.record(
            date(2024, 3, 1), "Rent",
            [TransactionLine.debit_line(expense.id, 80), TransactionLine.credit_line(cash.id, 80)],
        )
        ledger.record(
            date(2024, 3, 2), "Interest",
            [TransactionLine.debit_line(cash.id, 15), TransactionLine.credit_line(interest.id, 15)],
        )
        report = trial_balance(registry.accounts)
        assert report.difference == Decimal("0")
        assert report.total_debit == Decimal("1015.00")

    def test_negative_balance_flips_side(self, registry, ledger):
        """Test an overdrawn asset appears in the credit column."""
        bank = registry.get_by_name("Bank")
        expense = registry.get_by_name("Operating Expense")
        ledger.record(
            date(2024, 3, 1), "Overdraft",
            [TransactionLine.debit_line(expense.id, 30), TransactionLine.credit_line(bank.id, 30)],
        )
        row = next(r for r in trial_balance(registry.accounts).rows if r.name == "Bank")
        assert row.debit == Decimal("0")
        assert row.credit == Decimal("30.00")


class TestDrift:
    """Tests for find_balance_drift()."""

    def test_no_drift_after_ledger_activity(self, registry, ledger):
        """Test balances moved only by the ledger replay exactly."""
        cash = registry.get_by_name("Cash")
        bank = registry.get_by_name("Bank")
        ledger.record(
            date(2024, 3, 1), "Deposit",
            [TransactionLine.debit_line(bank.id, 40), TransactionLine.credit_line(cash.id, 40)],
        )
        assert find_balance_drift(registry.accounts, ledger.transactions) == []

    def test_direct_balance_change_is_reported(self, registry, ledger):
        """Test a balance changed outside the ledger shows up as drift."""
        cash = registry.get_by_name("Cash")
        cash.balance = Decimal("390.00")

        drift = find_balance_drift(registry.accounts, ledger.transactions)
        assert len(drift) == 1
        assert drift[0].name == "Cash"
        assert drift[0].difference == Decimal("-10.00")


class TestTransactionsForPeriod:
    """Tests for transactions_for_period()."""

    def test_filters_and_sorts_by_date(self, registry, ledger):
        """Test only the month's transactions are returned, oldest first."""
        cash = registry.get_by_name("Cash")
        bank = registry.get_by_name("Bank")

        def move(day):
            return ledger.record(
                day, "Move",
                [TransactionLine.debit_line(bank.id, 1), TransactionLine.credit_line(cash.id, 1)],
            )

        late = move(date(2024, 3, 30))
        move(date(2024, 4, 1))
        early = move(date(2024, 3, 2))
        move(date(2023, 3, 15))

        assert transactions_for_period(ledger.transactions, 3, 2024) == [early, late]
