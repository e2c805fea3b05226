"""Read-only ledger reports."""

from src.queries.reports import (
    BalanceDrift,
    FinanceSummary,
    TrialBalance,
    TrialBalanceRow,
    find_balance_drift,
    replay_balances,
    summarize,
    transactions_for_period,
    trial_balance,
)

__all__ = [
    "BalanceDrift",
    "FinanceSummary",
    "TrialBalance",
    "TrialBalanceRow",
    "find_balance_drift",
    "replay_balances",
    "summarize",
    "transactions_for_period",
    "trial_balance",
]
