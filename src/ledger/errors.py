"""
Typed Ledger Errors

Inside the engine, a business-rule violation is raised as a LedgerError
subclass carrying a machine-readable code. The FinanceService catches
them at the boundary and turns them into OperationResult failures, so
callers never see these exceptions.
"""

from decimal import Decimal
from uuid import UUID

from src.models.results import LedgerErrorCode


class LedgerError(Exception):
    """Base exception for accounting rule violations."""

    code: LedgerErrorCode = LedgerErrorCode.INVALID_INPUT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Ledger

class UnbalancedTransactionError(LedgerError):
    code = LedgerErrorCode.UNBALANCED

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Transaction is unbalanced: debits {total_debit} != credits {total_credit}"
        )


class EmptyTransactionError(LedgerError):
    code = LedgerErrorCode.EMPTY_TRANSACTION

    def __init__(self):
        super().__init__("Transaction has no nonzero lines")


class UnknownAccountError(LedgerError):
    code = LedgerErrorCode.UNKNOWN_ACCOUNT

    def __init__(self, account_id: UUID):
        self.account_id = account_id
        super().__init__(f"Transaction references unknown account: {account_id}")


# Accounts

class AccountNotFoundError(LedgerError):
    code = LedgerErrorCode.ACCOUNT_NOT_FOUND

    def __init__(self, reference: object):
        self.reference = reference
        super().__init__(f"Account not found: {reference}")


class DuplicateAccountError(LedgerError):
    code = LedgerErrorCode.DUPLICATE_ACCOUNT

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An account named '{name}' already exists")


class AccountInUseError(LedgerError):
    code = LedgerErrorCode.ACCOUNT_IN_USE

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Account '{name}' is referenced by recorded transactions")


# Funding policy

class InvalidSourceAccountError(LedgerError):
    code = LedgerErrorCode.INVALID_SOURCE_ACCOUNT

    def __init__(self, name: str, allowed: list[str]):
        super().__init__(
            f"'{name}' cannot be used here; only {', '.join(allowed)} are allowed"
        )


class InvalidDestinationAccountError(LedgerError):
    code = LedgerErrorCode.INVALID_DESTINATION_ACCOUNT

    def __init__(self, name: str, allowed: list[str]):
        super().__init__(
            f"Sale proceeds cannot go to '{name}'; only {', '.join(allowed)} are allowed"
        )


class InsufficientFundsError(LedgerError):
    code = LedgerErrorCode.INSUFFICIENT_FUNDS

    def __init__(self, name: str, balance: Decimal, requested: Decimal):
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient funds in {name}: balance {balance}, requested {requested}"
        )


# Credits

class CreditNotFoundError(LedgerError):
    code = LedgerErrorCode.CREDIT_NOT_FOUND

    def __init__(self, credit_id: UUID):
        super().__init__(f"Credit not found: {credit_id}")


class CreditAlreadyCompletedError(LedgerError):
    code = LedgerErrorCode.ALREADY_COMPLETED

    def __init__(self, client_name: str):
        super().__init__(f"The credit to {client_name} is already fully paid")


class CreditNotDeletableError(LedgerError):
    code = LedgerErrorCode.CREDIT_NOT_DELETABLE

    def __init__(self, client_name: str, status: str):
        super().__init__(
            f"The credit to {client_name} is {status}; only credits without payments can be deleted"
        )


# Investments

class InvestmentNotFoundError(LedgerError):
    code = LedgerErrorCode.INVESTMENT_NOT_FOUND

    def __init__(self, investment_id: UUID):
        super().__init__(f"Investment not found: {investment_id}")


class InvestmentAlreadySoldError(LedgerError):
    code = LedgerErrorCode.ALREADY_SOLD

    def __init__(self, name: str):
        super().__init__(f"Investment '{name}' has already been sold")


# Period close

class PeriodAlreadyClosedError(LedgerError):
    code = LedgerErrorCode.ALREADY_CLOSED

    def __init__(self, month: int, year: int):
        super().__init__(f"Period {year}-{month:02d} is already closed")


class NothingToCloseError(LedgerError):
    code = LedgerErrorCode.NOTHING_TO_CLOSE

    def __init__(self, month: int, year: int):
        super().__init__(f"No income or expense to close for {year}-{month:02d}")


class CapitalAccountMissingError(LedgerError):
    code = LedgerErrorCode.CAPITAL_ACCOUNT_MISSING

    def __init__(self, name: str):
        super().__init__(f"Capital account '{name}' does not exist")


class InvalidPeriodError(LedgerError):
    code = LedgerErrorCode.INVALID_PERIOD

    def __init__(self, month: int, year: int):
        super().__init__(f"Invalid period: month={month}, year={year}")
