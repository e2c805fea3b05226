"""
Audit Logger

DESIGN DECISION: Every change to the books is logged, and so is every
rejected attempt. This provides:
1. Complete traceability of balances
2. Debugging capability when local and remote state drift
3. A readable history of what the user did

The audit logger:
- Is synchronous: ledger operations are synchronous and must not wait
- Never raises: a logging failure must not undo a recorded transaction
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events are rendered as JSON through structlog. The most recent
    events are also kept in memory so callers (and tests) can inspect
    what happened during a session.
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("ledger.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at a level matching its severity."""
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            self._logger.error("audit_log_failed", error=str(e), event_id=str(event.event_id))

    def log_account_created(self, account_id: UUID, name: str, account_type: str, opening_balance: str) -> None:
        self.log(AuditEventBuilder.account_created(account_id, name, account_type, opening_balance))

    def log_account_updated(self, account_id: UUID, changes: dict[str, Any]) -> None:
        self.log(AuditEventBuilder.account_updated(account_id, changes))

    def log_balance_corrected(self, account_id: UUID, name: str, old_balance: str, new_balance: str) -> None:
        self.log(AuditEventBuilder.balance_corrected(account_id, name, old_balance, new_balance))

    def log_account_deleted(self, account_id: UUID, name: str) -> None:
        self.log(AuditEventBuilder.account_deleted(account_id, name))

    def log_accounts_seeded(self, names: list[str]) -> None:
        self.log(AuditEventBuilder.accounts_seeded(names))

    def log_transaction_recorded(
        self,
        transaction_id: UUID,
        description: str,
        total: str,
        line_count: int,
    ) -> None:
        self.log(AuditEventBuilder.transaction_recorded(transaction_id, description, total, line_count))

    def log_credit_granted(
        self,
        credit_id: UUID,
        client_name: str,
        principal: str,
        total_due: str,
        transaction_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.credit_granted(credit_id, client_name, principal, total_due, transaction_id))

    def log_credit_updated(self, credit_id: UUID, changes: dict[str, Any]) -> None:
        self.log(AuditEventBuilder.credit_updated(credit_id, changes))

    def log_credit_deleted(self, credit_id: UUID, client_name: str, transaction_id: UUID) -> None:
        self.log(AuditEventBuilder.credit_deleted(credit_id, client_name, transaction_id))

    def log_payment_recorded(
        self,
        credit_id: UUID,
        amount: str,
        remaining: str,
        status: str,
        transaction_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.payment_recorded(credit_id, amount, remaining, status, transaction_id))

    def log_investment_purchased(self, investment_id: UUID, name: str, cost: str, transaction_id: UUID) -> None:
        self.log(AuditEventBuilder.investment_purchased(investment_id, name, cost, transaction_id))

    def log_investment_updated(self, investment_id: UUID, changes: dict[str, Any]) -> None:
        self.log(AuditEventBuilder.investment_updated(investment_id, changes))

    def log_investment_deleted(self, investment_id: UUID, name: str, transaction_id: UUID) -> None:
        self.log(AuditEventBuilder.investment_deleted(investment_id, name, transaction_id))

    def log_investment_sold(
        self,
        investment_id: UUID,
        name: str,
        total: str,
        realized_gain: str,
        transaction_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.investment_sold(investment_id, name, total, realized_gain, transaction_id))

    def log_period_closed(
        self,
        closure_id: UUID,
        month: int,
        year: int,
        net_income: str,
        transaction_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.period_closed(closure_id, month, year, net_income, transaction_id))

    def log_operation_rejected(self, operation: str, error_code: str, error_message: str) -> None:
        self.log(AuditEventBuilder.operation_rejected(operation, error_code, error_message))

    def log_replication_failed(
        self,
        kind: str,
        action: str,
        record_id: Optional[UUID],
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.replication_failed(kind, action, record_id, error_message))

    def log_snapshot_applied(self, kind: str, record_count: int) -> None:
        self.log(AuditEventBuilder.snapshot_applied(kind, record_count))
