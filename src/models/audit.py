"""
Audit Models for the Ledger

Every operation that changes the books, and every rejected attempt,
produces an AuditEvent. Events are logged as structured records so the
history of the books can be reconstructed from the log alone.

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.common import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Chart of accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    BALANCE_CORRECTED = "balance_corrected"
    ACCOUNTS_SEEDED = "accounts_seeded"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"

    # Credits
    CREDIT_GRANTED = "credit_granted"
    CREDIT_UPDATED = "credit_updated"
    CREDIT_DELETED = "credit_deleted"
    PAYMENT_RECORDED = "payment_recorded"

    # Investments
    INVESTMENT_PURCHASED = "investment_purchased"
    INVESTMENT_UPDATED = "investment_updated"
    INVESTMENT_DELETED = "investment_deleted"
    INVESTMENT_SOLD = "investment_sold"

    # Period close
    PERIOD_CLOSED = "period_closed"

    # Outcomes and synchronization
    OPERATION_REJECTED = "operation_rejected"
    REPLICATION_FAILED = "replication_failed"
    SNAPSHOT_APPLIED = "snapshot_applied"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'credit', 'transaction', 'account')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.credit_granted(credit_id, client, principal, tx_id)
        event = AuditEventBuilder.operation_rejected("sell_investment", code, message)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        name: str,
        account_type: str,
        opening_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name} ({account_type})",
            details={
                "name": name,
                "account_type": account_type,
                "opening_balance": opening_balance,
            },
        )

    @staticmethod
    def account_updated(
        account_id: UUID,
        changes: dict[str, Any],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(sorted(changes))}",
            details={"changes": changes},
        )

    @staticmethod
    def balance_corrected(
        account_id: UUID,
        name: str,
        old_balance: str,
        new_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_CORRECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=f"Balance of {name} overwritten outside the ledger",
            details={
                "old_balance": old_balance,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def account_deleted(account_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account deleted: {name}",
            details={"name": name},
        )

    @staticmethod
    def accounts_seeded(names: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNTS_SEEDED,
            entity_type="account",
            description=f"Seeded {len(names)} default accounts",
            details={"accounts": names},
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: UUID,
        description: str,
        total: str,
        line_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction recorded ({line_count} lines, {total})",
            details={
                "description": description,
                "total": total,
                "line_count": line_count,
            },
        )

    @staticmethod
    def credit_granted(
        credit_id: UUID,
        client_name: str,
        principal: str,
        total_due: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_GRANTED,
            entity_type="credit",
            entity_id=credit_id,
            description=f"Credit granted to {client_name}: {principal}",
            details={
                "principal": principal,
                "total_due": total_due,
                "transaction_id": str(transaction_id),
            },
        )

    @staticmethod
    def credit_updated(credit_id: UUID, changes: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_UPDATED,
            entity_type="credit",
            entity_id=credit_id,
            description=f"Credit updated: {', '.join(sorted(changes))}",
            details={"changes": changes},
        )

    @staticmethod
    def credit_deleted(
        credit_id: UUID,
        client_name: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_DELETED,
            entity_type="credit",
            entity_id=credit_id,
            description=f"Credit to {client_name} deleted and funding reversed",
            details={"reversal_transaction_id": str(transaction_id)},
        )

    @staticmethod
    def payment_recorded(
        credit_id: UUID,
        amount: str,
        remaining: str,
        status: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="credit",
            entity_id=credit_id,
            description=f"Payment of {amount} recorded, {remaining} remaining",
            details={
                "amount": amount,
                "remaining": remaining,
                "status": status,
                "transaction_id": str(transaction_id),
            },
        )

    @staticmethod
    def investment_purchased(
        investment_id: UUID,
        name: str,
        cost: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_PURCHASED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment purchased: {name} for {cost}",
            details={
                "cost": cost,
                "transaction_id": str(transaction_id),
            },
        )

    @staticmethod
    def investment_updated(investment_id: UUID, changes: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_UPDATED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment updated: {', '.join(sorted(changes))}",
            details={"changes": changes},
        )

    @staticmethod
    def investment_deleted(
        investment_id: UUID,
        name: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_DELETED,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment {name} deleted and purchase reversed",
            details={"reversal_transaction_id": str(transaction_id)},
        )

    @staticmethod
    def investment_sold(
        investment_id: UUID,
        name: str,
        total: str,
        realized_gain: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_SOLD,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment sold: {name} for {total}",
            details={
                "total": total,
                "realized_gain": realized_gain,
                "transaction_id": str(transaction_id),
            },
        )

    @staticmethod
    def period_closed(
        closure_id: UUID,
        month: int,
        year: int,
        net_income: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_CLOSED,
            entity_type="closure",
            entity_id=closure_id,
            description=f"Period {year}-{month:02d} closed with net income {net_income}",
            details={
                "month": month,
                "year": year,
                "net_income": net_income,
                "transaction_id": str(transaction_id),
            },
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Operation rejected: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def replication_failed(
        kind: str,
        action: str,
        record_id: Optional[UUID],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPLICATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=kind,
            entity_id=record_id,
            description=f"Remote {action} on {kind} failed; local state kept",
            details={"action": action},
            error_message=error_message,
        )

    @staticmethod
    def snapshot_applied(kind: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            description=f"Replaced local {kind} with remote snapshot",
            details={"record_count": record_count},
        )
