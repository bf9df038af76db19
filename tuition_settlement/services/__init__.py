"""Business logic services."""

from tuition_settlement.services.tuition_registry import TuitionPostRegistry
from tuition_settlement.services.application_ledger import ApplicationLedger
from tuition_settlement.services.settlement_coordinator import (
    SettlementCoordinator,
    Settlement,
)
from tuition_settlement.services.notifications import (
    NotificationEmitter,
    LoggingNotificationEmitter,
)

__all__ = [
    "TuitionPostRegistry",
    "ApplicationLedger",
    "SettlementCoordinator",
    "Settlement",
    "NotificationEmitter",
    "LoggingNotificationEmitter",
]
