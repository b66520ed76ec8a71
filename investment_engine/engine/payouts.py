"""
Payout approval gate.

Decides whether a scheduled ledger entry settles automatically or waits for
an administrator, and applies the administrator's decision.

    PENDING / SUBMITTED → APPROVED  (approve; repeat approvals are no-ops)
    PENDING → REJECTED              (reject)
    APPROVED → RECEIVED             (payment rail confirmed)

``rejected`` and ``received`` are terminal: once there, an entry is never
modified again.
"""

import logging
from datetime import datetime
from typing import Optional

from investment_engine.core.exceptions import InvalidEntryState
from investment_engine.engine.clock import as_utc
from investment_engine.models.ledger_entry import (
    TERMINAL_ENTRY_STATUSES,
    LedgerEntry,
    LedgerEntryStatus,
    LedgerEntryType,
)

logger = logging.getLogger(__name__)

_ALREADY_APPROVED = frozenset({LedgerEntryStatus.APPROVED, LedgerEntryStatus.RECEIVED})


def should_auto_approve(entry: LedgerEntry, auto_approve_distributions: bool) -> bool:
    """
    Contributions stay inside the investment, so nothing needs sign-off.
    Distributions move money out and follow the global flag.  Everything
    else (withdrawals, opening entries) is decided elsewhere.
    """
    entry_type = LedgerEntryType(entry.type)
    if entry_type == LedgerEntryType.CONTRIBUTION:
        return True
    if entry_type == LedgerEntryType.DISTRIBUTION:
        return bool(auto_approve_distributions)
    return False


def initial_status(entry: LedgerEntry, auto_approve_distributions: bool) -> LedgerEntryStatus:
    if should_auto_approve(entry, auto_approve_distributions):
        return LedgerEntryStatus.APPROVED
    return LedgerEntryStatus.PENDING


def _ensure_not_final(entry: LedgerEntry, action: str) -> LedgerEntryStatus:
    status = LedgerEntryStatus(entry.status)
    if status in TERMINAL_ENTRY_STATUSES:
        raise InvalidEntryState(f"Entry {entry.id} is {status.value} and cannot be {action}")
    return status


def approve(entry: LedgerEntry, now: datetime) -> bool:
    """
    Approve ``entry``.

    Returns ``True`` if the status changed and ``False`` for a repeat approval
    of an already approved/received entry.  A rejected entry cannot be
    approved.
    """
    status = LedgerEntryStatus(entry.status)
    if status in _ALREADY_APPROVED:
        logger.debug("Entry %s already %s; approval is a no-op", entry.id, status.value)
        return False
    _ensure_not_final(entry, "approved")
    entry.status = LedgerEntryStatus.APPROVED
    entry.status_changed_at = as_utc(now)
    logger.info("Entry %s approved", entry.id, extra={"entry_id": entry.id})
    return True


def reject(entry: LedgerEntry, reason: Optional[str], now: datetime) -> None:
    """Reject a pending entry; any other status raises :class:`InvalidEntryState`."""
    status = _ensure_not_final(entry, "rejected")
    if status != LedgerEntryStatus.PENDING:
        raise InvalidEntryState(
            f"Entry {entry.id} is {status.value}; only pending entries can be rejected"
        )
    entry.status = LedgerEntryStatus.REJECTED
    entry.rejection_reason = reason
    entry.status_changed_at = as_utc(now)
    logger.info(
        "Entry %s rejected: %s", entry.id, reason or "no reason given",
        extra={"entry_id": entry.id},
    )


def mark_received(entry: LedgerEntry, now: datetime) -> bool:
    """Record that an approved payout arrived.  Repeat calls are no-ops."""
    if entry.status == LedgerEntryStatus.RECEIVED:
        return False
    status = _ensure_not_final(entry, "marked received")
    if status != LedgerEntryStatus.APPROVED:
        raise InvalidEntryState(
            f"Entry {entry.id} is {status.value}; only approved entries can be received"
        )
    entry.status = LedgerEntryStatus.RECEIVED
    entry.status_changed_at = as_utc(now)
    logger.info("Entry %s received", entry.id, extra={"entry_id": entry.id})
    return True
