"""
Unit tests for PayoutService — the administrator's payout queue.
"""

from unittest.mock import AsyncMock

import pytest

from investment_engine.core.exceptions import (
    ForbiddenException,
    InvalidEntryState,
    NotFoundException,
)
from investment_engine.models.ledger_entry import LedgerEntryStatus
from investment_engine.services.payout_service import PayoutService

from .conftest import ADMIN, NOW, OWNER, make_entry


@pytest.fixture()
def ledger_repo():
    return AsyncMock()


@pytest.fixture()
def service(ledger_repo, clock_service, locks):
    return PayoutService(ledger_repo, clock_service, locks)


class TestSingleDecisions:
    @pytest.mark.asyncio
    async def test_approve_pending(self, service, ledger_repo):
        entry = make_entry()
        ledger_repo.get.return_value = entry

        result = await service.approve(entry.id, ADMIN)

        assert result.status == LedgerEntryStatus.APPROVED
        assert result.status_changed_at == NOW
        ledger_repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_repeat_approval_does_not_commit(self, service, ledger_repo):
        ledger_repo.get.return_value = make_entry(status=LedgerEntryStatus.APPROVED)

        result = await service.approve("DIST-12-1", ADMIN)

        assert result.status == LedgerEntryStatus.APPROVED
        ledger_repo.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_with_reason(self, service, ledger_repo):
        ledger_repo.get.return_value = make_entry()

        result = await service.reject("DIST-12-1", ADMIN, "account closed")

        assert result.status == LedgerEntryStatus.REJECTED
        assert result.rejection_reason == "account closed"
        ledger_repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_received(self, service, ledger_repo):
        ledger_repo.get.return_value = make_entry(status=LedgerEntryStatus.APPROVED)
        result = await service.mark_received("DIST-12-1", ADMIN)
        assert result.status == LedgerEntryStatus.RECEIVED

    @pytest.mark.asyncio
    async def test_decision_uses_row_reloaded_under_lock(self, service, ledger_repo):
        stale = make_entry()
        current = make_entry(status=LedgerEntryStatus.REJECTED)
        ledger_repo.get.side_effect = [stale, current]

        with pytest.raises(InvalidEntryState):
            await service.approve("DIST-12-1", ADMIN)

        assert ledger_repo.get.await_args_list[-1].kwargs == {"refresh": True}
        assert current.status == LedgerEntryStatus.REJECTED
        ledger_repo.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_entry(self, service, ledger_repo):
        ledger_repo.get.return_value = None
        with pytest.raises(NotFoundException):
            await service.approve("DIST-99-1", ADMIN)

    @pytest.mark.asyncio
    async def test_investor_cannot_decide(self, service, ledger_repo):
        with pytest.raises(ForbiddenException):
            await service.approve("DIST-12-1", OWNER)
        with pytest.raises(ForbiddenException):
            await service.list_pending(OWNER)
        ledger_repo.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_pending(self, service, ledger_repo):
        ledger_repo.get_pending.return_value = [make_entry()]
        result = await service.list_pending(ADMIN, skip=10, limit=5)
        assert len(result) == 1
        ledger_repo.get_pending.assert_awaited_once_with(skip=10, limit=5)


class TestBulkApprove:
    @pytest.mark.asyncio
    async def test_each_entry_reported(self, service, ledger_repo):
        entries = {
            "DIST-12-1": make_entry(period=1),
            "DIST-12-2": make_entry(period=2, status=LedgerEntryStatus.APPROVED),
            "DIST-12-3": make_entry(period=3, status=LedgerEntryStatus.REJECTED),
        }
        ledger_repo.get.side_effect = lambda entry_id, refresh=False: entries.get(entry_id)

        results = await service.approve_many(
            ["DIST-12-1", "DIST-12-2", "DIST-12-3", "DIST-12-9"], ADMIN
        )

        by_id = {r.entry_id: r for r in results}
        assert by_id["DIST-12-1"].ok and by_id["DIST-12-1"].changed
        assert by_id["DIST-12-2"].ok and not by_id["DIST-12-2"].changed
        assert not by_id["DIST-12-3"].ok
        assert by_id["DIST-12-3"].code == "InvalidEntryState"
        assert by_id["DIST-12-9"].code == "NotFound"
        assert ledger_repo.commit.await_count == 1

    @pytest.mark.asyncio
    async def test_duplicate_ids_processed_once(self, service, ledger_repo):
        ledger_repo.get.return_value = make_entry()

        results = await service.approve_many(["DIST-12-1", "DIST-12-1"], ADMIN)

        assert len(results) == 1
        assert {c.args for c in ledger_repo.get.await_args_list} == {("DIST-12-1",)}
        ledger_repo.commit.assert_awaited_once()
