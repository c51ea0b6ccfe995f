"""
Unit Tests for racing ledger operations

A competing operation is committed after a transaction body has read its
documents and before it commits. The slower operation must abort with
ConflictError and leave the winner's effects applied exactly once.
"""

import pytest
from decimal import Decimal

from ledger.api import with_conflict_retry
from ledger.config import AppConfigSource
from ledger.errors import AlreadyExistsError, ConflictError, InvalidStateError
from ledger.models import RequestStatus
from ledger.service import LedgerService
from ledger.store import InMemoryStore

from conftest import make_settings, set_fields


class InterleavingStore(InMemoryStore):
    """Runs one queued competitor between the next body's reads and its commit."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.competitor = None

    def run_transaction(self, body):
        tx = self.transaction()
        result = body(tx)
        competitor, self.competitor = self.competitor, None
        if competitor is not None:
            competitor()
        tx.commit()
        return result


@pytest.fixture
def racing(clock):
    service = LedgerService(
        store=InterleavingStore(clock),
        config=AppConfigSource(settings=make_settings()),
        timezone_name="Asia/Kolkata",
    )
    service.create_account("player-1", email="player@example.com")
    return service


class TestRacingApprovals:
    def test_interleaved_deposit_approvals(self, racing):
        """Two admins approving one request credit it once."""
        request = racing.create_add_fund_request("player-1", Decimal("100"), "little", "UPI-1")
        racing.store.competitor = lambda: racing.approve_deposit(
            request.id, "player-1", Decimal("100"), "little", "admin-2",
        )

        with pytest.raises(ConflictError):
            racing.approve_deposit(request.id, "player-1", Decimal("100"), "little", "admin-1")

        assert racing.get_account("player-1").balance("little") == Decimal("100")
        assert racing.get_global_stats().total_deposited == Decimal("100")
        assert racing.get_ledger_history("player-1").total_count == 1
        approved = racing.get_add_fund_request(request.id)
        assert approved.status == RequestStatus.APPROVED
        assert approved.processed_by_admin_id == "admin-2"

    def test_retried_loser_sees_processed_request(self, racing):
        request = racing.create_add_fund_request("player-1", Decimal("100"), "little", "UPI-1")
        racing.store.competitor = lambda: racing.approve_deposit(
            request.id, "player-1", Decimal("100"), "little", "admin-2",
        )

        with pytest.raises(InvalidStateError):
            with_conflict_retry(
                racing.approve_deposit, request.id, "player-1", Decimal("100"), "little", "admin-1",
            )

        assert racing.get_account("player-1").balance("little") == Decimal("100")
        assert racing.get_ledger_history("player-1").total_count == 1

    def test_interleaved_withdrawals_never_overdraw(self, racing):
        """Two withdrawals that each fit alone cannot both leave the wallet."""
        set_fields(racing, "player-1", {"balances.little": Decimal("300")})
        first = racing.create_withdrawal_request("player-1", Decimal("200"), "little", "upi", upi_id="p@upi")
        second = racing.create_withdrawal_request("player-1", Decimal("200"), "little", "upi", upi_id="p@upi")
        racing.store.competitor = lambda: racing.approve_withdrawal(
            second.id, "player-1", Decimal("200"), "little", "", "admin-2",
        )

        with pytest.raises(ConflictError):
            racing.approve_withdrawal(first.id, "player-1", Decimal("200"), "little", "", "admin-1")

        assert racing.get_account("player-1").balance("little") == Decimal("100")
        stats = racing.get_global_stats()
        assert stats.total_withdrawn == Decimal("200")
        assert stats.total_gst_collected == Decimal("4")
        assert racing.get_withdrawal_request(first.id).status == RequestStatus.PENDING


class TestRacingJoins:
    def test_interleaved_joins_charge_once(self, racing):
        tournament = racing.create_tournament("Cup", "big", Decimal("25"))
        set_fields(racing, "player-1", {"balances.big": Decimal("50")})
        racing.store.competitor = lambda: racing.join_tournament(tournament.id, "player-1")

        with pytest.raises(ConflictError):
            racing.join_tournament(tournament.id, "player-1")

        assert racing.get_account("player-1").balance("big") == Decimal("25")
        assert racing.get_tournament(tournament.id).participants == ["player-1"]
        assert len(racing.list_participants(tournament.id)) == 1
        assert racing.get_ledger_history("player-1").total_count == 1

        with pytest.raises(AlreadyExistsError):
            racing.join_tournament(tournament.id, "player-1")
