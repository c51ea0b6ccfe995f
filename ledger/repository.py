"""Typed access to the documents the ledger operations touch."""

from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError, NotFoundError
from .models import (
    Account,
    AddFundRequest,
    GlobalStats,
    Participant,
    Tournament,
    UserRewardData,
    WithdrawalRequest,
)
from .store import InMemoryStore, Transaction, doc_path

USERS_COLLECTION = "users"
TRANSACTIONS_COLLECTION = "transactions"
ADD_FUND_REQUESTS_COLLECTION = "add_fund_requests"
WITHDRAWAL_REQUESTS_COLLECTION = "withdrawal_requests"
SYSTEM_STATS_COLLECTION = "system_stats"
GLOBAL_STATS_DOC_ID = "global"
TOURNAMENTS_COLLECTION = "tournaments"
PARTICIPANTS_SUBCOLLECTION = "participants"
USER_REWARDS_COLLECTION = "user_rewards"

M = TypeVar("M", bound=BaseModel)


def account_path(user_id: str) -> str:
    return doc_path(USERS_COLLECTION, user_id)


def add_fund_request_path(request_id: str) -> str:
    return doc_path(ADD_FUND_REQUESTS_COLLECTION, request_id)


def withdrawal_request_path(request_id: str) -> str:
    return doc_path(WITHDRAWAL_REQUESTS_COLLECTION, request_id)


def global_stats_path() -> str:
    return doc_path(SYSTEM_STATS_COLLECTION, GLOBAL_STATS_DOC_ID)


def tournament_path(tournament_id: str) -> str:
    return doc_path(TOURNAMENTS_COLLECTION, tournament_id)


def participant_path(tournament_id: str, user_id: str) -> str:
    return doc_path(TOURNAMENTS_COLLECTION, tournament_id, PARTICIPANTS_SUBCOLLECTION, user_id)


def user_rewards_path(user_id: str) -> str:
    return doc_path(USER_REWARDS_COLLECTION, user_id)


def transaction_path(entry_id: str) -> str:
    return doc_path(TRANSACTIONS_COLLECTION, entry_id)


def parse(model: Type[M], data: dict, path: str) -> M:
    """Validate a stored document, rejecting malformed ones instead of defaulting."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Malformed document at {path}: {e.error_count()} invalid field(s)") from e


class LedgerRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    # --- reads inside a transaction ---

    def load_account(self, tx: Transaction, user_id: str) -> Account:
        account = self.find_account(tx, user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        return account

    def find_account(self, tx: Transaction, user_id: str) -> Optional[Account]:
        path = account_path(user_id)
        data = tx.get(path)
        return parse(Account, data, path) if data is not None else None

    def load_add_fund_request(self, tx: Transaction, request_id: str) -> AddFundRequest:
        path = add_fund_request_path(request_id)
        data = tx.get(path)
        if data is None:
            raise NotFoundError(f"Add-fund request {request_id} not found")
        return parse(AddFundRequest, data, path)

    def load_withdrawal_request(self, tx: Transaction, request_id: str) -> WithdrawalRequest:
        path = withdrawal_request_path(request_id)
        data = tx.get(path)
        if data is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found")
        return parse(WithdrawalRequest, data, path)

    def load_global_stats(self, tx: Transaction) -> Optional[GlobalStats]:
        path = global_stats_path()
        data = tx.get(path)
        return parse(GlobalStats, data, path) if data is not None else None

    def load_tournament(self, tx: Transaction, tournament_id: str) -> Tournament:
        path = tournament_path(tournament_id)
        data = tx.get(path)
        if data is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return parse(Tournament, data, path)

    def find_participant(self, tx: Transaction, tournament_id: str, user_id: str) -> Optional[Participant]:
        path = participant_path(tournament_id, user_id)
        data = tx.get(path)
        return parse(Participant, data, path) if data is not None else None

    def load_user_rewards(self, tx: Transaction, user_id: str) -> UserRewardData:
        path = user_rewards_path(user_id)
        data = tx.get(path)
        if data is None:
            return UserRewardData(user_id=user_id)
        return parse(UserRewardData, data, path)

    # --- writes inside a transaction ---

    def ensure_global_stats(self, tx: Transaction, stats: Optional[GlobalStats]) -> None:
        if stats is None:
            tx.set(global_stats_path(), GlobalStats().model_dump())

    # --- reads outside a transaction ---

    def get_account(self, user_id: str) -> Account:
        path = account_path(user_id)
        data = self.store.get(path)
        if data is None:
            raise NotFoundError(f"User {user_id} not found")
        return parse(Account, data, path)

    def get_add_fund_request(self, request_id: str) -> AddFundRequest:
        path = add_fund_request_path(request_id)
        data = self.store.get(path)
        if data is None:
            raise NotFoundError(f"Add-fund request {request_id} not found")
        return parse(AddFundRequest, data, path)

    def get_withdrawal_request(self, request_id: str) -> WithdrawalRequest:
        path = withdrawal_request_path(request_id)
        data = self.store.get(path)
        if data is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found")
        return parse(WithdrawalRequest, data, path)

    def get_tournament(self, tournament_id: str) -> Tournament:
        path = tournament_path(tournament_id)
        data = self.store.get(path)
        if data is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return parse(Tournament, data, path)

    def get_participant(self, tournament_id: str, user_id: str) -> Optional[Participant]:
        path = participant_path(tournament_id, user_id)
        data = self.store.get(path)
        return parse(Participant, data, path) if data is not None else None

    def list_participants(self, tournament_id: str) -> list[Participant]:
        collection = doc_path(TOURNAMENTS_COLLECTION, tournament_id, PARTICIPANTS_SUBCOLLECTION)
        return [parse(Participant, d, collection) for d in self.store.list_collection(collection)]

    def get_global_stats(self) -> GlobalStats:
        path = global_stats_path()
        data = self.store.get(path)
        return parse(GlobalStats, data, path) if data is not None else GlobalStats()

    def get_user_rewards(self, user_id: str) -> UserRewardData:
        path = user_rewards_path(user_id)
        data = self.store.get(path)
        return parse(UserRewardData, data, path) if data is not None else UserRewardData(user_id=user_id)

    def list_add_fund_requests(self, status: Optional[str] = None, user_id: Optional[str] = None) -> list[AddFundRequest]:
        requests = [
            parse(AddFundRequest, d, ADD_FUND_REQUESTS_COLLECTION)
            for d in self.store.list_collection(ADD_FUND_REQUESTS_COLLECTION)
        ]
        return _filter_requests(requests, status, user_id)

    def list_withdrawal_requests(self, status: Optional[str] = None, user_id: Optional[str] = None) -> list[WithdrawalRequest]:
        requests = [
            parse(WithdrawalRequest, d, WITHDRAWAL_REQUESTS_COLLECTION)
            for d in self.store.list_collection(WITHDRAWAL_REQUESTS_COLLECTION)
        ]
        return _filter_requests(requests, status, user_id)


def _filter_requests(requests: list, status: Optional[str], user_id: Optional[str]) -> list:
    if user_id:
        requests = [r for r in requests if r.user_id == user_id]
    if status:
        requests = [r for r in requests if r.status == status]
    requests.sort(key=lambda r: (r.request_date is not None, r.request_date), reverse=True)
    return requests
