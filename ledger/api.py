import logging
from typing import Callable, Optional, TypeVar

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import (
    APP_NAME, APP_SETTINGS_FILE, APP_VERSION, CORS_ORIGINS, MAX_CONFLICT_RETRIES,
    AppConfigSource, configure_logging,
)
from .errors import (
    LedgerServiceError, NotFoundError, InvalidStateError, InsufficientFundsError,
    AlreadyExistsError, ConflictError,
)
from .models import (
    Account, AddFundRequest, WithdrawalRequest, GlobalStats, Tournament, Participant,
    CreateAccountRequest, CreateAddFundRequest, CreateWithdrawalRequest, ApproveDepositRequest,
    ApproveWithdrawalRequest, RejectFundRequest, CreateTournamentRequest, JoinTournamentRequest,
    SpinRequest, SettleSpinRequest, BlockAccountRequest, SpinSettlement, SpinResponse,
    FundRequestResponse, JoinTournamentResponse, DailyRewardResponse, UserBalance,
    LedgerHistoryResponse, RequestStatus,
)
from .service import LedgerService
from .wheel_config import probability_report

configure_logging()
logger = logging.getLogger(__name__)

T = TypeVar("T")

app = FastAPI(
    title=APP_NAME,
    description="Atomic balance operations for the spin-to-win game: deposits, withdrawals, referrals, tournaments and spins",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger_service = LedgerService(config=AppConfigSource(path=APP_SETTINGS_FILE or None))


def with_conflict_retry(operation: Callable[..., T], *args, **kwargs) -> T:
    """Run a whole ledger operation again when its commit loses a race."""
    attempts = max(1, MAX_CONFLICT_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            return operation(*args, **kwargs)
        except ConflictError:
            if attempt == attempts:
                raise
            logger.warning("Conflict in %s, retrying (%d/%d)", operation.__name__, attempt, attempts)


def _http_error(e: LedgerServiceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (InvalidStateError, InsufficientFundsError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, (AlreadyExistsError, ConflictError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.error("Ledger operation failed: %s", e, exc_info=e)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Ledger operation failed")


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "spin-ledger"}


@app.get("/stats", response_model=GlobalStats, tags=["System"])
def get_global_stats() -> GlobalStats:
    try:
        return ledger_service.get_global_stats()
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/config/wheels", tags=["System"])
def get_wheel_report():
    return probability_report(ledger_service.config.snapshot())


# --- accounts ---

@app.post("/accounts", response_model=Account, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
def create_account(request: CreateAccountRequest) -> Account:
    try:
        return ledger_service.create_account(
            request.user_id, request.email, request.display_name, request.photo_url, request.referred_by,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/accounts/{user_id}", response_model=Account, tags=["Accounts"])
def get_account(user_id: str) -> Account:
    try:
        return ledger_service.get_account(user_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/accounts/{user_id}/block", response_model=Account, tags=["Accounts"])
def block_account(user_id: str, request: BlockAccountRequest) -> Account:
    try:
        return with_conflict_retry(ledger_service.set_account_blocked, user_id, request.is_blocked, request.admin_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/users/{user_id}/balance", response_model=UserBalance, tags=["Accounts"])
def get_user_balance(user_id: str, tier_id: Optional[str] = None) -> UserBalance:
    try:
        return ledger_service.get_balance(user_id, tier_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/users/{user_id}/ledger", response_model=LedgerHistoryResponse, tags=["Accounts"])
def get_user_ledger(user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
    try:
        return ledger_service.get_ledger_history(user_id, limit, offset)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/users/{user_id}/daily-reward", response_model=DailyRewardResponse, tags=["Accounts"])
def claim_daily_reward(user_id: str) -> DailyRewardResponse:
    try:
        return with_conflict_retry(ledger_service.claim_daily_reward, user_id)
    except LedgerServiceError as e:
        raise _http_error(e)


# --- fund requests ---

@app.post("/add-fund-requests", response_model=AddFundRequest, status_code=status.HTTP_201_CREATED, tags=["Requests"])
def create_add_fund_request(request: CreateAddFundRequest) -> AddFundRequest:
    try:
        return ledger_service.create_add_fund_request(
            request.user_id, request.amount, request.tier_id, request.payment_reference,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/add-fund-requests", response_model=list[AddFundRequest], tags=["Requests"])
def list_add_fund_requests(status: Optional[RequestStatus] = None, user_id: Optional[str] = None):
    try:
        return ledger_service.list_add_fund_requests(status, user_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/add-fund-requests/{request_id}/approve", response_model=FundRequestResponse, tags=["Requests"])
def approve_add_fund_request(request_id: str, request: ApproveDepositRequest) -> FundRequestResponse:
    try:
        return with_conflict_retry(
            ledger_service.approve_deposit,
            request_id, request.user_id, request.amount, request.tier_id, request.admin_id, request.admin_email,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/add-fund-requests/{request_id}/reject", response_model=FundRequestResponse, tags=["Requests"])
def reject_add_fund_request(request_id: str, request: RejectFundRequest) -> FundRequestResponse:
    try:
        return with_conflict_retry(
            ledger_service.reject_add_fund_request,
            request_id, request.admin_id, request.admin_email, request.admin_notes,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/withdrawal-requests", response_model=WithdrawalRequest, status_code=status.HTTP_201_CREATED, tags=["Requests"])
def create_withdrawal_request(request: CreateWithdrawalRequest) -> WithdrawalRequest:
    try:
        return ledger_service.create_withdrawal_request(
            request.user_id, request.amount, request.tier_id, request.payment_method,
            request.upi_id, request.bank_details,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/withdrawal-requests", response_model=list[WithdrawalRequest], tags=["Requests"])
def list_withdrawal_requests(status: Optional[RequestStatus] = None, user_id: Optional[str] = None):
    try:
        return ledger_service.list_withdrawal_requests(status, user_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/withdrawal-requests/{request_id}/approve", response_model=FundRequestResponse, tags=["Requests"])
def approve_withdrawal_request(request_id: str, request: ApproveWithdrawalRequest) -> FundRequestResponse:
    try:
        return with_conflict_retry(
            ledger_service.approve_withdrawal,
            request_id, request.user_id, request.amount, request.tier_id, request.payment_details,
            request.admin_id, request.admin_email,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/withdrawal-requests/{request_id}/reject", response_model=FundRequestResponse, tags=["Requests"])
def reject_withdrawal_request(request_id: str, request: RejectFundRequest) -> FundRequestResponse:
    try:
        return with_conflict_retry(
            ledger_service.reject_withdrawal_request,
            request_id, request.admin_id, request.admin_email, request.admin_notes,
        )
    except LedgerServiceError as e:
        raise _http_error(e)


# --- tournaments ---

@app.post("/tournaments", response_model=Tournament, status_code=status.HTTP_201_CREATED, tags=["Tournaments"])
def create_tournament(request: CreateTournamentRequest) -> Tournament:
    try:
        return ledger_service.create_tournament(request.name, request.tier_id, request.entry_fee, request.status)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/tournaments/{tournament_id}", response_model=Tournament, tags=["Tournaments"])
def get_tournament(tournament_id: str) -> Tournament:
    try:
        return ledger_service.get_tournament(tournament_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/tournaments/{tournament_id}/participants", response_model=list[Participant], tags=["Tournaments"])
def list_participants(tournament_id: str):
    try:
        return ledger_service.list_participants(tournament_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/tournaments/{tournament_id}/join", response_model=JoinTournamentResponse, tags=["Tournaments"])
def join_tournament(tournament_id: str, request: JoinTournamentRequest) -> JoinTournamentResponse:
    try:
        return with_conflict_retry(ledger_service.join_tournament, tournament_id, request.user_id)
    except LedgerServiceError as e:
        raise _http_error(e)


# --- spins ---

@app.post("/spins", response_model=SpinResponse, tags=["Spins"])
def spin(request: SpinRequest) -> SpinResponse:
    try:
        return with_conflict_retry(ledger_service.spin, request.user_id, request.tier_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post("/spins/settle", response_model=SpinSettlement, tags=["Spins"])
def settle_spin(request: SettleSpinRequest) -> SpinSettlement:
    try:
        return ledger_service.settle_spin(request.bet_amount, request.segments)
    except LedgerServiceError as e:
        raise _http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
