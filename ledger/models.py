from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


class EntryType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSED = "processed"
    REJECTED = "rejected"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    UPI = "upi"
    BANK = "bank"


class CostType(str, Enum):
    FLAT = "flat"
    TIERED = "tiered"


class RewardType(str, Enum):
    CREDIT = "credit"
    SPIN = "spin"


# --- Stored documents ---

class Account(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    balances: dict[str, Decimal] = Field(default_factory=dict)
    spins_available: int = Field(default=0, ge=0)
    daily_paid_spins_used: int = Field(default=0, ge=0)
    last_paid_spin_date: Optional[date] = None
    total_deposited: Decimal = Field(default=Decimal("0"), ge=0)
    total_withdrawn: Decimal = Field(default=Decimal("0"), ge=0)
    total_winnings: Decimal = Field(default=Decimal("0"), ge=0)
    total_spins_played: int = Field(default=0, ge=0)
    total_wins: int = Field(default=0, ge=0)
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    referrals: list[str] = Field(default_factory=list)
    referral_earnings: Decimal = Field(default=Decimal("0"), ge=0)
    referral_milestones: list[str] = Field(default_factory=list)
    is_blocked: bool = False
    created_at: Optional[datetime] = None

    @field_validator("balances")
    @classmethod
    def balances_not_negative(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        for tier_id, amount in value.items():
            if amount < 0:
                raise ValueError(f"Balance for tier {tier_id} is negative")
        return value

    def balance(self, tier_id: str) -> Decimal:
        return self.balances.get(tier_id, Decimal("0"))


class FundRequest(BaseModel):
    id: str
    user_id: str
    user_email: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    tier_id: str
    status: RequestStatus = RequestStatus.PENDING
    request_date: Optional[datetime] = None
    admin_notes: Optional[str] = None
    transaction_id: Optional[str] = None
    processed_by_admin_id: Optional[str] = None
    processed_by_admin_email: Optional[str] = None
    rejected_date: Optional[datetime] = None

    def can_approve(self) -> bool:
        return self.status == RequestStatus.PENDING

    def can_reject(self) -> bool:
        return self.status == RequestStatus.PENDING


class AddFundRequest(FundRequest):
    payment_reference: str
    approved_date: Optional[datetime] = None


class BankDetails(BaseModel):
    account_holder_name: str
    account_number: str
    ifsc_code: str


class WithdrawalRequest(FundRequest):
    payment_method: PaymentMethod
    upi_id: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    payment_details: Optional[str] = None
    processed_date: Optional[datetime] = None


class TransactionLogEntry(BaseModel):
    id: str
    user_id: str
    user_email: Optional[str] = None
    type: EntryType
    amount: Decimal = Field(..., ge=0)
    description: str
    status: str = "completed"
    balance_before: Decimal
    balance_after: Decimal
    tier_id: str
    date: Optional[datetime] = None
    metadata: dict = Field(default_factory=dict)

    @model_validator(mode="after")
    def balance_matches_amount(self) -> "TransactionLogEntry":
        sign = 1 if self.type == EntryType.CREDIT else -1
        if self.balance_after != self.balance_before + sign * self.amount:
            raise ValueError(
                f"balance_after {self.balance_after} does not follow from "
                f"{self.type.value} of {self.amount} on {self.balance_before}"
            )
        return self


class GlobalStats(BaseModel):
    total_deposited: Decimal = Decimal("0")
    total_withdrawn: Decimal = Decimal("0")
    total_gst_collected: Decimal = Decimal("0")


class Tournament(BaseModel):
    id: str
    name: str
    tier_id: str
    entry_fee: Decimal = Field(..., ge=0)
    status: TournamentStatus = TournamentStatus.UPCOMING
    participants: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    def is_joinable(self) -> bool:
        return self.status in (TournamentStatus.UPCOMING, TournamentStatus.ACTIVE)


class Participant(BaseModel):
    user_id: str
    tournament_id: str
    user_display_name: str = "Anonymous"
    user_photo_url: str = ""
    score: int = 0
    joined_at: Optional[datetime] = None


class UserRewardData(BaseModel):
    user_id: str
    last_claim_date: Optional[date] = None
    current_streak: int = Field(default=0, ge=0)
    total_claims: int = Field(default=0, ge=0)
    history: list[dict] = Field(default_factory=list)


# --- Configuration snapshot ---

class Segment(BaseModel):
    id: str
    text: str
    emoji: str = ""
    probability: float = Field(default=0.0, ge=0, le=1)
    multiplier: Decimal = Field(default=Decimal("0"), ge=0)


class CostSettings(BaseModel):
    type: CostType = CostType.FLAT
    base_cost: Decimal = Field(default=Decimal("0"), ge=0)
    tier1_limit: int = 0
    tier1_cost: Decimal = Decimal("0")
    tier2_limit: int = 0
    tier2_cost: Decimal = Decimal("0")
    tier3_cost: Decimal = Decimal("0")


class WheelTierConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    cost_settings: CostSettings = Field(default_factory=CostSettings)
    segments: list[Segment] = Field(..., min_length=1)

    def probability_total(self) -> float:
        return sum(s.probability for s in self.segments)

    def probabilities_balanced(self, tolerance: float = 0.001) -> bool:
        return abs(self.probability_total() - 1.0) <= tolerance


class TieredBonus(BaseModel):
    count: int = Field(..., gt=0)
    reward_cash: Decimal = Field(default=Decimal("0"), ge=0)
    reward_spins: int = Field(default=0, ge=0)


class ReferralMilestone(BaseModel):
    count: int = Field(..., gt=0)
    reward_spins: int = Field(default=0, ge=0)
    badge: str


class DailyReward(BaseModel):
    type: RewardType
    value: Decimal = Field(..., gt=0)


class StreakBonus(DailyReward):
    after_days: int = Field(..., gt=0)


class RewardConfig(BaseModel):
    daily_rewards: list[DailyReward] = Field(default_factory=list)
    streak_bonuses: list[StreakBonus] = Field(default_factory=list)
    reset_if_missed: bool = True


class AppSettings(BaseModel):
    """Read-only configuration snapshot handed to every ledger operation."""

    model_config = ConfigDict(frozen=True)

    referral_bonus_for_referrer: Decimal = Field(default=Decimal("0"), ge=0)
    referral_bonus_for_new_user: Decimal = Field(default=Decimal("0"), ge=0)
    tiered_bonuses: list[TieredBonus] = Field(default_factory=list)
    referral_milestones: list[ReferralMilestone] = Field(default_factory=list)
    wheel_configs: dict[str, WheelTierConfig] = Field(default_factory=dict)
    initial_balance_for_new_users: Decimal = Field(default=Decimal("0"), ge=0)
    max_spins_in_bundle: int = Field(default=0, ge=0)
    min_withdrawal_amount: Decimal = Field(default=Decimal("0"), ge=0)
    min_add_balance_amount: Decimal = Field(default=Decimal("0"), ge=0)
    house_edge: float = Field(default=0.6, ge=0, le=1)
    default_tier_id: str = "little"
    free_spin_tier_id: str = "little"
    reward_config: RewardConfig = Field(default_factory=RewardConfig)

    def tier_name(self, tier_id: str) -> str:
        config = self.wheel_configs.get(tier_id)
        return config.name if config else "Unknown Tier"


# --- API payloads ---

class CreateAccountRequest(BaseModel):
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    referred_by: Optional[str] = None


class CreateAddFundRequest(BaseModel):
    user_id: str
    amount: Decimal = Field(..., gt=0)
    tier_id: Optional[str] = None
    payment_reference: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {"user_id": "u-123", "amount": 500.00, "tier_id": "little", "payment_reference": "UPI-8812"}
    })


class CreateWithdrawalRequest(BaseModel):
    user_id: str
    amount: Decimal = Field(..., gt=0)
    tier_id: Optional[str] = None
    payment_method: PaymentMethod
    upi_id: Optional[str] = None
    bank_details: Optional[BankDetails] = None

    @model_validator(mode="after")
    def payment_target_present(self) -> "CreateWithdrawalRequest":
        if self.payment_method == PaymentMethod.UPI and not self.upi_id:
            raise ValueError("upi_id is required for UPI withdrawals")
        if self.payment_method == PaymentMethod.BANK and self.bank_details is None:
            raise ValueError("bank_details are required for bank withdrawals")
        return self


class AdminAction(BaseModel):
    admin_id: str
    admin_email: Optional[str] = None


class ApproveDepositRequest(AdminAction):
    user_id: str
    amount: Decimal = Field(..., gt=0)
    tier_id: Optional[str] = None


class ApproveWithdrawalRequest(ApproveDepositRequest):
    payment_details: str = ""


class RejectFundRequest(AdminAction):
    admin_notes: Optional[str] = None


class CreateTournamentRequest(BaseModel):
    name: str
    tier_id: str
    entry_fee: Decimal = Field(..., ge=0)
    status: TournamentStatus = TournamentStatus.UPCOMING


class JoinTournamentRequest(BaseModel):
    user_id: str


class SpinRequest(BaseModel):
    user_id: str
    tier_id: str


class SettleSpinRequest(BaseModel):
    bet_amount: Decimal = Field(..., ge=0)
    segments: list[Segment] = Field(..., min_length=1)


class BlockAccountRequest(AdminAction):
    is_blocked: bool = True


class SpinSettlement(BaseModel):
    win_amount: Decimal
    multiplier: Decimal
    segment_index: int
    segment_id: str


class SpinResponse(BaseModel):
    settlement: SpinSettlement
    bet_amount: Decimal
    free_spin: bool
    balance_after: Decimal
    spins_available: int
    ledger_entry: TransactionLogEntry


class LedgerResponse(BaseModel):
    entries: list[TransactionLogEntry] = Field(default_factory=list)
    message: str


class FundRequestResponse(LedgerResponse):
    request: Union[AddFundRequest, WithdrawalRequest]


class JoinTournamentResponse(BaseModel):
    tournament: Tournament
    participant: Participant
    balance_after: Decimal


class DailyRewardResponse(LedgerResponse):
    reward_type: RewardType
    value: Decimal
    streak: int


class UserBalance(BaseModel):
    user_id: str
    tier_id: str
    current_balance: Decimal
    spins_available: int


class LedgerHistoryResponse(BaseModel):
    user_id: str
    entries: list[TransactionLogEntry]
    total_count: int
