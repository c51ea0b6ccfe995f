import logging
import random
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from rewards.daily_engine import AlreadyClaimedError, NoRewardConfiguredError, resolve_daily_claim
from rewards.referral_engine import ReferralBonus, compute_referral_bonus
from rewards.spin_engine import SegmentConfigurationError, SpinDraw, cost_tier, draw_outcome, payout, spin_cost

from .config import LEDGER_TIMEZONE, AppConfigSource
from .errors import (
    AlreadyExistsError,
    ConfigurationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
)
from .journal import append_entry, get_entry, history
from .models import (
    Account,
    AddFundRequest,
    AppSettings,
    BankDetails,
    DailyRewardResponse,
    EntryType,
    FundRequest,
    FundRequestResponse,
    GlobalStats,
    JoinTournamentResponse,
    LedgerHistoryResponse,
    Participant,
    PaymentMethod,
    RequestStatus,
    RewardType,
    Segment,
    SpinResponse,
    SpinSettlement,
    Tournament,
    TournamentStatus,
    UserBalance,
    UserRewardData,
    WheelTierConfig,
    WithdrawalRequest,
)
from .repository import (
    LedgerRepository,
    account_path,
    add_fund_request_path,
    global_stats_path,
    participant_path,
    tournament_path,
    user_rewards_path,
    withdrawal_request_path,
)
from .store import SERVER_TIMESTAMP, ArrayUnion, Increment, InMemoryStore, Transaction

logger = logging.getLogger(__name__)

# Flat GST applied to every processed withdrawal, booked to global stats only.
GST_RATE = Decimal("0.02")

DAILY_REWARD_HISTORY_LIMIT = 30


class LedgerService:
    """Atomic balance-moving operations over the document store.

    Every public mutation runs as a single store transaction: it reads what it
    needs, checks its preconditions against those fresh reads, and stages all
    of its writes for one commit. A failed precondition raises before anything
    is staged, so nothing is partially applied. Commits that lose a race raise
    ConflictError and are never retried here.
    """

    def __init__(
        self,
        store: Optional[InMemoryStore] = None,
        config: Optional[AppConfigSource] = None,
        rng: Optional[random.Random] = None,
        timezone_name: Optional[str] = None,
    ):
        self.store = store or InMemoryStore()
        self.config = config or AppConfigSource()
        self.repo = LedgerRepository(self.store)
        self.rng = rng or random.Random()
        self.tz = ZoneInfo(timezone_name or LEDGER_TIMEZONE)

    # --- accounts ---

    def create_account(
        self,
        user_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        referred_by: Optional[str] = None,
        settings: Optional[AppSettings] = None,
    ) -> Account:
        settings = self._settings(settings)
        if referred_by == user_id:
            raise InvalidStateError("An account cannot refer itself")
        today = self.today()

        def body(tx: Transaction) -> None:
            if self.repo.find_account(tx, user_id) is not None:
                raise AlreadyExistsError(f"User {user_id} already exists")
            if referred_by and self.repo.find_account(tx, referred_by) is None:
                raise NotFoundError(f"Referrer {referred_by} not found")

            default_tier = settings.default_tier_id
            opening = settings.initial_balance_for_new_users
            if referred_by:
                opening += settings.referral_bonus_for_new_user
            balances = {tier_id: Decimal("0") for tier_id in settings.wheel_configs}
            balances[default_tier] = opening

            account = Account(
                id=user_id,
                email=email,
                display_name=display_name,
                photo_url=photo_url,
                balances=balances,
                spins_available=settings.max_spins_in_bundle,
                last_paid_spin_date=today,
                referral_code=user_id,
                referred_by=referred_by or None,
            )
            data = account.model_dump()
            data["created_at"] = SERVER_TIMESTAMP
            tx.set(account_path(user_id), data)
            tx.set(user_rewards_path(user_id), UserRewardData(user_id=user_id).model_dump())

            if opening > 0:
                description = "Welcome balance"
                if referred_by:
                    description += f" (incl. referral bonus ₹{settings.referral_bonus_for_new_user})"
                append_entry(tx, user_id, email, EntryType.CREDIT, opening, description, default_tier, Decimal("0"))

        self.store.run_transaction(body)
        logger.info("Created account %s (referred_by=%s)", user_id, referred_by)
        return self.repo.get_account(user_id)

    def set_account_blocked(self, user_id: str, is_blocked: bool, admin_id: str) -> Account:
        def body(tx: Transaction) -> None:
            self.repo.load_account(tx, user_id)
            tx.update(account_path(user_id), {"is_blocked": is_blocked})

        self.store.run_transaction(body)
        logger.info("Account %s blocked=%s by admin %s", user_id, is_blocked, admin_id)
        return self.repo.get_account(user_id)

    def get_account(self, user_id: str) -> Account:
        return self.repo.get_account(user_id)

    def get_balance(self, user_id: str, tier_id: Optional[str] = None, settings: Optional[AppSettings] = None) -> UserBalance:
        settings = self._settings(settings)
        tier = tier_id or settings.default_tier_id
        account = self.repo.get_account(user_id)
        return UserBalance(
            user_id=user_id,
            tier_id=tier,
            current_balance=account.balance(tier),
            spins_available=account.spins_available,
        )

    def get_ledger_history(self, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        return history(self.store, user_id, limit, offset)

    def get_global_stats(self) -> GlobalStats:
        return self.repo.get_global_stats()

    # --- fund requests ---

    def create_add_fund_request(
        self,
        user_id: str,
        amount: Decimal,
        tier_id: Optional[str],
        payment_reference: str,
        settings: Optional[AppSettings] = None,
    ) -> AddFundRequest:
        settings = self._settings(settings)
        amount = _positive(amount)
        tier = self._known_tier(settings, tier_id)
        if amount < settings.min_add_balance_amount:
            raise InvalidStateError(f"Minimum amount to add is ₹{settings.min_add_balance_amount}")
        account = self.repo.get_account(user_id)

        request = AddFundRequest(
            id=self.store.new_id(),
            user_id=user_id,
            user_email=account.email,
            amount=amount,
            tier_id=tier,
            payment_reference=payment_reference,
        )
        self._store_request(add_fund_request_path(request.id), request)
        logger.info("Add-fund request %s: ₹%s to %s/%s", request.id, amount, user_id, tier)
        return self.repo.get_add_fund_request(request.id)

    def create_withdrawal_request(
        self,
        user_id: str,
        amount: Decimal,
        tier_id: Optional[str],
        payment_method: PaymentMethod,
        upi_id: Optional[str] = None,
        bank_details: Optional[BankDetails] = None,
        settings: Optional[AppSettings] = None,
    ) -> WithdrawalRequest:
        settings = self._settings(settings)
        amount = _positive(amount)
        tier = self._known_tier(settings, tier_id)
        if amount < settings.min_withdrawal_amount:
            raise InvalidStateError(f"Minimum withdrawal amount is ₹{settings.min_withdrawal_amount}")
        account = self.repo.get_account(user_id)
        if account.is_blocked:
            raise InvalidStateError(f"User {user_id} is blocked")
        # Approval re-checks against the live balance; this only rejects hopeless requests early.
        if account.balance(tier) < amount:
            raise InsufficientFundsError(f"Insufficient balance in {settings.tier_name(tier)} wallet")

        request = WithdrawalRequest(
            id=self.store.new_id(),
            user_id=user_id,
            user_email=account.email,
            amount=amount,
            tier_id=tier,
            payment_method=payment_method,
            upi_id=upi_id,
            bank_details=bank_details,
        )
        self._store_request(withdrawal_request_path(request.id), request)
        logger.info("Withdrawal request %s: ₹%s from %s/%s", request.id, amount, user_id, tier)
        return self.repo.get_withdrawal_request(request.id)

    def approve_deposit(
        self,
        request_id: str,
        user_id: str,
        amount: Decimal,
        tier_id: Optional[str],
        admin_id: str,
        admin_email: Optional[str] = None,
        settings: Optional[AppSettings] = None,
    ) -> FundRequestResponse:
        settings = self._settings(settings)
        amount = _positive(amount)

        def body(tx: Transaction):
            account = self.repo.load_account(tx, user_id)
            stats = self.repo.load_global_stats(tx)
            request = self.repo.load_add_fund_request(tx, request_id)
            if not request.can_approve():
                raise InvalidStateError(f"Cannot approve add-fund request in {request.status.value} state")
            tier = _check_request_matches(request, user_id, amount, tier_id)

            referrer = None
            if account.total_deposited == 0 and account.referred_by:
                referrer = self.repo.find_account(tx, account.referred_by)
                if referrer is None:
                    logger.warning("Referrer %s of %s no longer exists, skipping bonus", account.referred_by, user_id)

            self.repo.ensure_global_stats(tx, stats)
            balance_before = account.balance(tier)
            tx.update(account_path(user_id), {
                f"balances.{tier}": balance_before + amount,
                "total_deposited": account.total_deposited + amount,
            })

            entry_ids = []
            if referrer is not None:
                referrer_entry = self._apply_referral_bonus(tx, referrer, account, settings)
                if referrer_entry:
                    entry_ids.append(referrer_entry)

            entry_id = append_entry(
                tx, user_id, account.email, EntryType.CREDIT, amount,
                f"Balance added to {settings.tier_name(tier)} (Req ID: {request_id[:6]})",
                tier, balance_before,
                metadata={"request_id": request_id, "admin_id": admin_id},
            )
            entry_ids.insert(0, entry_id)

            tx.update(global_stats_path(), {"total_deposited": Increment(amount)})
            tx.update(add_fund_request_path(request_id), {
                "status": RequestStatus.APPROVED,
                "approved_date": SERVER_TIMESTAMP,
                "transaction_id": entry_id,
                "processed_by_admin_id": admin_id,
                "processed_by_admin_email": admin_email,
            })
            return entry_ids, tier

        entry_ids, tier = self.store.run_transaction(body)
        logger.info("Approved deposit %s: ₹%s to %s/%s by %s", request_id, amount, user_id, tier, admin_id)
        return FundRequestResponse(
            request=self.repo.get_add_fund_request(request_id),
            entries=self._entries(entry_ids),
            message="Deposit approved",
        )

    def approve_withdrawal(
        self,
        request_id: str,
        user_id: str,
        amount: Decimal,
        tier_id: Optional[str],
        payment_details: str,
        admin_id: str,
        admin_email: Optional[str] = None,
        settings: Optional[AppSettings] = None,
    ) -> FundRequestResponse:
        settings = self._settings(settings)
        amount = _positive(amount)
        gst = amount * GST_RATE

        def body(tx: Transaction):
            account = self.repo.load_account(tx, user_id)
            stats = self.repo.load_global_stats(tx)
            request = self.repo.load_withdrawal_request(tx, request_id)
            if not request.can_approve():
                raise InvalidStateError(f"Cannot process withdrawal request in {request.status.value} state")
            tier = _check_request_matches(request, user_id, amount, tier_id)

            balance_before = account.balance(tier)
            if balance_before < amount:
                raise InsufficientFundsError(
                    f"Insufficient balance for withdrawal. Current: ₹{balance_before}, requested: ₹{amount}"
                )

            self.repo.ensure_global_stats(tx, stats)
            tx.update(account_path(user_id), {
                f"balances.{tier}": balance_before - amount,
                "total_withdrawn": account.total_withdrawn + amount,
            })
            entry_id = append_entry(
                tx, user_id, account.email, EntryType.DEBIT, amount,
                f"Withdrawal from {settings.tier_name(tier)}. Gross: ₹{amount:.2f}, "
                f"GST ({GST_RATE * 100:.0f}%): -₹{gst:.2f}. (Req ID: {request_id[:6]})",
                tier, balance_before,
                metadata={"request_id": request_id, "gst": str(gst), "payment_details": payment_details},
            )
            tx.update(global_stats_path(), {
                "total_withdrawn": Increment(amount),
                "total_gst_collected": Increment(gst),
            })
            tx.update(withdrawal_request_path(request_id), {
                "status": RequestStatus.PROCESSED,
                "processed_date": SERVER_TIMESTAMP,
                "transaction_id": entry_id,
                "payment_details": payment_details,
                "processed_by_admin_id": admin_id,
                "processed_by_admin_email": admin_email,
            })
            return entry_id, tier

        entry_id, tier = self.store.run_transaction(body)
        logger.info("Processed withdrawal %s: ₹%s from %s/%s by %s", request_id, amount, user_id, tier, admin_id)
        return FundRequestResponse(
            request=self.repo.get_withdrawal_request(request_id),
            entries=self._entries([entry_id]),
            message="Withdrawal processed",
        )

    def reject_add_fund_request(
        self, request_id: str, admin_id: str, admin_email: Optional[str] = None, admin_notes: Optional[str] = None
    ) -> FundRequestResponse:
        self._reject(self.repo.load_add_fund_request, add_fund_request_path(request_id), admin_id, admin_email, admin_notes)
        logger.info("Rejected add-fund request %s by %s", request_id, admin_id)
        return FundRequestResponse(request=self.repo.get_add_fund_request(request_id), message="Request rejected")

    def reject_withdrawal_request(
        self, request_id: str, admin_id: str, admin_email: Optional[str] = None, admin_notes: Optional[str] = None
    ) -> FundRequestResponse:
        self._reject(self.repo.load_withdrawal_request, withdrawal_request_path(request_id), admin_id, admin_email, admin_notes)
        logger.info("Rejected withdrawal request %s by %s", request_id, admin_id)
        return FundRequestResponse(request=self.repo.get_withdrawal_request(request_id), message="Request rejected")

    def get_add_fund_request(self, request_id: str) -> AddFundRequest:
        return self.repo.get_add_fund_request(request_id)

    def get_withdrawal_request(self, request_id: str) -> WithdrawalRequest:
        return self.repo.get_withdrawal_request(request_id)

    def list_add_fund_requests(self, status: Optional[str] = None, user_id: Optional[str] = None) -> list[AddFundRequest]:
        return self.repo.list_add_fund_requests(status, user_id)

    def list_withdrawal_requests(self, status: Optional[str] = None, user_id: Optional[str] = None) -> list[WithdrawalRequest]:
        return self.repo.list_withdrawal_requests(status, user_id)

    # --- tournaments ---

    def create_tournament(
        self,
        name: str,
        tier_id: str,
        entry_fee: Decimal,
        status: TournamentStatus = TournamentStatus.UPCOMING,
        settings: Optional[AppSettings] = None,
    ) -> Tournament:
        settings = self._settings(settings)
        tournament = Tournament(
            id=self.store.new_id(),
            name=name,
            tier_id=self._known_tier(settings, tier_id),
            entry_fee=entry_fee,
            status=status,
        )
        data = tournament.model_dump()
        data["created_at"] = SERVER_TIMESTAMP
        self.store.run_transaction(lambda tx: tx.set(tournament_path(tournament.id), data))
        return self.repo.get_tournament(tournament.id)

    def join_tournament(self, tournament_id: str, user_id: str) -> JoinTournamentResponse:
        def body(tx: Transaction) -> Decimal:
            tournament = self.repo.load_tournament(tx, tournament_id)
            account = self.repo.load_account(tx, user_id)
            if self.repo.find_participant(tx, tournament_id, user_id) is not None:
                raise AlreadyExistsError("You have already joined this tournament")
            if not tournament.is_joinable():
                raise InvalidStateError("This tournament is not open for joining")

            fee = tournament.entry_fee
            balance_before = account.balance(tournament.tier_id)
            if balance_before < fee:
                raise InsufficientFundsError(
                    f"Insufficient balance in your {tournament.tier_id} wallet. Required: ₹{fee}"
                )

            tx.update(account_path(user_id), {f"balances.{tournament.tier_id}": balance_before - fee})
            tx.update(tournament_path(tournament_id), {"participants": ArrayUnion(user_id)})
            participant = Participant(
                user_id=user_id,
                tournament_id=tournament_id,
                user_display_name=account.display_name or "Anonymous",
                user_photo_url=account.photo_url or "",
            )
            data = participant.model_dump()
            data["joined_at"] = SERVER_TIMESTAMP
            tx.set(participant_path(tournament_id, user_id), data)
            if fee > 0:
                append_entry(
                    tx, user_id, account.email, EntryType.DEBIT, fee,
                    f"Tournament entry: {tournament.name}", tournament.tier_id, balance_before,
                    metadata={"tournament_id": tournament_id},
                )
            return balance_before - fee

        balance_after = self.store.run_transaction(body)
        logger.info("User %s joined tournament %s", user_id, tournament_id)
        return JoinTournamentResponse(
            tournament=self.repo.get_tournament(tournament_id),
            participant=self.repo.get_participant(tournament_id, user_id),
            balance_after=balance_after,
        )

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self.repo.get_tournament(tournament_id)

    def list_participants(self, tournament_id: str) -> list[Participant]:
        self.repo.get_tournament(tournament_id)
        return self.repo.list_participants(tournament_id)

    # --- spins ---

    def settle_spin(self, bet_amount: Decimal, segments: Sequence[Segment], settings: Optional[AppSettings] = None) -> SpinSettlement:
        settings = self._settings(settings)
        if Decimal(bet_amount) < 0:
            raise InvalidStateError("Bet amount cannot be negative")
        result = payout(bet_amount, self._draw(segments, settings))
        return SpinSettlement(
            win_amount=result.win_amount,
            multiplier=result.multiplier,
            segment_index=result.segment_index,
            segment_id=result.segment_id,
        )

    def spin(self, user_id: str, tier_id: str, settings: Optional[AppSettings] = None) -> SpinResponse:
        """Charge, draw and settle one spin for a user.

        The outcome is drawn before the transaction opens, so the transaction
        body only depends on what it reads.
        """
        settings = self._settings(settings)
        wheel = self._wheel(settings, tier_id)
        draw = self._draw(wheel.segments, settings)
        today = self.today()

        def body(tx: Transaction):
            account = self.repo.load_account(tx, user_id)
            if account.is_blocked:
                raise InvalidStateError(f"User {user_id} is blocked")

            balance_before = account.balance(tier_id)
            free = tier_id == settings.free_spin_tier_id and account.spins_available > 0
            update = {}
            if free:
                bet = Decimal("0")
                label = "Free Spin"
                update["spins_available"] = account.spins_available - 1
            else:
                used_today = account.daily_paid_spins_used if account.last_paid_spin_date == today else 0
                bet = spin_cost(wheel.cost_settings, used_today)
                if balance_before < bet:
                    raise InsufficientFundsError(f"Insufficient balance in {wheel.name} wallet. Spin costs ₹{bet}")
                step = cost_tier(wheel.cost_settings, used_today)
                label = f"Spin Cost (Tier {step})" if step else f"Spin Cost ({wheel.name})"
                if step:
                    update["daily_paid_spins_used"] = used_today + 1
                    update["last_paid_spin_date"] = today

            result = payout(bet, draw)
            net = result.win_amount - bet
            balance_after = balance_before + net
            update[f"balances.{tier_id}"] = balance_after
            update["total_spins_played"] = account.total_spins_played + 1
            update["total_winnings"] = account.total_winnings + result.win_amount
            if result.is_win:
                update["total_wins"] = account.total_wins + 1
            tx.update(account_path(user_id), update)

            segment = wheel.segments[result.segment_index]
            entry_id = append_entry(
                tx, user_id, account.email,
                EntryType.CREDIT if net >= 0 else EntryType.DEBIT, abs(net),
                f"{label}: bet ₹{bet}, won ₹{result.win_amount} ({segment.text})",
                tier_id, balance_before,
                metadata={
                    "bet_amount": str(bet),
                    "win_amount": str(result.win_amount),
                    "multiplier": str(result.multiplier),
                    "segment_id": result.segment_id,
                    "free_spin": free,
                },
            )
            spins_after = update.get("spins_available", account.spins_available)
            return result, bet, free, balance_after, spins_after, entry_id

        result, bet, free, balance_after, spins_after, entry_id = self.store.run_transaction(body)
        logger.info("Spin by %s on %s: bet ₹%s, won ₹%s", user_id, tier_id, bet, result.win_amount)
        return SpinResponse(
            settlement=SpinSettlement(
                win_amount=result.win_amount,
                multiplier=result.multiplier,
                segment_index=result.segment_index,
                segment_id=result.segment_id,
            ),
            bet_amount=bet,
            free_spin=free,
            balance_after=balance_after,
            spins_available=spins_after,
            ledger_entry=get_entry(self.store, entry_id),
        )

    # --- daily rewards ---

    def claim_daily_reward(
        self, user_id: str, settings: Optional[AppSettings] = None, today: Optional[date] = None
    ) -> DailyRewardResponse:
        settings = self._settings(settings)
        today = today or self.today()
        tier = settings.default_tier_id

        def body(tx: Transaction):
            account = self.repo.load_account(tx, user_id)
            rewards = self.repo.load_user_rewards(tx, user_id)
            try:
                claim = resolve_daily_claim(rewards.last_claim_date, rewards.current_streak, today, settings.reward_config)
            except AlreadyClaimedError as e:
                raise InvalidStateError(str(e)) from e
            except NoRewardConfiguredError as e:
                raise ConfigurationError(str(e)) from e

            entry_ids = []
            if claim.reward_type == RewardType.CREDIT.value:
                balance_before = account.balance(tier)
                tx.update(account_path(user_id), {f"balances.{tier}": balance_before + claim.value})
                entry_ids.append(append_entry(
                    tx, user_id, account.email, EntryType.CREDIT, claim.value,
                    claim.describe(), tier, balance_before,
                ))
            else:
                tx.update(account_path(user_id), {"spins_available": account.spins_available + int(claim.value)})

            record = {"date": today.isoformat(), "streak": claim.streak, "type": claim.reward_type, "value": str(claim.value)}
            updated = rewards.model_copy(update={
                "last_claim_date": today,
                "current_streak": claim.streak,
                "total_claims": rewards.total_claims + 1,
                "history": (rewards.history + [record])[-DAILY_REWARD_HISTORY_LIMIT:],
            })
            tx.set(user_rewards_path(user_id), updated.model_dump())
            return claim, entry_ids

        claim, entry_ids = self.store.run_transaction(body)
        logger.info("User %s claimed %s %s (streak %s)", user_id, claim.value, claim.reward_type, claim.streak)
        return DailyRewardResponse(
            entries=self._entries(entry_ids),
            message=f"{claim.describe()} claimed",
            reward_type=RewardType(claim.reward_type),
            value=claim.value,
            streak=claim.streak,
        )

    # --- helpers ---

    def today(self) -> date:
        return self.store.now().astimezone(self.tz).date()

    def _settings(self, settings: Optional[AppSettings]) -> AppSettings:
        return settings if settings is not None else self.config.snapshot()

    def _known_tier(self, settings: AppSettings, tier_id: Optional[str]) -> str:
        tier = tier_id or settings.default_tier_id
        if tier not in settings.wheel_configs:
            raise NotFoundError(f"Unknown wheel tier {tier}")
        return tier

    def _wheel(self, settings: AppSettings, tier_id: str) -> WheelTierConfig:
        wheel = settings.wheel_configs.get(tier_id)
        if wheel is None:
            raise NotFoundError(f"Unknown wheel tier {tier_id}")
        return wheel

    def _draw(self, segments: Sequence[Segment], settings: AppSettings) -> SpinDraw:
        try:
            return draw_outcome(segments, self.rng, settings.house_edge)
        except SegmentConfigurationError as e:
            raise ConfigurationError(str(e)) from e

    def _apply_referral_bonus(
        self, tx: Transaction, referrer: Account, referred: Account, settings: AppSettings
    ) -> Optional[str]:
        """Stage the referrer's whole bonus as one update; return its log entry id, if any."""
        prior_count = len([r for r in referrer.referrals if r != referred.id])
        bonus: ReferralBonus = compute_referral_bonus(
            prior_count,
            referrer.referral_milestones,
            settings.referral_bonus_for_referrer,
            settings.tiered_bonuses,
            settings.referral_milestones,
        )

        tier = settings.default_tier_id
        balance_before = referrer.balance(tier)
        update = {
            "referrals": ArrayUnion(referred.id),
            "referral_earnings": referrer.referral_earnings + bonus.total_cash_bonus,
        }
        if bonus.total_cash_bonus > 0:
            update[f"balances.{tier}"] = balance_before + bonus.total_cash_bonus
        if bonus.total_spin_bonus > 0:
            update["spins_available"] = referrer.spins_available + bonus.total_spin_bonus
        if bonus.new_milestone_badge:
            update["referral_milestones"] = ArrayUnion(bonus.new_milestone_badge)
        tx.update(account_path(referrer.id), update)

        if bonus.total_cash_bonus <= 0:
            return None
        source = referred.display_name or referred.email or referred.id
        return append_entry(
            tx, referrer.id, referrer.email, EntryType.CREDIT, bonus.total_cash_bonus,
            f"Referral rewards from {source}. ({bonus.describe()})",
            tier, balance_before,
            metadata={"referred_user_id": referred.id, **bonus.to_dict()},
        )

    def _reject(
        self,
        loader: Callable[[Transaction, str], FundRequest],
        path: str,
        admin_id: str,
        admin_email: Optional[str],
        admin_notes: Optional[str],
    ) -> None:
        request_id = path.rsplit("/", 1)[-1]

        def body(tx: Transaction) -> None:
            request = loader(tx, request_id)
            if not request.can_reject():
                raise InvalidStateError(f"Cannot reject request in {request.status.value} state")
            fields = {
                "status": RequestStatus.REJECTED,
                "rejected_date": SERVER_TIMESTAMP,
                "processed_by_admin_id": admin_id,
                "processed_by_admin_email": admin_email,
            }
            if admin_notes:
                fields["admin_notes"] = admin_notes
            tx.update(path, fields)

        self.store.run_transaction(body)

    def _store_request(self, path: str, request: FundRequest) -> None:
        data = request.model_dump()
        data["request_date"] = SERVER_TIMESTAMP
        self.store.run_transaction(lambda tx: tx.set(path, data))

    def _entries(self, entry_ids: list[str]) -> list:
        return [get_entry(self.store, entry_id) for entry_id in entry_ids]


def _positive(amount) -> Decimal:
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if value <= 0:
        raise InvalidStateError("Amount must be greater than zero")
    return value


def _check_request_matches(request: FundRequest, user_id: str, amount: Decimal, tier_id: Optional[str]) -> str:
    """Return the wallet tier the request was filed for."""
    if request.user_id != user_id:
        raise InvalidStateError(f"Request {request.id} belongs to a different user")
    if request.amount != amount:
        raise InvalidStateError(f"Request {request.id} is for ₹{request.amount}, not ₹{amount}")
    if tier_id and tier_id != request.tier_id:
        raise InvalidStateError(f"Request {request.id} is for the {request.tier_id} wallet, not {tier_id}")
    return request.tier_id
