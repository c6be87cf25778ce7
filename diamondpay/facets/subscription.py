"""Subscription plans and recurring billing.

Plan owners create plans; subscribers pay one period up front when they
subscribe, and the plan owner pulls each following period with
``chargeFeeBySubscriptionOwner`` once the payment interval has elapsed. The
diamond owner can also bill a period directly with ``chargeFee``. Every
charge is split between the plan owner and the protocol according to the base
contract fee percentage::

    amount       = fee * paymentInterval // duration
    protocol_fee = amount * baseContractFee // 100
    owner_share  = amount - protocol_fee

The diamond owner moderates plan owners (pause / restore / remove) and
withdraws the collected protocol fees.
"""

import logging
from dataclasses import dataclass, field

from .. import constants as c
from ..diamond import CallContext, enforce_is_contract_owner
from ..errors import (
    AlreadySubscribed,
    BlockedSubscriptionOwner,
    DuplicatePayment,
    EconomicError,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidDuration,
    InvalidFee,
    InvalidPaymentInterval,
    NotSubscribed,
    NotSubscriptionOwner,
    PausedSubscriptionOwner,
    PlanInactive,
    PlanNotFound,
    RenewalRequired,
    Revert,
    ZeroAddressTransfer,
)
from ..schemas import (
    ChargeQuote,
    ChargeSuccess,
    NewPlan,
    PlanStopped,
    Subscription,
    SubscriptionCancelled,
    SubscriptionOwnerStatus,
    SubscriptionOwnerStatusChanged,
    SubscriptionPlan,
)
from ..selectors import external
from ..utils import days, format_bytes32, is_zero_address, normalize_address, same_address
from .base import Facet

logger = logging.getLogger(__name__)

STORAGE_NAMESPACE = "diamondpay.subscription.v1"


@dataclass
class SubscriptionConfig:
    """Billing rules of a SubscriptionFacet deployment."""

    min_duration: int = c.MIN_PLAN_DURATION
    """Shortest plan duration in days."""

    max_duration: int = c.MAX_PLAN_DURATION
    """Longest plan duration in days."""

    charge_grace_days: int = c.DEFAULT_CHARGE_GRACE_DAYS
    """How many days before the interval elapses a recurring charge is accepted."""


@dataclass
class SubscriptionStorage:
    next_plan_id: int = 0
    base_contract_fee: int = 0
    plans: dict[int, SubscriptionPlan] = field(default_factory=dict)
    owner_plans: dict[str, list[int]] = field(default_factory=dict)
    subscriptions: dict[int, dict[str, Subscription]] = field(default_factory=dict)
    owner_status: dict[str, SubscriptionOwnerStatus] = field(default_factory=dict)
    collected_fees: dict[str, int] = field(default_factory=dict)


def subscription_storage(ctx: CallContext) -> SubscriptionStorage:
    return ctx.storage.namespace(STORAGE_NAMESPACE, SubscriptionStorage)


def quote_charge(plan: SubscriptionPlan, base_contract_fee: int) -> ChargeQuote:
    """Amount charged per payment interval and its protocol/owner split."""
    amount = plan.fee * plan.payment_interval // plan.duration
    protocol_fee = amount * base_contract_fee // c.PROTOCOL_FEE_SCALE
    return ChargeQuote(amount=amount, protocol_fee=protocol_fee, owner_share=amount - protocol_fee)


class SubscriptionFacet(Facet):
    """Plan registry and billing engine.

    Args:
        config: Duration bounds and early-charge grace.
    """

    def __init__(self, config: SubscriptionConfig | None = None):
        super().__init__()
        self._config = config or SubscriptionConfig()

    @property
    def config(self) -> SubscriptionConfig:
        return self._config

    # ========================================================================
    # Plans
    # ========================================================================

    @external("createPlan(uint256,bool,uint256,uint256,bytes32)")
    def create_plan(
        self,
        ctx: CallContext,
        fee: int,
        auto_renew: bool,
        duration: int,
        payment_interval: int,
        title: str | bytes,
    ) -> int:
        """Create a plan owned by the caller.

        Args:
            ctx: Call context.
            fee: Price of the whole duration in the token's smallest unit.
            auto_renew: Renewal flag carried with the plan.
            duration: Plan length in days.
            payment_interval: Days between charges.
            title: Label, a bytes32 or a string of at most 31 bytes.

        Returns:
            The new plan id.

        Raises:
            BlockedSubscriptionOwner: Caller was removed as a plan owner.
            PausedSubscriptionOwner: Caller is paused.
            InvalidDuration: Duration outside the configured bounds.
            InvalidPaymentInterval: Interval is zero or longer than the duration.
            InvalidFee: Fee yields a zero charge per interval.
        """
        st = subscription_storage(ctx)
        self._enforce_owner_in_good_standing(st, ctx.sender)

        if not self._config.min_duration <= duration <= self._config.max_duration:
            raise InvalidDuration()
        if not 1 <= payment_interval <= duration:
            raise InvalidPaymentInterval()
        if fee <= 0 or fee * payment_interval // duration == 0:
            raise InvalidFee()

        label = format_bytes32(title) if isinstance(title, str) else bytes(title)
        if len(label) != 32:
            raise Revert("Subscription: title must be bytes32")

        plan_id = st.next_plan_id
        st.next_plan_id += 1
        plan = SubscriptionPlan(
            id=plan_id,
            owner=ctx.sender,
            fee=fee,
            auto_renew=auto_renew,
            duration=duration,
            payment_interval=payment_interval,
            title=label,
        )
        st.plans[plan_id] = plan
        st.owner_plans.setdefault(ctx.sender, []).append(plan_id)

        ctx.emit(
            NewPlan(
                plan_id=plan_id,
                owner=ctx.sender,
                fee=fee,
                auto_renew=auto_renew,
                duration=duration,
                payment_interval=payment_interval,
                title=label,
            )
        )
        logger.info("Plan %d created by %s (fee=%d, %d/%d days)", plan_id, ctx.sender, fee, payment_interval, duration)
        return plan_id

    @external("stopPlan(uint256)")
    def stop_plan(self, ctx: CallContext, plan_id: int) -> None:
        """Deactivate a plan for good. Only its owner may stop it."""
        st = subscription_storage(ctx)
        plan = self._get_plan(st, plan_id)
        if not same_address(plan.owner, ctx.sender):
            raise NotSubscriptionOwner(caller=ctx.sender, plan_id=plan_id)
        plan.active = False
        ctx.emit(PlanStopped(plan_id=plan_id, owner=plan.owner))
        logger.info("Plan %d stopped", plan_id)

    # ========================================================================
    # Subscriptions
    # ========================================================================

    @external("subscribe(uint256,address)")
    def subscribe(self, ctx: CallContext, plan_id: int, token: str) -> None:
        """Subscribe the caller and charge the first period."""
        self._subscribe(ctx, plan_id, token, None)

    @external("subscribe(uint256,address,address)")
    def subscribe_with_payout(self, ctx: CallContext, plan_id: int, token: str, payout: str) -> None:
        """Subscribe, asserting the payout address is the plan owner."""
        self._subscribe(ctx, plan_id, token, payout)

    def _subscribe(self, ctx: CallContext, plan_id: int, token: str, payout: str | None) -> None:
        st = subscription_storage(ctx)
        plan = self._get_plan(st, plan_id)
        self._enforce_owner_in_good_standing(st, plan.owner)
        if not plan.active:
            raise PlanInactive(plan_id)
        if payout is not None and not same_address(payout, plan.owner):
            raise NotSubscriptionOwner(caller=payout, plan_id=plan_id)

        subscribers = st.subscriptions.setdefault(plan_id, {})
        if ctx.sender in subscribers:
            raise AlreadySubscribed()

        token = normalize_address(ctx.token(token).address)
        self._charge(ctx, st, plan, ctx.sender, token)
        subscribers[ctx.sender] = Subscription(
            subscriber=ctx.sender,
            token=token,
            start_timestamp=ctx.now,
            last_charge_timestamp=ctx.now,
        )
        logger.info("%s subscribed to plan %d", ctx.sender, plan_id)

    @external("chargeFeeBySubscriptionOwner(uint256,address,address)")
    def charge_fee_by_subscription_owner(self, ctx: CallContext, plan_id: int, token: str, subscriber: str) -> None:
        """Charge the next period of a subscription.

        Raises:
            NotSubscriptionOwner: Caller does not own the plan.
            NotSubscribed: ``subscriber`` has no subscription to the plan.
            DuplicatePayment: The payment interval has not elapsed yet.
            RenewalRequired: The period would run past the plan's duration.
        """
        st = subscription_storage(ctx)
        plan = self._get_plan(st, plan_id)
        if not same_address(plan.owner, ctx.sender):
            raise NotSubscriptionOwner(caller=ctx.sender, plan_id=plan_id)
        subscription = self._chargeable_subscription(st, plan, token, subscriber)

        next_charge_at = (
            subscription.last_charge_timestamp
            + days(plan.payment_interval)
            - days(self._config.charge_grace_days)
        )
        if ctx.now < next_charge_at:
            raise DuplicatePayment(next_charge_at)
        if ctx.now + days(plan.payment_interval) > subscription.start_timestamp + days(plan.duration):
            raise RenewalRequired()

        self._charge(ctx, st, plan, subscription.subscriber, subscription.token)
        subscription.last_charge_timestamp = ctx.now
        subscription.charges += 1

    @external("chargeFee(uint256,address,address)")
    def charge_fee(self, ctx: CallContext, plan_id: int, token: str, subscriber: str) -> None:
        """Charge one period on the diamond owner's authority.

        Unlike ``chargeFeeBySubscriptionOwner`` there is no interval window:
        the diamond owner may bill a subscriber at any time.
        """
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        st = subscription_storage(ctx)
        plan = self._get_plan(st, plan_id)
        subscription = self._chargeable_subscription(st, plan, token, subscriber)

        self._charge(ctx, st, plan, subscription.subscriber, subscription.token)
        subscription.last_charge_timestamp = ctx.now
        subscription.charges += 1

    @external("cancelSubscription(uint256)")
    def cancel_subscription(self, ctx: CallContext, plan_id: int) -> None:
        st = subscription_storage(ctx)
        self._get_plan(st, plan_id)
        self._remove_subscription(ctx, st, plan_id, ctx.sender, forced=False)

    @external("forcedCancellation(uint256,address)")
    def forced_cancellation(self, ctx: CallContext, plan_id: int, subscriber: str) -> None:
        """Cancel a subscriber's subscription on behalf of the plan owner."""
        st = subscription_storage(ctx)
        plan = self._get_plan(st, plan_id)
        if not same_address(plan.owner, ctx.sender):
            raise NotSubscriptionOwner(caller=ctx.sender, plan_id=plan_id)
        self._remove_subscription(ctx, st, plan_id, normalize_address(subscriber), forced=True)

    # ========================================================================
    # Plan owner moderation
    # ========================================================================

    @external("pauseSubscriptionOwner(address)")
    def pause_subscription_owner(self, ctx: CallContext, owner: str) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        status = self._status(subscription_storage(ctx), owner)
        status.paused = True
        self._emit_status(ctx, owner, status)

    @external("restoreSubscriptionOwner(address)")
    def restore_subscription_owner(self, ctx: CallContext, owner: str) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        status = self._status(subscription_storage(ctx), owner)
        status.paused = False
        self._emit_status(ctx, owner, status)

    @external("removeSubscriptionOwner(address)")
    def remove_subscription_owner(self, ctx: CallContext, owner: str) -> None:
        """Blacklist a plan owner and deactivate all of their plans."""
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        st = subscription_storage(ctx)
        owner = normalize_address(owner)
        status = self._status(st, owner)
        status.blacklisted = True
        plan_ids = st.owner_plans.get(owner, [])
        for plan_id in plan_ids:
            st.plans[plan_id].active = False
        self._emit_status(ctx, owner, status)
        logger.warning("Plan owner %s removed, %d plans deactivated", owner, len(plan_ids))

    # ========================================================================
    # Protocol fee
    # ========================================================================

    @external("setBaseContractFee(uint256)")
    def set_base_contract_fee(self, ctx: CallContext, fee: int) -> None:
        """Set the protocol share of each charge, in whole percent."""
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        if not 0 <= fee <= c.MAX_PROTOCOL_FEE:
            raise InvalidFee()
        subscription_storage(ctx).base_contract_fee = fee
        logger.info("Base contract fee set to %d%%", fee)

    @external("getBaseContractFee()", view=True)
    def get_base_contract_fee(self, ctx: CallContext) -> int:
        return subscription_storage(ctx).base_contract_fee

    @external("setProtocolFee(uint256)")
    def set_protocol_fee(self, ctx: CallContext, fee: int) -> None:
        self.set_base_contract_fee(ctx, fee)

    @external("getProtocolFee()", view=True)
    def get_protocol_fee(self, ctx: CallContext) -> int:
        return self.get_base_contract_fee(ctx)

    # ========================================================================
    # Balances
    # ========================================================================

    @external("nativeBalance()", view=True)
    def native_balance(self, ctx: CallContext) -> int:
        return ctx.chain.balance_of(ctx.this)

    @external("erc20Balance(address)", view=True)
    def erc20_balance(self, ctx: CallContext, token: str) -> int:
        return ctx.token(token).balance_of(ctx.this)

    @external("getCollectedFees(address)", view=True)
    def get_collected_fees(self, ctx: CallContext, token: str) -> int:
        """Protocol fees collected in ``token`` and not yet withdrawn."""
        return subscription_storage(ctx).collected_fees.get(normalize_address(token), 0)

    @external("transferBalance(address,uint256)")
    def transfer_balance(self, ctx: CallContext, to: str, amount: int) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        if is_zero_address(to):
            raise ZeroAddressTransfer()
        if ctx.chain.balance_of(ctx.this) < amount:
            raise EconomicError(c.ERR_CONTRACT_BALANCE)
        ctx.chain.transfer_native(ctx.this, to, amount)
        logger.info("Transferred %d native from %s to %s", amount, ctx.this, to)

    @external("transferERC20Balance(address,address,uint256)")
    def transfer_erc20_balance(self, ctx: CallContext, token: str, to: str, amount: int) -> None:
        enforce_is_contract_owner(ctx.storage, ctx.sender)
        if is_zero_address(to):
            raise ZeroAddressTransfer()
        erc20 = ctx.token(token)
        if erc20.balance_of(ctx.this) < amount:
            raise EconomicError(c.ERR_CONTRACT_TOKEN_BALANCE)
        erc20.transfer(ctx.this, to, amount)

        st = subscription_storage(ctx)
        key = normalize_address(token)
        st.collected_fees[key] = max(0, st.collected_fees.get(key, 0) - amount)
        logger.info("Transferred %d of %s from %s to %s", amount, key, ctx.this, to)

    # ========================================================================
    # Views
    # ========================================================================

    @external("getPlan(uint256)", view=True)
    def get_plan(self, ctx: CallContext, plan_id: int) -> SubscriptionPlan:
        return self._get_plan(subscription_storage(ctx), plan_id).model_copy()

    @external("getPlanCount()", view=True)
    def get_plan_count(self, ctx: CallContext) -> int:
        return subscription_storage(ctx).next_plan_id

    @external("getPlansByOwner(address)", view=True)
    def get_plans_by_owner(self, ctx: CallContext, owner: str) -> list[int]:
        return list(subscription_storage(ctx).owner_plans.get(normalize_address(owner), []))

    @external("isPlanActive(uint256)", view=True)
    def is_plan_active(self, ctx: CallContext, plan_id: int) -> bool:
        plan = subscription_storage(ctx).plans.get(plan_id)
        return plan is not None and plan.active

    @external("isPlanActiveForOwner(address,uint256)", view=True)
    def is_plan_active_for_owner(self, ctx: CallContext, owner: str, plan_id: int) -> bool:
        plan = subscription_storage(ctx).plans.get(plan_id)
        return plan is not None and plan.active and same_address(plan.owner, owner)

    @external("isPlanSubscribed(uint256,address)", view=True)
    def is_plan_subscribed(self, ctx: CallContext, plan_id: int, subscriber: str) -> bool:
        return normalize_address(subscriber) in subscription_storage(ctx).subscriptions.get(plan_id, {})

    @external("getSubscription(uint256,address)", view=True)
    def get_subscription(self, ctx: CallContext, plan_id: int, subscriber: str) -> Subscription:
        st = subscription_storage(ctx)
        self._get_plan(st, plan_id)
        subscription = st.subscriptions.get(plan_id, {}).get(normalize_address(subscriber))
        if subscription is None:
            raise NotSubscribed()
        return subscription.model_copy()

    @external("quoteCharge(uint256)", view=True)
    def quote_charge(self, ctx: CallContext, plan_id: int) -> ChargeQuote:
        st = subscription_storage(ctx)
        return quote_charge(self._get_plan(st, plan_id), st.base_contract_fee)

    @external("isSubscriptionOwnerPaused(address)", view=True)
    def is_subscription_owner_paused(self, ctx: CallContext, owner: str) -> bool:
        status = subscription_storage(ctx).owner_status.get(normalize_address(owner))
        return status is not None and status.paused

    @external("isSubscriptionOwnerBlacklisted(address)", view=True)
    def is_subscription_owner_blacklisted(self, ctx: CallContext, owner: str) -> bool:
        status = subscription_storage(ctx).owner_status.get(normalize_address(owner))
        return status is not None and status.blacklisted

    # ========================================================================
    # Internals
    # ========================================================================

    @staticmethod
    def _get_plan(st: SubscriptionStorage, plan_id: int) -> SubscriptionPlan:
        plan = st.plans.get(plan_id)
        if plan is None:
            raise PlanNotFound(plan_id)
        return plan

    @staticmethod
    def _status(st: SubscriptionStorage, owner: str) -> SubscriptionOwnerStatus:
        return st.owner_status.setdefault(normalize_address(owner), SubscriptionOwnerStatus())

    @staticmethod
    def _enforce_owner_in_good_standing(st: SubscriptionStorage, owner: str) -> None:
        status = st.owner_status.get(normalize_address(owner))
        if status is None:
            return
        if status.blacklisted:
            raise BlockedSubscriptionOwner(owner)
        if status.paused:
            raise PausedSubscriptionOwner(owner)

    @classmethod
    def _chargeable_subscription(
        cls, st: SubscriptionStorage, plan: SubscriptionPlan, token: str, subscriber: str
    ) -> Subscription:
        cls._enforce_owner_in_good_standing(st, plan.owner)
        if not plan.active:
            raise PlanInactive(plan.id)
        subscription = st.subscriptions.get(plan.id, {}).get(normalize_address(subscriber))
        if subscription is None:
            raise NotSubscribed()
        if not same_address(subscription.token, token):
            raise Revert(c.ERR_WRONG_PAYMENT_TOKEN)
        return subscription

    @staticmethod
    def _emit_status(ctx: CallContext, owner: str, status: SubscriptionOwnerStatus) -> None:
        ctx.emit(
            SubscriptionOwnerStatusChanged(
                owner=normalize_address(owner),
                paused=status.paused,
                blacklisted=status.blacklisted,
            )
        )

    @staticmethod
    def _remove_subscription(
        ctx: CallContext, st: SubscriptionStorage, plan_id: int, subscriber: str, forced: bool
    ) -> None:
        subscribers = st.subscriptions.get(plan_id, {})
        if subscriber not in subscribers:
            raise NotSubscribed()
        del subscribers[subscriber]
        ctx.emit(SubscriptionCancelled(plan_id=plan_id, subscriber=subscriber, forced=forced))
        logger.info("Subscription of %s to plan %d cancelled (forced=%s)", subscriber, plan_id, forced)

    @staticmethod
    def _charge(
        ctx: CallContext, st: SubscriptionStorage, plan: SubscriptionPlan, subscriber: str, token: str
    ) -> ChargeQuote:
        quote = quote_charge(plan, st.base_contract_fee)
        erc20 = ctx.token(token)
        if erc20.allowance(subscriber, ctx.this) < quote.amount:
            raise InsufficientAllowance()
        if erc20.balance_of(subscriber) < quote.amount:
            raise InsufficientBalance()

        erc20.transfer_from(ctx.this, subscriber, ctx.this, quote.amount)
        if quote.owner_share:
            erc20.transfer(ctx.this, plan.owner, quote.owner_share)
        st.collected_fees[token] = st.collected_fees.get(token, 0) + quote.protocol_fee

        ctx.emit(
            ChargeSuccess(
                plan_id=plan.id,
                subscriber=subscriber,
                plan_owner=plan.owner,
                token=token,
                amount=quote.amount,
                protocol_fee=quote.protocol_fee,
                timestamp=ctx.now,
            )
        )
        logger.info(
            "Charged %s %d on plan %d (protocol fee %d)", subscriber, quote.amount, plan.id, quote.protocol_fee
        )
        return quote
