"""Subscription plan registry and billing engine tests."""

import pytest

from diamondpay import constants as c
from diamondpay import deploy_diamond, deploy_facet
from diamondpay.errors import (
    AlreadySubscribed,
    BlockedSubscriptionOwner,
    DuplicatePayment,
    EconomicError,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidDuration,
    InvalidFee,
    InvalidPaymentInterval,
    NotOwner,
    NotSubscribed,
    NotSubscriptionOwner,
    PausedSubscriptionOwner,
    PlanInactive,
    PlanNotFound,
    RenewalRequired,
    Revert,
    TimingError,
    WrongTokenContract,
    ZeroAddressTransfer,
)
from diamondpay.facets import SubscriptionConfig, SubscriptionFacet
from diamondpay.facets.subscription import quote_charge
from diamondpay.schemas import SubscriptionPlan
from diamondpay.tokens import ERC20Token
from diamondpay.utils import days

FEE = 1200
DURATION = 365
INTERVAL = 14
PER_PERIOD = 46  # 1200 * 14 // 365


@pytest.fixture
def funded_subscriber(token, diamond, subscriber):
    token.mint(subscriber, 2200)
    token.approve(subscriber, diamond.address, 2200)
    return subscriber


@pytest.fixture
def plans(subscriptions, plan_owner):
    """Subscription functions called by the plan owner."""
    return subscriptions.connect(plan_owner)


@pytest.fixture
def plan_id(plans):
    return plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")


@pytest.fixture
def subscribed(plans, plan_id, token, funded_subscriber):
    plans.connect(funded_subscriber).subscribe(plan_id, token.address)
    return plan_id


# ============================================================================
# PLANS
# ============================================================================


class TestCreatePlan:
    def test_create_plan(self, chain, plans, plan_owner):
        plan_id = plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")

        plan = plans.get_plan(plan_id)
        assert plan_id == 0
        assert plan.owner == plan_owner
        assert plan.fee == FEE
        assert plan.auto_renew is True
        assert plan.payment_interval == INTERVAL
        assert plan.title_text == "Gold"
        assert plan.active is True

        event = chain.get_logs("NewPlan")[-1]
        assert event.plan_id == plan_id
        assert event.owner == plan_owner

    def test_plan_ids_are_sequential(self, plans, subscriptions, other, plan_owner):
        first = plans.create_plan(FEE, False, 30, 7, "A")
        second = plans.connect(other).create_plan(FEE, False, 30, 7, "B")
        third = plans.create_plan(FEE, False, 30, 7, "C")

        assert (first, second, third) == (0, 1, 2)
        assert subscriptions.get_plan_count() == 3
        assert subscriptions.get_plans_by_owner(plan_owner) == [0, 2]
        assert subscriptions.get_plans_by_owner(other) == [1]

    def test_bytes32_title(self, plans):
        title = b"Silver".ljust(32, b"\x00")
        plan_id = plans.create_plan(FEE, True, DURATION, INTERVAL, title)
        assert plans.get_plan(plan_id).title == title

    @pytest.mark.parametrize("duration", [0, 6, 366])
    def test_invalid_duration(self, plans, duration):
        with pytest.raises(InvalidDuration) as exc:
            plans.create_plan(FEE, True, duration, 1, "Gold")
        assert exc.value.reason == c.ERR_INVALID_DURATION

    @pytest.mark.parametrize("interval", [0, 31])
    def test_invalid_payment_interval(self, plans, interval):
        with pytest.raises(InvalidPaymentInterval):
            plans.create_plan(FEE, True, 30, interval, "Gold")

    @pytest.mark.parametrize("fee", [0, 1])
    def test_invalid_fee(self, plans, fee):
        # a fee of 1 over 365 days truncates to a zero charge per interval
        with pytest.raises(InvalidFee):
            plans.create_plan(fee, True, DURATION, INTERVAL, "Gold")

    def test_failed_create_does_not_consume_id(self, plans, subscriptions):
        with pytest.raises(InvalidDuration):
            plans.create_plan(FEE, True, 3, 1, "Gold")
        assert plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold") == 0
        assert subscriptions.get_plan_count() == 1

    def test_get_missing_plan(self, subscriptions):
        with pytest.raises(PlanNotFound) as exc:
            subscriptions.get_plan(10)
        assert exc.value.plan_id == 10

    def test_stop_plan(self, chain, plans, plan_id, token, funded_subscriber):
        plans.stop_plan(plan_id)

        assert plans.is_plan_active(plan_id) is False
        assert chain.get_logs("PlanStopped")[-1].plan_id == plan_id
        with pytest.raises(PlanInactive):
            plans.connect(funded_subscriber).subscribe(plan_id, token.address)

    def test_only_plan_owner_stops_plan(self, plans, plan_id, other):
        with pytest.raises(NotSubscriptionOwner):
            plans.connect(other).stop_plan(plan_id)
        assert plans.is_plan_active(plan_id) is True

    def test_active_for_owner(self, plans, plan_id, plan_owner, other):
        assert plans.is_plan_active_for_owner(plan_owner, plan_id) is True
        assert plans.is_plan_active_for_owner(other, plan_id) is False
        assert plans.is_plan_active_for_owner(plan_owner, 99) is False


# ============================================================================
# SUBSCRIBE AND CHARGE
# ============================================================================


class TestSubscribe:
    def test_first_period_charged(self, chain, plans, subscribed, token, plan_owner, funded_subscriber):
        assert token.balance_of(funded_subscriber) == 2200 - PER_PERIOD
        assert token.balance_of(plan_owner) == PER_PERIOD
        assert plans.is_plan_subscribed(subscribed, funded_subscriber) is True

        record = plans.get_subscription(subscribed, funded_subscriber)
        assert record.token == token.address
        assert record.start_timestamp == chain.now
        assert record.last_charge_timestamp == chain.now

        event = chain.get_logs("ChargeSuccess")[-1]
        assert event.amount == PER_PERIOD
        assert event.subscriber == funded_subscriber
        assert event.protocol_fee == 0

    def test_already_subscribed(self, plans, subscribed, token, funded_subscriber):
        with pytest.raises(AlreadySubscribed) as exc:
            plans.connect(funded_subscriber).subscribe(subscribed, token.address)
        assert exc.value.reason == c.ERR_ALREADY_SUBSCRIBED
        assert token.balance_of(funded_subscriber) == 2200 - PER_PERIOD

    def test_missing_plan(self, plans, token, funded_subscriber):
        with pytest.raises(PlanNotFound):
            plans.connect(funded_subscriber).subscribe(10, token.address)

    def test_zero_token(self, plans, plan_id, funded_subscriber):
        with pytest.raises(WrongTokenContract):
            plans.connect(funded_subscriber).subscribe(plan_id, c.ZERO_ADDRESS)

    def test_insufficient_allowance_is_atomic(self, plans, plan_id, token, diamond, subscriber):
        token.mint(subscriber, 2200)
        token.approve(subscriber, diamond.address, 10)

        with pytest.raises(InsufficientAllowance):
            plans.connect(subscriber).subscribe(plan_id, token.address)
        assert plans.is_plan_subscribed(plan_id, subscriber) is False
        assert token.balance_of(subscriber) == 2200

    def test_insufficient_balance(self, plans, plan_id, token, diamond, subscriber):
        token.mint(subscriber, 10)
        token.approve(subscriber, diamond.address, 2200)
        with pytest.raises(InsufficientBalance):
            plans.connect(subscriber).subscribe(plan_id, token.address)

    def test_payout_must_be_plan_owner(self, plans, plan_id, token, funded_subscriber, plan_owner, other):
        handle = plans.connect(funded_subscriber)
        with pytest.raises(NotSubscriptionOwner):
            handle.subscribe_with_payout(plan_id, token.address, other)
        handle.subscribe_with_payout(plan_id, token.address, plan_owner)
        assert token.balance_of(plan_owner) == PER_PERIOD


class TestCharge:
    def test_recurring_charge(self, chain, plans, subscribed, token, plan_owner, funded_subscriber):
        chain.advance(days=INTERVAL)
        plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

        assert token.balance_of(funded_subscriber) == 2200 - 2 * PER_PERIOD
        assert token.balance_of(plan_owner) == 2 * PER_PERIOD
        record = plans.get_subscription(subscribed, funded_subscriber)
        assert record.last_charge_timestamp == chain.now
        assert record.charges == 2

    def test_duplicate_payment_window(self, chain, plans, subscribed, token, funded_subscriber):
        chain.advance(days=INTERVAL - 1)
        with pytest.raises(DuplicatePayment) as exc:
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)
        assert isinstance(exc.value, TimingError)
        assert exc.value.reason == c.ERR_DUPLICATE_PAYMENT

        chain.advance(days=1)
        assert exc.value.next_charge_at == chain.now
        plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_immediate_second_charge_rejected(self, plans, subscribed, token, funded_subscriber):
        with pytest.raises(DuplicatePayment):
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_renewal_required(self, chain, plans, token, funded_subscriber):
        plan_id = plans.create_plan(FEE, True, 30, 14, "Monthly")
        plans.connect(funded_subscriber).subscribe(plan_id, token.address)

        chain.advance(days=14)
        plans.charge_fee_by_subscription_owner(plan_id, token.address, funded_subscriber)
        chain.advance(days=14)
        with pytest.raises(RenewalRequired) as exc:
            plans.charge_fee_by_subscription_owner(plan_id, token.address, funded_subscriber)
        assert exc.value.reason == c.ERR_RENEWAL_REQUIRED

    def test_only_plan_owner_charges(self, chain, plans, subscribed, token, funded_subscriber, other):
        chain.advance(days=INTERVAL)
        with pytest.raises(NotSubscriptionOwner):
            plans.connect(other).charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_not_subscribed(self, chain, plans, plan_id, token, other):
        chain.advance(days=INTERVAL)
        with pytest.raises(NotSubscribed):
            plans.charge_fee_by_subscription_owner(plan_id, token.address, other)

    def test_wrong_payment_token(self, chain, plans, subscribed, owner, funded_subscriber):
        other_token = ERC20Token("Other", "OTH")
        chain.deploy(other_token, owner)
        chain.advance(days=INTERVAL)
        with pytest.raises(Revert) as exc:
            plans.charge_fee_by_subscription_owner(subscribed, other_token.address, funded_subscriber)
        assert exc.value.reason == c.ERR_WRONG_PAYMENT_TOKEN

    def test_failed_charge_keeps_record(self, chain, plans, subscribed, token, diamond, funded_subscriber):
        token.approve(funded_subscriber, diamond.address, 0)
        chain.advance(days=INTERVAL)
        before = plans.get_subscription(subscribed, funded_subscriber)
        with pytest.raises(InsufficientAllowance):
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)
        assert plans.get_subscription(subscribed, funded_subscriber) == before

    def test_stopped_plan_cannot_charge(self, chain, plans, subscribed, token, funded_subscriber):
        plans.stop_plan(subscribed)
        chain.advance(days=INTERVAL)
        with pytest.raises(PlanInactive):
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_grace_allows_early_charge(self, chain, owner, plan_owner, subscriber):
        diamond = deploy_diamond(chain, owner).diamond
        deploy_facet(chain, diamond, SubscriptionFacet(SubscriptionConfig(charge_grace_days=3)), owner)
        erc20 = ERC20Token()
        chain.deploy(erc20, owner)
        erc20.mint(subscriber, 2200)
        erc20.approve(subscriber, diamond.address, 2200)

        plans = diamond.as_facet(SubscriptionFacet, plan_owner)
        plan_id = plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")
        plans.connect(subscriber).subscribe(plan_id, erc20.address)

        chain.advance(days=INTERVAL - 4)
        with pytest.raises(DuplicatePayment):
            plans.charge_fee_by_subscription_owner(plan_id, erc20.address, subscriber)
        chain.advance(days=1)
        plans.charge_fee_by_subscription_owner(plan_id, erc20.address, subscriber)
        assert erc20.balance_of(plan_owner) == 2 * PER_PERIOD


class TestOwnerCharge:
    def test_charge_right_after_subscribing(self, chain, subscriptions, subscribed, token, plan_owner, funded_subscriber):
        assert token.balance_of(funded_subscriber) == 2154

        subscriptions.charge_fee(subscribed, token.address, funded_subscriber)

        assert token.balance_of(funded_subscriber) == 2108
        assert token.balance_of(plan_owner) == 92
        assert chain.get_logs("ChargeSuccess")[-1].subscriber == funded_subscriber
        record = subscriptions.get_subscription(subscribed, funded_subscriber)
        assert record.charges == 2
        assert record.last_charge_timestamp == chain.now

    def test_missing_plan(self, subscriptions, token, funded_subscriber):
        with pytest.raises(PlanNotFound):
            subscriptions.charge_fee(10, token.address, funded_subscriber)

    def test_paused_plan_owner(self, subscriptions, plans, plan_id, token, plan_owner, subscriber):
        subscriptions.pause_subscription_owner(plan_owner)
        with pytest.raises(PausedSubscriptionOwner):
            subscriptions.charge_fee(plan_id, token.address, subscriber)

    def test_not_subscribed(self, subscriptions, plan_id, token, subscriber):
        with pytest.raises(NotSubscribed) as exc:
            subscriptions.charge_fee(plan_id, token.address, subscriber)
        assert exc.value.reason == c.ERR_NOT_SUBSCRIBED

    def test_only_diamond_owner(self, plans, subscribed, token, funded_subscriber):
        with pytest.raises(NotOwner):
            plans.charge_fee(subscribed, token.address, funded_subscriber)


class TestProtocolFee:
    def test_fee_split(self, chain, subscriptions, plans, plan_id, token, diamond, plan_owner, funded_subscriber):
        subscriptions.set_base_contract_fee(10)
        plans.connect(funded_subscriber).subscribe(plan_id, token.address)

        assert token.balance_of(plan_owner) == 42
        assert token.balance_of(diamond.address) == 4
        assert subscriptions.get_collected_fees(token.address) == 4
        assert chain.get_logs("ChargeSuccess")[-1].protocol_fee == 4

    def test_quote(self, subscriptions, plan_id):
        subscriptions.set_protocol_fee(50)
        quote = subscriptions.quote_charge(plan_id)
        assert (quote.amount, quote.protocol_fee, quote.owner_share) == (46, 23, 23)

    def test_quote_helper(self):
        plan = SubscriptionPlan(
            id=0,
            owner=c.ZERO_ADDRESS,
            fee=FEE,
            auto_renew=True,
            duration=DURATION,
            payment_interval=INTERVAL,
            title=b"\x00" * 32,
        )
        assert quote_charge(plan, 0).owner_share == PER_PERIOD

    def test_fee_aliases(self, subscriptions):
        subscriptions.set_protocol_fee(7)
        assert subscriptions.get_base_contract_fee() == 7
        assert subscriptions.get_protocol_fee() == 7

    def test_fee_bounds(self, subscriptions):
        with pytest.raises(InvalidFee):
            subscriptions.set_base_contract_fee(101)
        subscriptions.set_base_contract_fee(100)

    def test_only_owner_sets_fee(self, subscriptions, other):
        with pytest.raises(NotOwner):
            subscriptions.connect(other).set_base_contract_fee(5)


# ============================================================================
# CANCELLATION
# ============================================================================


class TestCancellation:
    def test_cancel(self, chain, plans, subscribed, token, funded_subscriber):
        plans.connect(funded_subscriber).cancel_subscription(subscribed)

        assert plans.is_plan_subscribed(subscribed, funded_subscriber) is False
        event = chain.get_logs("SubscriptionCancelled")[-1]
        assert event.forced is False

        chain.advance(days=INTERVAL)
        with pytest.raises(NotSubscribed):
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_cancel_twice(self, plans, subscribed, funded_subscriber):
        handle = plans.connect(funded_subscriber)
        handle.cancel_subscription(subscribed)
        with pytest.raises(NotSubscribed):
            handle.cancel_subscription(subscribed)

    def test_resubscribe_after_cancel(self, plans, subscribed, token, funded_subscriber):
        handle = plans.connect(funded_subscriber)
        handle.cancel_subscription(subscribed)
        handle.subscribe(subscribed, token.address)
        assert token.balance_of(funded_subscriber) == 2200 - 2 * PER_PERIOD

    def test_forced_cancellation(self, chain, plans, subscribed, funded_subscriber):
        plans.forced_cancellation(subscribed, funded_subscriber)
        assert plans.is_plan_subscribed(subscribed, funded_subscriber) is False
        assert chain.get_logs("SubscriptionCancelled")[-1].forced is True

    def test_forced_cancellation_by_stranger(self, plans, subscribed, funded_subscriber, other):
        with pytest.raises(NotSubscriptionOwner):
            plans.connect(other).forced_cancellation(subscribed, funded_subscriber)


# ============================================================================
# PLAN OWNER MODERATION
# ============================================================================


class TestModeration:
    def test_pause_blocks_new_subscriptions_and_plans(
        self, subscriptions, plans, plan_id, token, plan_owner, funded_subscriber
    ):
        subscriptions.pause_subscription_owner(plan_owner)
        assert subscriptions.is_subscription_owner_paused(plan_owner) is True

        with pytest.raises(PausedSubscriptionOwner) as exc:
            plans.connect(funded_subscriber).subscribe(plan_id, token.address)
        assert exc.value.owner == plan_owner
        with pytest.raises(PausedSubscriptionOwner):
            plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")

    def test_pause_blocks_charges(self, chain, subscriptions, plans, subscribed, token, plan_owner, funded_subscriber):
        subscriptions.pause_subscription_owner(plan_owner)
        chain.advance(days=INTERVAL)
        with pytest.raises(PausedSubscriptionOwner):
            plans.charge_fee_by_subscription_owner(subscribed, token.address, funded_subscriber)

    def test_restore(self, subscriptions, plans, plan_id, token, plan_owner, funded_subscriber):
        subscriptions.pause_subscription_owner(plan_owner)
        subscriptions.restore_subscription_owner(plan_owner)

        assert subscriptions.is_subscription_owner_paused(plan_owner) is False
        plans.connect(funded_subscriber).subscribe(plan_id, token.address)

    def test_remove_deactivates_all_plans(self, chain, subscriptions, plans, plan_id, token, plan_owner, funded_subscriber):
        second = plans.create_plan(FEE, False, 30, 7, "Silver")
        subscriptions.remove_subscription_owner(plan_owner)

        assert subscriptions.is_subscription_owner_blacklisted(plan_owner) is True
        assert subscriptions.is_plan_active(plan_id) is False
        assert subscriptions.is_plan_active(second) is False
        with pytest.raises(BlockedSubscriptionOwner):
            plans.connect(funded_subscriber).subscribe(plan_id, token.address)
        with pytest.raises(BlockedSubscriptionOwner):
            plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")

        event = chain.get_logs("SubscriptionOwnerStatusChanged")[-1]
        assert event.blacklisted is True

    def test_blacklist_checked_before_pause(self, subscriptions, plans, plan_owner):
        subscriptions.pause_subscription_owner(plan_owner)
        subscriptions.remove_subscription_owner(plan_owner)
        with pytest.raises(BlockedSubscriptionOwner):
            plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")

    def test_restore_does_not_lift_blacklist(self, subscriptions, plans, plan_owner):
        subscriptions.remove_subscription_owner(plan_owner)
        subscriptions.restore_subscription_owner(plan_owner)
        with pytest.raises(BlockedSubscriptionOwner):
            plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold")

    def test_other_owners_unaffected(self, subscriptions, plans, other):
        subscriptions.remove_subscription_owner(other)
        assert plans.create_plan(FEE, True, DURATION, INTERVAL, "Gold") == 0

    @pytest.mark.parametrize(
        "method", ["pause_subscription_owner", "restore_subscription_owner", "remove_subscription_owner"]
    )
    def test_moderation_is_owner_only(self, subscriptions, plan_owner, other, method):
        with pytest.raises(NotOwner):
            getattr(subscriptions.connect(other), method)(plan_owner)


# ============================================================================
# BALANCES
# ============================================================================


class TestBalances:
    def test_withdraw_protocol_fees(self, subscriptions, plans, plan_id, token, diamond, funded_subscriber, other):
        subscriptions.set_base_contract_fee(10)
        plans.connect(funded_subscriber).subscribe(plan_id, token.address)

        assert subscriptions.erc20_balance(token.address) == 4
        subscriptions.transfer_erc20_balance(token.address, other, 4)
        assert token.balance_of(other) == 4
        assert subscriptions.get_collected_fees(token.address) == 0

    def test_withdraw_more_than_held(self, subscriptions, token, other):
        with pytest.raises(EconomicError) as exc:
            subscriptions.transfer_erc20_balance(token.address, other, 1)
        assert exc.value.reason == c.ERR_CONTRACT_TOKEN_BALANCE

    def test_withdraw_to_zero_address(self, subscriptions, token):
        with pytest.raises(ZeroAddressTransfer):
            subscriptions.transfer_erc20_balance(token.address, c.ZERO_ADDRESS, 1)

    def test_native_balance(self, chain, subscriptions, diamond, subscriber, other):
        diamond.receive(subscriber, 100)
        assert subscriptions.native_balance() == 100

        before = chain.balance_of(other)
        subscriptions.transfer_balance(other, 60)
        assert chain.balance_of(other) == before + 60
        assert subscriptions.native_balance() == 40

        with pytest.raises(EconomicError) as exc:
            subscriptions.transfer_balance(other, 41)
        assert exc.value.reason == c.ERR_CONTRACT_BALANCE

    def test_only_owner_withdraws(self, subscriptions, token, other):
        with pytest.raises(NotOwner):
            subscriptions.connect(other).transfer_balance(other, 1)
        with pytest.raises(NotOwner):
            subscriptions.connect(other).transfer_erc20_balance(token.address, other, 1)


def test_days_helper():
    assert days(INTERVAL) == INTERVAL * c.SECONDS_PER_DAY
