from decimal import Decimal
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from bracket_core.validation import InfrastructureError, ValidationError
from coin_ledger.ledger import COIN_PACKAGES, CoinLedger
from compliance.rules import ComplianceRuleSet


@pytest.fixture
def ledger(storage, clock):
    return CoinLedger(storage, ComplianceRuleSet(), clock=clock)


def throughput_error(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException"}}, operation
    )


class TestPackages:
    def test_catalogue(self, ledger):
        packages = ledger.packages()

        assert len(packages) == len(COIN_PACKAGES) == 6
        popular = [package for package in packages if package["popular"]]
        assert [package["index"] for package in popular] == [2]
        assert popular[0]["total_coins"] == 1150
        assert popular[0]["savings"] == "15% bonus"
        assert packages[0]["savings"] is None

    def test_exchange_rate(self, ledger):
        rates = ledger.exchange_rate()

        assert rates["coin_to_usd"] == Decimal("0.01")
        assert rates["usd_to_coin"] == Decimal("100")
        assert rates["platform_fee_percentage"] == Decimal("30")

    def test_balance(self, ledger, make_user):
        make_user("u1", coins=250)

        result = ledger.balance("u1")

        assert result.balance == 250
        assert result.details["usd_value"] == Decimal("2.50")
        assert ledger.balance("ghost").error == "NotFound"


class TestPurchase:
    def test_purchase_creates_pending_order(self, ledger, storage, make_user):
        make_user("u1")

        result = ledger.purchase("u1", 2)

        assert result.success
        order = storage.get_order("u1", result.details["order_id"])
        assert order.status == "pending"
        assert order.total_coins == 1150
        # Coins are only credited once the payment is confirmed.
        assert storage.get_user("u1").coins == 0

    @pytest.mark.parametrize("index", [-1, 6, "2", True, None])
    def test_invalid_package(self, ledger, make_user, index):
        make_user("u1")

        with pytest.raises(ValidationError):
            ledger.purchase("u1", index)

    def test_missing_user(self, ledger):
        assert ledger.purchase("ghost", 0).error == "NotFound"

    def test_confirmation_credits_once(self, ledger, storage, make_user):
        make_user("u1", coins=5)
        order_id = ledger.purchase("u1", 1).details["order_id"]

        first = ledger.confirm_purchase(order_id, "u1", 550)
        second = ledger.confirm_purchase(order_id, "u1", 550)

        assert first.success
        assert first.balance == 555
        assert second.error == "DuplicateConfirmation"
        assert storage.get_user("u1").coins == 555
        purchases = [t for t in storage.list_transactions("u1") if t.type == "purchase"]
        assert len(purchases) == 1
        assert purchases[0].amount == 550

    def test_confirmation_must_match_order(self, ledger, make_user):
        make_user("u1")
        order_id = ledger.purchase("u1", 0).details["order_id"]

        with pytest.raises(ValidationError):
            ledger.confirm_purchase(order_id, "u1", 1000)

    def test_unknown_order(self, ledger, make_user):
        make_user("u1")

        assert ledger.confirm_purchase("nope", "u1", 100).error == "NotFound"


class TestTransfer:
    def test_insufficient_balance(self, ledger, storage, make_user):
        make_user("alice", coins=10)
        make_user("bob")

        result = ledger.transfer("alice", "bob", 15)

        assert not result.success
        assert result.error == "InsufficientBalance"
        assert storage.get_user("alice").coins == 10
        assert storage.get_user("bob").coins == 0

    def test_exact_balance(self, ledger, storage, make_user):
        make_user("alice", coins=15)
        make_user("bob", coins=1)

        result = ledger.transfer("alice", "bob", 15)

        assert result.success
        assert result.balance == 0
        assert storage.get_user("bob").coins == 16
        assert [t.type for t in storage.list_transactions("alice")] == ["transfer_out"]
        incoming = storage.list_transactions("bob")
        assert incoming[0].type == "transfer_in"
        assert incoming[0].counterparty_id == "alice"

    def test_self_transfer(self, ledger, make_user):
        make_user("alice", coins=50)

        assert ledger.transfer("alice", "alice", 5).error == "SelfTransfer"

    def test_missing_recipient(self, ledger, storage, make_user):
        make_user("alice", coins=50)

        assert ledger.transfer("alice", "ghost", 5).error == "NotFound"
        assert storage.get_user("alice").coins == 50

    @pytest.mark.parametrize("amount", [0, -5, "ten", 2.5])
    def test_invalid_amount(self, ledger, make_user, amount):
        make_user("alice", coins=50)
        make_user("bob")

        with pytest.raises(ValidationError):
            ledger.transfer("alice", "bob", amount)

    def test_credit_failure_recredits_sender(self, ledger, storage, make_user):
        make_user("alice", coins=50)
        make_user("bob")
        original = storage.adjust_coins

        def flaky(user_id, delta):
            if user_id == "bob":
                raise InfrastructureError("boom")
            return original(user_id, delta)

        with patch.object(storage, "adjust_coins", side_effect=flaky):
            with pytest.raises(InfrastructureError):
                ledger.transfer("alice", "bob", 20)

        assert storage.get_user("alice").coins == 50

    def test_history_failure_keeps_transfer(self, ledger, storage, make_user, fake_table):
        make_user("alice", coins=50)
        make_user("bob")
        fake_table.fail_with["put_item"] = throughput_error("PutItem")

        result = ledger.transfer("alice", "bob", 20)

        assert result.success
        assert storage.get_user("bob").coins == 20


class TestRedeem:
    def test_below_minimum_payout(self, ledger, storage, make_creator):
        make_creator("c1", coins=500)

        result = ledger.redeem("c1", 100, "paypal")

        assert result.error == "BelowMinimumPayout"
        assert result.details["net_amount"] == Decimal("0.70")
        assert storage.get_user("c1").coins == 500

    def test_successful_redemption(self, ledger, storage, make_creator):
        make_creator("c1", coins=2500)

        result = ledger.redeem("c1", 2000, "bank_transfer")

        assert result.success
        assert result.balance == 500
        assert result.details["gross_amount"] == Decimal("20.00")
        assert result.details["platform_fee"] == Decimal("6.00")
        assert result.details["net_amount"] == Decimal("14.00")
        assert result.details["redemption_id"].startswith("RDM-")
        profile = storage.get_creator_profile("c1")
        assert profile.total_earnings == Decimal("14")
        assert profile.last_payout == "2025-03-09T12:00:00.000000Z"
        assert [t.type for t in storage.list_transactions("c1")] == ["redemption"]

    def test_requires_approved_creator(self, ledger, make_user, make_creator):
        make_user("u1", coins=5000)
        make_creator("c2", coins=5000, approved=False)

        assert ledger.redeem("u1", 2000, "paypal").error == "NotCreator"
        assert ledger.redeem("c2", 2000, "paypal").error == "NotCreator"

    def test_insufficient_balance(self, ledger, make_creator):
        make_creator("c1", coins=1000)

        assert ledger.redeem("c1", 2000, "paypal").error == "InsufficientBalance"

    def test_invalid_payout_method(self, ledger, make_creator):
        make_creator("c1", coins=5000)

        with pytest.raises(ValidationError):
            ledger.redeem("c1", 2000, "cash")


class TestSpendAndRefund:
    def test_entry_fee_spend(self, ledger, storage, make_user):
        make_user("u1", coins=300)

        result = ledger.spend("u1", 250, "tournament-entry-fee", "Entry fee for t-1")

        assert result.success
        assert result.balance == 50
        (txn,) = storage.list_transactions("u1")
        assert txn.type == "entry_fee"
        assert txn.usage_type == "tournament-entry-fee"

    def test_other_allowed_usage(self, ledger, storage, make_user):
        make_user("u1", coins=300)

        assert ledger.spend("u1", 100, "cosmetic-purchases").success
        assert storage.list_transactions("u1")[0].type == "spend"

    def test_prohibited_usage(self, ledger, storage, make_user):
        make_user("u1", coins=300)

        result = ledger.spend("u1", 100, "loot-boxes")

        assert result.error == "PolicyViolation"
        assert result.details["violations"][0]["type"] == "prohibited_coin_usage"
        assert storage.get_user("u1").coins == 300

    def test_gambling_purpose(self, ledger, make_user):
        make_user("u1", coins=300)

        result = ledger.spend("u1", 10, "platform-features", "Place a bet")

        assert result.error == "PolicyViolation"

    def test_entry_fee_cap(self, ledger, make_user):
        make_user("u1", coins=10000)

        assert ledger.spend("u1", 5001, "tournament-entry-fee").error == "PolicyViolation"
        assert ledger.spend("u1", 5000, "tournament-entry-fee").success

    def test_spend_insufficient_or_missing(self, ledger, make_user):
        make_user("u1", coins=5)

        assert ledger.spend("u1", 10, "platform-features").error == "InsufficientBalance"
        assert ledger.spend("ghost", 10, "platform-features").error == "NotFound"

    def test_refund(self, ledger, storage, make_user):
        make_user("u1", coins=5)

        result = ledger.refund("u1", 20, "Refund for t-1")

        assert result.balance == 25
        assert storage.list_transactions("u1")[0].type == "refund"
        assert ledger.refund("ghost", 20).error == "NotFound"
