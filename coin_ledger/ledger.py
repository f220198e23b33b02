"""Virtual-currency balances, purchases, transfers and creator redemptions.

Policy failures (insufficient balance, self transfer, payout minimum) come back
as :class:`LedgerResult` values. Malformed input raises ``ValidationError`` and
storage faults raise ``InfrastructureError``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Literal

from bracket_core.models import (
    CoinTransaction,
    PurchaseOrder,
    format_timestamp,
    utc_now,
)
from bracket_core.storage import PlatformStorage
from bracket_core.validation import (
    InfrastructureError,
    ValidationError,
    validate_coin_amount,
    validate_payout_method,
)
from compliance.rules import ComplianceRuleSet

log: Final = logging.getLogger("bracket-platform.ledger")

MINIMUM_PAYOUT_USD: Final = Decimal("10")
_CENTS: Final = Decimal("0.01")

LedgerError = Literal[
    "InsufficientBalance",
    "SelfTransfer",
    "BelowMinimumPayout",
    "NotFound",
    "NotCreator",
    "PolicyViolation",
    "DuplicateConfirmation",
]


@dataclass(slots=True, frozen=True)
class CoinPackage:
    coins: int
    price: Decimal
    bonus: int = 0
    popular: bool = False

    @property
    def total_coins(self) -> int:
        return self.coins + self.bonus

    @property
    def value_per_coin(self) -> Decimal:
        return (self.price / self.total_coins).quantize(Decimal("0.0001"))

    @property
    def savings(self) -> str | None:
        if not self.bonus:
            return None
        percent = (Decimal(self.bonus) / self.coins * 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return f"{percent}% bonus"


COIN_PACKAGES: Final[tuple[CoinPackage, ...]] = (
    CoinPackage(coins=100, price=Decimal("0.99")),
    CoinPackage(coins=500, price=Decimal("4.99"), bonus=50),
    CoinPackage(coins=1000, price=Decimal("9.99"), bonus=150, popular=True),
    CoinPackage(coins=2500, price=Decimal("24.99"), bonus=500),
    CoinPackage(coins=5000, price=Decimal("49.99"), bonus=1250),
    CoinPackage(coins=10000, price=Decimal("99.99"), bonus=3000),
)


@dataclass(slots=True)
class LedgerResult:
    success: bool
    error: LedgerError | None = None
    message: str = ""
    balance: int | None = None
    details: dict[str, object] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: LedgerError, message: str, **details: object) -> LedgerResult:
        return cls(success=False, error=error, message=message, details=details)


class CoinLedger:
    def __init__(
        self,
        storage: PlatformStorage,
        rules: ComplianceRuleSet,
        *,
        clock: Callable[[], datetime] = utc_now,
        coin_to_usd_rate: Decimal = Decimal("0.01"),
        platform_fee_percentage: Decimal = Decimal("30"),
    ) -> None:
        self._storage = storage
        self._rules = rules
        self._clock = clock
        self.coin_to_usd_rate = coin_to_usd_rate
        self.platform_fee_percentage = platform_fee_percentage

    @staticmethod
    def packages() -> list[dict[str, object]]:
        return [
            {
                "index": index,
                "coins": package.coins,
                "bonus": package.bonus,
                "price": package.price,
                "popular": package.popular,
                "total_coins": package.total_coins,
                "value_per_coin": package.value_per_coin,
                "savings": package.savings,
            }
            for index, package in enumerate(COIN_PACKAGES)
        ]

    def exchange_rate(self) -> dict[str, Decimal]:
        return {
            "coin_to_usd": self.coin_to_usd_rate,
            "usd_to_coin": Decimal("1") / self.coin_to_usd_rate,
            "platform_fee_percentage": self.platform_fee_percentage,
        }

    def usd_to_coins(self, amount: Decimal) -> int:
        return int((amount / self.coin_to_usd_rate).to_integral_value(ROUND_HALF_UP))

    def balance(self, user_id: str) -> LedgerResult:
        user = self._storage.get_user(user_id)
        if user is None:
            return LedgerResult.failure("NotFound", "User not found")
        usd_value = (Decimal(user.coins) * self.coin_to_usd_rate).quantize(_CENTS)
        return LedgerResult(
            success=True, balance=user.coins, details={"usd_value": usd_value}
        )

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _record(self, user_id: str, txn_type: str, amount: int, **extra: str | None) -> None:
        transaction = CoinTransaction(
            transaction_id=uuid.uuid4().hex,
            user_id=user_id,
            type=txn_type,  # type: ignore[arg-type]
            amount=amount,
            created_at=self._now(),
            **extra,
        )
        try:
            self._storage.record_transaction(transaction)
        except InfrastructureError:
            # The balance change already happened; keep it and surface the gap in logs.
            log.exception(
                "Failed to record %s transaction of %s coins for user %s",
                txn_type,
                amount,
                user_id,
            )

    # ----- Purchases -----
    def purchase(self, user_id: str, package_index: object) -> LedgerResult:
        if isinstance(package_index, bool) or not isinstance(package_index, int):
            raise ValidationError("Invalid package selection")
        if not 0 <= package_index < len(COIN_PACKAGES):
            raise ValidationError("Invalid package selection")
        if self._storage.get_user(user_id) is None:
            return LedgerResult.failure("NotFound", "User not found")

        package = COIN_PACKAGES[package_index]
        order = PurchaseOrder(
            order_id=uuid.uuid4().hex,
            user_id=user_id,
            package_index=package_index,
            coins=package.coins,
            bonus=package.bonus,
            price=package.price,
            created_at=self._now(),
        )
        if not self._storage.create_order(order):
            raise InfrastructureError(f"Order {order.order_id} already exists")
        log.info(
            "Created order %s for user %s (%s coins, $%s)",
            order.order_id,
            user_id,
            order.total_coins,
            order.price,
        )
        return LedgerResult(
            success=True,
            message=f"{order.total_coins} Bracket Coins",
            details={
                "order_id": order.order_id,
                "price": order.price,
                "coins": order.coins,
                "bonus": order.bonus,
                "total_coins": order.total_coins,
            },
        )

    def confirm_purchase(
        self, order_id: str, user_id: str, coins_granted: int
    ) -> LedgerResult:
        """Apply a payment confirmation; each order credits the balance once."""
        order = self._storage.get_order(user_id, order_id)
        if order is None:
            return LedgerResult.failure("NotFound", "Order not found")
        if coins_granted != order.total_coins:
            raise ValidationError(
                f"Confirmation grants {coins_granted} coins but order {order_id}"
                f" is for {order.total_coins}"
            )
        if order.status == "completed" or not self._storage.complete_order(
            user_id, order_id, self._now()
        ):
            log.info("Ignoring duplicate confirmation for order %s", order_id)
            return LedgerResult.failure(
                "DuplicateConfirmation", "Order already confirmed", order_id=order_id
            )

        balance = self._storage.adjust_coins(user_id, order.total_coins)
        if balance is None:
            log.error("Order %s confirmed for missing user %s", order_id, user_id)
            return LedgerResult.failure("NotFound", "User not found", order_id=order_id)
        self._record(user_id, "purchase", order.total_coins, purpose=f"order:{order_id}")
        log.info("Added %s coins to user %s", order.total_coins, user_id)
        return LedgerResult(
            success=True,
            message=f"Added {order.total_coins} coins",
            balance=balance,
            details={"order_id": order_id},
        )

    # ----- Transfers -----
    def transfer(self, sender_id: str, recipient_id: str, amount: object) -> LedgerResult:
        value = validate_coin_amount(amount)
        if sender_id == recipient_id:
            return LedgerResult.failure("SelfTransfer", "Cannot transfer coins to yourself")
        if self._storage.get_user(sender_id) is None:
            return LedgerResult.failure("NotFound", "Sender not found")
        if self._storage.get_user(recipient_id) is None:
            return LedgerResult.failure("NotFound", "Recipient not found")

        remaining = self._storage.adjust_coins(sender_id, -value)
        if remaining is None:
            return LedgerResult.failure("InsufficientBalance", "Insufficient coin balance")

        try:
            credited = self._storage.adjust_coins(recipient_id, value)
        except InfrastructureError:
            self._compensate(sender_id, value, "transfer")
            raise
        if credited is None:
            self._compensate(sender_id, value, "transfer")
            return LedgerResult.failure("NotFound", "Recipient not found")

        self._record(sender_id, "transfer_out", value, counterparty_id=recipient_id)
        self._record(recipient_id, "transfer_in", value, counterparty_id=sender_id)
        log.info("Transferred %s coins from %s to %s", value, sender_id, recipient_id)
        return LedgerResult(
            success=True,
            message=f"Successfully transferred {value} coins",
            balance=remaining,
            details={"transferred": value, "recipient": recipient_id},
        )

    def _compensate(self, user_id: str, amount: int, operation: str) -> None:
        log.warning("Re-crediting %s coins to %s after failed %s", amount, user_id, operation)
        if self._storage.adjust_coins(user_id, amount) is None:
            log.error("Compensation for user %s failed; account no longer exists", user_id)

    # ----- Redemptions -----
    def payout_breakdown(self, amount: int) -> tuple[Decimal, Decimal, Decimal]:
        gross = Decimal(amount) * self.coin_to_usd_rate
        fee = gross * self.platform_fee_percentage / Decimal("100")
        return gross, fee, gross - fee

    def redeem(self, user_id: str, amount: object, payout_method: object) -> LedgerResult:
        value = validate_coin_amount(amount)
        method = validate_payout_method(payout_method)

        user = self._storage.get_user(user_id)
        if user is None:
            return LedgerResult.failure("NotFound", "User not found")
        profile = self._storage.get_creator_profile(user_id)
        if user.account_type != "creator" or profile is None or not profile.approved:
            return LedgerResult.failure("NotCreator", "Only verified creators can redeem coins")
        if user.coins < value:
            return LedgerResult.failure("InsufficientBalance", "Insufficient coin balance")

        gross, fee, net = self.payout_breakdown(value)
        if net < MINIMUM_PAYOUT_USD:
            return LedgerResult.failure(
                "BelowMinimumPayout",
                f"Minimum payout amount is ${MINIMUM_PAYOUT_USD} USD",
                net_amount=net.quantize(_CENTS),
            )

        remaining = self._storage.adjust_coins(user_id, -value)
        if remaining is None:
            return LedgerResult.failure("InsufficientBalance", "Insufficient coin balance")

        paid_at = self._now()
        try:
            credited = self._storage.add_creator_earnings(user_id, net, paid_at)
        except InfrastructureError:
            self._compensate(user_id, value, "redemption")
            raise
        if not credited:
            self._compensate(user_id, value, "redemption")
            return LedgerResult.failure("NotCreator", "Creator profile no longer exists")

        self._record(user_id, "redemption", value, purpose=f"payout:{method}")
        log.info("User %s redeemed %s coins for $%s net", user_id, value, net.quantize(_CENTS))
        return LedgerResult(
            success=True,
            message="Redemption request submitted successfully",
            balance=remaining,
            details={
                "redemption_id": f"RDM-{uuid.uuid4().hex[:12]}",
                "coin_amount": value,
                "gross_amount": gross.quantize(_CENTS),
                "platform_fee": fee.quantize(_CENTS),
                "net_amount": net.quantize(_CENTS),
                "payout_method": method,
                "status": "processing",
            },
        )

    # ----- Spending -----
    def spend(
        self,
        user_id: str,
        amount: object,
        usage_type: str,
        purpose: str | None = None,
    ) -> LedgerResult:
        value = validate_coin_amount(amount)
        result = self._rules.validate_coin_usage(usage_type, value, purpose)
        if not result.is_compliant:
            log.warning(
                "Rejected %s coin spend for user %s: %s",
                usage_type,
                user_id,
                ", ".join(result.violation_types),
            )
            return LedgerResult.failure(
                "PolicyViolation",
                "Coin usage is not allowed",
                violations=[violation.to_dict() for violation in result.violations],
            )

        remaining = self._storage.adjust_coins(user_id, -value)
        if remaining is None:
            if self._storage.get_user(user_id) is None:
                return LedgerResult.failure("NotFound", "User not found")
            return LedgerResult.failure("InsufficientBalance", "Insufficient coin balance")

        txn_type = "entry_fee" if usage_type == "tournament-entry-fee" else "spend"
        self._record(user_id, txn_type, value, usage_type=usage_type, purpose=purpose)
        return LedgerResult(success=True, message=f"Spent {value} coins", balance=remaining)

    def refund(self, user_id: str, amount: object, purpose: str | None = None) -> LedgerResult:
        value = validate_coin_amount(amount)
        balance = self._storage.adjust_coins(user_id, value)
        if balance is None:
            return LedgerResult.failure("NotFound", "User not found")
        self._record(user_id, "refund", value, purpose=purpose)
        log.info("Refunded %s coins to user %s", value, user_id)
        return LedgerResult(success=True, message=f"Refunded {value} coins", balance=balance)


__all__ = [
    "COIN_PACKAGES",
    "MINIMUM_PAYOUT_USD",
    "CoinLedger",
    "CoinPackage",
    "LedgerResult",
]
