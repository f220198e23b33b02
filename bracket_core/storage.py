from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Final

from boto3.dynamodb.conditions import Attr, ConditionBase, Key
from botocore.exceptions import BotoCoreError, ClientError

from .models import (
    CoinTransaction,
    ComplianceAudit,
    CreatorProfile,
    PurchaseOrder,
    Tournament,
    UserAccount,
    ViolationRecord,
)
from .validation import InfrastructureError

log: Final = logging.getLogger("bracket-platform.storage")


class ConditionFailed(Exception):
    """A conditional write was rejected by DynamoDB."""


class PlatformStorage:
    """Single-table DynamoDB persistence for tournaments, users and audits."""

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Platform table is not configured")

    @contextmanager
    def _dynamo(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                raise ConditionFailed(operation) from exc
            log.error("DynamoDB %s failed: %s", operation, exc)
            raise InfrastructureError(f"DynamoDB {operation} failed ({code})") from exc
        except BotoCoreError as exc:
            log.error("DynamoDB %s failed: %s", operation, exc)
            raise InfrastructureError(f"DynamoDB {operation} failed") from exc

    # ----- Low level helpers -----
    def _get_item(self, key: dict[str, str]) -> dict[str, object] | None:
        self.ensure_table()
        with self._dynamo("GetItem"):
            resp = self._table.get_item(Key=key)
        item = resp.get("Item")
        return item or None

    def _put_item(
        self, item: dict[str, object], condition: ConditionBase | None = None
    ) -> bool:
        self.ensure_table()
        kwargs: dict[str, object] = {"Item": item}
        if condition is not None:
            kwargs["ConditionExpression"] = condition
        try:
            with self._dynamo("PutItem"):
                self._table.put_item(**kwargs)
        except ConditionFailed:
            return False
        return True

    def _scan(self, filter_expression: ConditionBase) -> list[dict[str, object]]:
        self.ensure_table()
        scan_kwargs: dict[str, object] = {"FilterExpression": filter_expression}
        items: list[dict[str, object]] = []
        while True:
            with self._dynamo("Scan"):
                resp = self._table.scan(**scan_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_kwargs["ExclusiveStartKey"] = last_key
        return items

    def _query(self, key_condition: ConditionBase) -> list[dict[str, object]]:
        self.ensure_table()
        query_kwargs: dict[str, object] = {
            "KeyConditionExpression": key_condition,
            "Select": "ALL_ATTRIBUTES",
        }
        items: list[dict[str, object]] = []
        while True:
            with self._dynamo("Query"):
                resp = self._table.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
        return items

    def _update(
        self,
        key: dict[str, str],
        *,
        set_fields: Mapping[str, object] | None = None,
        append_fields: Mapping[str, list[object]] | None = None,
        add_fields: Mapping[str, object] | None = None,
        condition: ConditionBase | None = None,
        return_values: str | None = None,
    ) -> dict[str, object] | None:
        """Apply a SET/ADD update; returns None when the condition fails."""
        self.ensure_table()
        names: dict[str, str] = {}
        values: dict[str, object] = {}
        set_parts: list[str] = []
        add_parts: list[str] = []
        for index, (name, value) in enumerate((set_fields or {}).items()):
            names[f"#s{index}"] = name
            values[f":s{index}"] = value
            set_parts.append(f"#s{index} = :s{index}")
        for index, (name, entries) in enumerate((append_fields or {}).items()):
            if not entries:
                continue
            names[f"#l{index}"] = name
            values[f":l{index}"] = list(entries)
            values[":empty_list"] = []
            set_parts.append(
                f"#l{index} = list_append(if_not_exists(#l{index}, :empty_list), :l{index})"
            )
        for index, (name, delta) in enumerate((add_fields or {}).items()):
            names[f"#a{index}"] = name
            values[f":a{index}"] = delta
            add_parts.append(f"#a{index} :a{index}")
        clauses: list[str] = []
        if set_parts:
            clauses.append("SET " + ", ".join(set_parts))
        if add_parts:
            clauses.append("ADD " + ", ".join(add_parts))
        if not clauses:
            raise ValueError("Update requires at least one field")

        kwargs: dict[str, object] = {
            "Key": key,
            "UpdateExpression": " ".join(clauses),
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }
        if condition is not None:
            kwargs["ConditionExpression"] = condition
        if return_values is not None:
            kwargs["ReturnValues"] = return_values
        try:
            with self._dynamo("UpdateItem"):
                resp = self._table.update_item(**kwargs)
        except ConditionFailed:
            return None
        return resp.get("Attributes", {}) if resp else {}

    # ----- Tournaments -----
    def get_tournament(self, tournament_id: str) -> Tournament | None:
        item = self._get_item(Tournament.key(tournament_id))
        if item is None:
            return None
        return Tournament.from_item(item)

    def create_tournament(self, tournament: Tournament) -> bool:
        return self._put_item(tournament.to_item(), Attr("pk").not_exists())

    def save_tournament(self, tournament: Tournament) -> bool:
        """Write back a tournament only if the stored copy is the one it was read from.

        Returns False when another writer bumped the version in between; nothing is
        written and the caller holds a stale copy. On success the in-memory version
        is advanced.
        """
        expected = tournament.version
        condition: ConditionBase = Attr("version").eq(expected)
        if expected == 0:
            condition = Attr("version").not_exists() | condition
        item = tournament.to_item()
        item["version"] = expected + 1
        if not self._put_item(item, condition):
            log.warning(
                "Stale write rejected for tournament %s (version %s)",
                tournament.tournament_id,
                expected,
            )
            return False
        tournament.version = expected + 1
        return True

    def list_tournaments(
        self,
        statuses: Iterable[str] | None = None,
        *,
        compliant: bool | None = None,
        limit: int | None = None,
    ) -> list[Tournament]:
        condition: ConditionBase = Attr("entity").eq(Tournament.ENTITY)
        if statuses is not None:
            condition = condition & Attr("status").is_in(list(statuses))
        if compliant is not None:
            condition = condition & Attr("riot_api_compliant").eq(compliant)
        tournaments = [Tournament.from_item(item) for item in self._scan(condition)]
        tournaments.sort(key=lambda entry: (entry.created_at, entry.tournament_id))
        if limit is not None:
            return tournaments[:limit]
        return tournaments

    def update_tournament_compliance(
        self,
        tournament_id: str,
        *,
        compliant: bool,
        updated_at: str,
        checked: bool | None = None,
        violations: Iterable[ViolationRecord] = (),
    ) -> bool:
        set_fields: dict[str, object] = {
            "riot_api_compliant": compliant,
            "updated_at": updated_at,
        }
        if checked is not None:
            set_fields["compliance_checked"] = checked
        result = self._update(
            Tournament.key(tournament_id),
            set_fields=set_fields,
            append_fields={
                "compliance_violations": [record.to_dict() for record in violations]
            },
            add_fields={"version": 1},
            condition=Attr("pk").exists(),
        )
        return result is not None

    # ----- Users -----
    def get_user(self, user_id: str) -> UserAccount | None:
        item = self._get_item(UserAccount.key(user_id))
        if item is None:
            return None
        return UserAccount.from_item(item)

    def save_user(self, user: UserAccount) -> None:
        """Provision a user record, replacing any stored item wholesale.

        This includes the coin balance, so it is only for seeding accounts that
        are not yet live. Balances change through :meth:`adjust_coins`.
        """
        self._put_item(user.to_item())

    def list_linked_users(self, *, include_suspended: bool = False) -> list[UserAccount]:
        condition = Attr("entity").eq(UserAccount.ENTITY) & Attr(
            "has_linked_riot_account"
        ).eq(True)
        if not include_suspended:
            condition = condition & Attr("compliance_status").ne("suspended")
        users = [UserAccount.from_item(item) for item in self._scan(condition)]
        users.sort(key=lambda user: user.user_id)
        return users

    def adjust_coins(self, user_id: str, delta: int) -> int | None:
        """Atomically add ``delta`` to the balance; None if it would go negative."""
        condition: ConditionBase = Attr("pk").exists()
        if delta < 0:
            condition = condition & Attr("coins").gte(-delta)
        result = self._update(
            UserAccount.key(user_id),
            add_fields={"coins": delta},
            condition=condition,
            return_values="UPDATED_NEW",
        )
        if result is None:
            return None
        return int(result.get("coins", 0))

    def update_user_compliance(
        self,
        user_id: str,
        *,
        status: str,
        checked_at: str,
        violations: Iterable[ViolationRecord] = (),
    ) -> bool:
        result = self._update(
            UserAccount.key(user_id),
            set_fields={
                "compliance_status": status,
                "last_compliance_check": checked_at,
            },
            append_fields={
                "compliance_violations": [record.to_dict() for record in violations]
            },
            condition=Attr("pk").exists(),
        )
        return result is not None

    # ----- Coin transactions -----
    def record_transaction(self, transaction: CoinTransaction) -> None:
        self._put_item(transaction.to_item())

    def list_transactions(
        self, user_id: str, *, since: str | None = None
    ) -> list[CoinTransaction]:
        pk_condition = Key("pk").eq(CoinTransaction.PK_TEMPLATE % user_id)
        if since is None:
            sk_condition = Key("sk").begins_with(CoinTransaction.SK_PREFIX)
        else:
            sk_condition = Key("sk").between(
                CoinTransaction.SK_PREFIX + since, CoinTransaction.SK_PREFIX + "~"
            )
        items = self._query(pk_condition & sk_condition)
        return [CoinTransaction.from_item(item) for item in items]

    # ----- Purchase orders -----
    def create_order(self, order: PurchaseOrder) -> bool:
        return self._put_item(order.to_item(), Attr("pk").not_exists())

    def get_order(self, user_id: str, order_id: str) -> PurchaseOrder | None:
        item = self._get_item(PurchaseOrder.key(user_id, order_id))
        if item is None:
            return None
        return PurchaseOrder.from_item(item)

    def complete_order(self, user_id: str, order_id: str, completed_at: str) -> bool:
        result = self._update(
            PurchaseOrder.key(user_id, order_id),
            set_fields={"status": "completed", "completed_at": completed_at},
            condition=Attr("status").eq("pending"),
        )
        return result is not None

    # ----- Creator profiles -----
    def get_creator_profile(self, user_id: str) -> CreatorProfile | None:
        item = self._get_item(CreatorProfile.key(user_id))
        if item is None:
            return None
        return CreatorProfile.from_item(item)

    def save_creator_profile(self, profile: CreatorProfile) -> None:
        """Provision a creator profile; overwrites stored earnings.

        Earnings of a live creator change only through :meth:`add_creator_earnings`.
        """
        self._put_item(profile.to_item())

    def add_creator_earnings(self, user_id: str, amount, paid_at: str) -> bool:
        result = self._update(
            CreatorProfile.key(user_id),
            set_fields={"last_payout": paid_at},
            add_fields={"total_earnings": amount},
            condition=Attr("pk").exists(),
        )
        return result is not None

    # ----- Compliance audits -----
    def put_audit(self, audit: ComplianceAudit) -> bool:
        return self._put_item(audit.to_item(), Attr("pk").not_exists())

    def get_audit(self, audit_id: str) -> ComplianceAudit | None:
        item = self._get_item(ComplianceAudit.key(audit_id))
        if item is None:
            return None
        return ComplianceAudit.from_item(item)

    def list_audits(
        self, *, since: str | None = None, until: str | None = None
    ) -> list[ComplianceAudit]:
        condition: ConditionBase = Attr("entity").eq(ComplianceAudit.ENTITY)
        if since is not None:
            condition = condition & Attr("created_at").gte(since)
        if until is not None:
            condition = condition & Attr("created_at").lte(until)
        audits = [ComplianceAudit.from_item(item) for item in self._scan(condition)]
        audits.sort(key=lambda audit: (audit.created_at, audit.audit_id), reverse=True)
        return audits

    def resolve_audit(
        self,
        audit_id: str,
        *,
        resolution: str,
        resolved: bool,
        resolved_by: str,
        resolved_at: str,
    ) -> bool:
        result = self._update(
            ComplianceAudit.key(audit_id),
            set_fields={
                "resolution": resolution,
                "resolved": resolved,
                "resolved_by": resolved_by,
                "resolved_at": resolved_at,
            },
            condition=Attr("pk").exists() & Attr("resolved_at").not_exists(),
        )
        return result is not None


__all__ = ["ConditionFailed", "PlatformStorage"]
