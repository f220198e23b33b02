from __future__ import annotations

import copy
import re
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from boto3.dynamodb.conditions import AttributeBase
from botocore.exceptions import ClientError

from bracket_core.models import CreatorProfile, RiotAccountLink, UserAccount
from bracket_core.storage import PlatformStorage

_MISSING = object()
_SET_ASSIGNMENT = re.compile(
    r"(#\w+) = list_append\(if_not_exists\(#\w+, (:\w+)\), (:\w+)\)|(#\w+) = (:\w+)"
)
_ADD_ASSIGNMENT = re.compile(r"(#\w+) (:\w+)")


def _condition_failed(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


def evaluate(condition, item: dict[str, object]) -> bool:
    """Evaluate a boto3 condition object against a stored item."""
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]
    if operator == "AND":
        return all(evaluate(value, item) for value in values)
    if operator == "OR":
        return any(evaluate(value, item) for value in values)
    if operator == "NOT":
        return not evaluate(values[0], item)
    if operator == "attribute_exists":
        return values[0].name in item
    if operator == "attribute_not_exists":
        return values[0].name not in item

    left = item.get(values[0].name, _MISSING)
    operands = [
        item.get(value.name, _MISSING) if isinstance(value, AttributeBase) else value
        for value in values[1:]
    ]
    if operator == "<>":
        return left is _MISSING or left != operands[0]
    if left is _MISSING:
        return False
    if operator == "=":
        return left == operands[0]
    if operator == ">=":
        return left >= operands[0]
    if operator == "<=":
        return left <= operands[0]
    if operator == ">":
        return left > operands[0]
    if operator == "<":
        return left < operands[0]
    if operator == "IN":
        return left in operands[0]
    if operator == "BETWEEN":
        return operands[0] <= left <= operands[1]
    if operator == "begins_with":
        return str(left).startswith(operands[0])
    if operator == "contains":
        return operands[0] in left  # type: ignore[operator]
    raise NotImplementedError(operator)


class FakeTable:
    """In-memory stand-in for a DynamoDB Table resource."""

    def __init__(self, *, page_size: int | None = None) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.fail_with: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.fail_with.get(operation)
        if error is not None:
            raise error

    def get_item(self, *, Key):
        self._enter("get_item")
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, *, Item, ConditionExpression=None):
        self._enter("put_item")
        key = (Item["pk"], Item["sk"])
        if ConditionExpression is not None and not evaluate(
            ConditionExpression, self.items.get(key, {})
        ):
            raise _condition_failed("PutItem")
        self.items[key] = copy.deepcopy(Item)
        return {}

    def update_item(
        self,
        *,
        Key,
        UpdateExpression,
        ExpressionAttributeNames,
        ExpressionAttributeValues,
        ConditionExpression=None,
        ReturnValues=None,
    ):
        self._enter("update_item")
        key = (Key["pk"], Key["sk"])
        current = self.items.get(key)
        if ConditionExpression is not None and not evaluate(
            ConditionExpression, current or {}
        ):
            raise _condition_failed("UpdateItem")

        item = copy.deepcopy(current) if current is not None else dict(Key)
        names = ExpressionAttributeNames
        values = copy.deepcopy(ExpressionAttributeValues)
        updated: list[str] = []
        set_part, _, add_part = UpdateExpression.partition("ADD ")
        set_part = set_part.removeprefix("SET ").strip()
        for match in _SET_ASSIGNMENT.finditer(set_part):
            if match.group(1):
                name = names[match.group(1)]
                existing = item.get(name, values[match.group(2)])
                item[name] = list(existing) + list(values[match.group(3)])
            else:
                name = names[match.group(4)]
                item[name] = values[match.group(5)]
            updated.append(name)
        for match in _ADD_ASSIGNMENT.finditer(add_part):
            name = names[match.group(1)]
            item[name] = item.get(name, 0) + values[match.group(2)]
            updated.append(name)

        self.items[key] = item
        if ReturnValues == "UPDATED_NEW":
            return {"Attributes": {name: copy.deepcopy(item[name]) for name in updated}}
        return {}

    def delete_item(self, *, Key, ConditionExpression=None):
        self._enter("delete_item")
        key = (Key["pk"], Key["sk"])
        if ConditionExpression is not None and not evaluate(
            ConditionExpression, self.items.get(key, {})
        ):
            raise _condition_failed("DeleteItem")
        self.items.pop(key, None)
        return {}

    def _page(self, matches: list[tuple[str, str]], start_key):
        start = 0
        if start_key is not None:
            start = matches.index((start_key["pk"], start_key["sk"])) + 1
        end = len(matches) if self.page_size is None else start + self.page_size
        page = matches[start:end]
        resp: dict[str, object] = {
            "Items": [copy.deepcopy(self.items[key]) for key in page],
            "Count": len(page),
        }
        if end < len(matches) and page:
            resp["LastEvaluatedKey"] = {"pk": page[-1][0], "sk": page[-1][1]}
        return resp

    def scan(self, *, FilterExpression=None, ExclusiveStartKey=None, **_kwargs):
        self._enter("scan")
        matches = [
            key
            for key in sorted(self.items)
            if FilterExpression is None or evaluate(FilterExpression, self.items[key])
        ]
        return self._page(matches, ExclusiveStartKey)

    def query(self, *, KeyConditionExpression, ExclusiveStartKey=None, **_kwargs):
        self._enter("query")
        matches = [
            key
            for key in sorted(self.items)
            if evaluate(KeyConditionExpression, self.items[key])
        ]
        return self._page(matches, ExclusiveStartKey)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def fake_table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(fake_table: FakeTable) -> PlatformStorage:
    return PlatformStorage(fake_table)


@pytest.fixture
def clock() -> FixedClock:
    # A Sunday, so weekly sweeps are due.
    return FixedClock(datetime(2025, 3, 9, 12, 0, tzinfo=UTC))


@pytest.fixture
def make_user(storage: PlatformStorage):
    def factory(
        user_id: str,
        *,
        coins: int = 0,
        account_type: str = "normal",
        linked: bool = False,
        compliance_status: str = "compliant",
    ) -> UserAccount:
        user = UserAccount(
            user_id=user_id,
            username=f"{user_id}-name",
            account_type=account_type,  # type: ignore[arg-type]
            coins=coins,
            riot_account=(
                RiotAccountLink(game_name=user_id, tag_line="EUW", region="EUW1")
                if linked
                else None
            ),
            compliance_status=compliance_status,
        )
        storage.save_user(user)
        return user

    return factory


@pytest.fixture
def make_creator(storage: PlatformStorage, make_user):
    def factory(user_id: str, *, coins: int = 0, approved: bool = True) -> UserAccount:
        user = make_user(user_id, coins=coins, account_type="creator")
        storage.save_creator_profile(
            CreatorProfile(
                user_id=user_id,
                display_name=user_id.title(),
                application_status="approved" if approved else "pending",
                total_earnings=Decimal("0"),
            )
        )
        return user

    return factory
