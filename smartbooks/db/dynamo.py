import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from datetime import datetime

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from smartbooks.core.config import settings

logger = logging.getLogger(__name__)

# Initialize DynamoDB resource
dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)

# Get table references
users_table = dynamodb.Table(settings.DYNAMO_USERS_TABLE)
transactions_table = dynamodb.Table(settings.DYNAMO_TRANSACTIONS_TABLE)
receipts_table = dynamodb.Table(settings.DYNAMO_RECEIPTS_TABLE)


def get_user_by_email(email: str):
    """Query the Users table by email (assumes a GSI exists on email)."""
    try:
        response = users_table.query(
            IndexName="email-index",
            KeyConditionExpression=Key("email").eq(email),
        )
        return _from_dynamo(response["Items"][0]) if response["Items"] else None
    except ClientError as e:
        logger.error(f"get_user_by_email failed: {e.response['Error']['Message']}")
        return None


def get_user_by_id(user_id: str):
    """Get user by user_id from the Users table."""
    try:
        response = users_table.get_item(Key={"user_id": user_id})
        item = response.get("Item")
        return _from_dynamo(item) if item else None
    except ClientError as e:
        logger.error(f"get_user_by_id failed: {e.response['Error']['Message']}")
        return None


def put_user(user_item: dict):
    """Insert a new user into the Users table."""
    try:
        users_table.put_item(Item=_convert_for_dynamo(user_item))
        return True
    except ClientError as e:
        logger.error(f"put_user failed: {e.response['Error']['Message']}")
        return False


def update_user(user_id: str, updates: dict):
    """Apply partial profile updates. Returns the updated user or None."""
    updates = dict(updates, updated_at=datetime.utcnow().isoformat())
    return _update_item(users_table, {"user_id": user_id}, updates)


def put_transaction(transaction_item: dict):
    """Insert or replace a transaction for a user."""
    try:
        transactions_table.put_item(Item=_convert_for_dynamo(transaction_item))
        return True
    except ClientError as e:
        logger.error(f"put_transaction failed: {e.response['Error']['Message']}")
        return False


def put_transactions(transaction_items: List[dict]):
    """Write several transactions in one batch."""
    try:
        with transactions_table.batch_writer() as batch:
            for item in transaction_items:
                batch.put_item(Item=_convert_for_dynamo(item))
        return True
    except ClientError as e:
        logger.error(f"put_transactions failed: {e.response['Error']['Message']}")
        return False


def get_transactions_for_user(
    user_id: str,
    month: Optional[str] = None,
    transaction_type: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Query all transactions for a user, newest first.

    month: '2025-10' keeps transactions whose transaction_date starts with it.
    Ordering is by transaction_date, then created_at, both descending.
    """
    filters = []
    if month:
        filters.append(Attr("transaction_date").begins_with(month))
    if transaction_type:
        filters.append(Attr("type").eq(transaction_type))
    if category:
        filters.append(Attr("category").eq(category))

    query_kwargs: Dict[str, Any] = {"KeyConditionExpression": Key("user_id").eq(user_id)}
    if filters:
        condition = filters[0]
        for extra in filters[1:]:
            condition = condition & extra
        query_kwargs["FilterExpression"] = condition

    items: List[Dict[str, Any]] = []
    try:
        while True:
            response = transactions_table.query(**query_kwargs)
            items.extend(_from_dynamo(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
    except ClientError as e:
        logger.error(f"get_transactions_for_user failed: {e.response['Error']['Message']}")
        return []

    items.sort(key=lambda t: (t.get("transaction_date", ""), t.get("created_at", "")), reverse=True)
    return items


def has_transactions(user_id: str) -> bool:
    try:
        response = transactions_table.query(
            KeyConditionExpression=Key("user_id").eq(user_id),
            Limit=1,
        )
        return bool(response.get("Items"))
    except ClientError as e:
        logger.error(f"has_transactions failed: {e.response['Error']['Message']}")
        return False


def get_transaction(user_id: str, transaction_id: str):
    """Fetch a single transaction item."""
    try:
        response = transactions_table.get_item(Key={"user_id": user_id, "transaction_id": transaction_id})
        item = response.get("Item")
        return _from_dynamo(item) if item else None
    except ClientError as e:
        logger.error(f"get_transaction failed: {e.response['Error']['Message']}")
        return None


def update_transaction(user_id: str, transaction_id: str, updates: dict):
    """
    Apply partial updates to an existing transaction. Returns the updated item or None.
    """
    if not updates:
        return None
    updates = dict(updates, updated_at=datetime.utcnow().isoformat())
    return _update_item(
        transactions_table,
        {"user_id": user_id, "transaction_id": transaction_id},
        updates,
        must_exist="transaction_id",
    )


def delete_transaction(user_id: str, transaction_id: str):
    """Delete a specific transaction item."""
    try:
        response = transactions_table.delete_item(
            Key={"user_id": user_id, "transaction_id": transaction_id},
            ReturnValues="ALL_OLD",
        )
        return "Attributes" in response
    except ClientError as e:
        logger.error(f"delete_transaction failed: {e.response['Error']['Message']}")
        return False


def put_receipt(receipt_item: dict):
    """Record an uploaded receipt and its extracted fields."""
    try:
        receipts_table.put_item(Item=_convert_for_dynamo(receipt_item))
        return True
    except ClientError as e:
        logger.error(f"put_receipt failed: {e.response['Error']['Message']}")
        return False


def _update_item(table, key: dict, updates: dict, must_exist: Optional[str] = None):
    update_expression_parts = []
    expression_attribute_values = {}
    expression_attribute_names = {}

    for idx, (field, value) in enumerate(updates.items()):
        placeholder = f"#f{idx}"
        value_placeholder = f":v{idx}"
        update_expression_parts.append(f"{placeholder} = {value_placeholder}")
        expression_attribute_names[placeholder] = field
        expression_attribute_values[value_placeholder] = value

    kwargs: Dict[str, Any] = {
        "Key": key,
        "UpdateExpression": "SET " + ", ".join(update_expression_parts),
        "ExpressionAttributeNames": expression_attribute_names,
        "ExpressionAttributeValues": _convert_for_dynamo(expression_attribute_values),
        "ReturnValues": "ALL_NEW",
    }
    if must_exist:
        # update_item would otherwise create a new item
        kwargs["ConditionExpression"] = Attr(must_exist).exists()

    try:
        response = table.update_item(**kwargs)
        attributes = response.get("Attributes")
        return _from_dynamo(attributes) if attributes else None
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            return None
        logger.error(f"update on {table.name} failed: {e.response['Error']['Message']}")
        return None


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
