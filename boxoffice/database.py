import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from boxoffice.config import settings

logger = logging.getLogger(__name__)


class DynamoDBClient:
    """Thin wrapper over the box office table.

    Every call returns a result dict with a ``status`` of ``success``,
    ``not_found`` or ``error`` instead of raising ``ClientError``.
    """

    def __init__(self, table_name: Optional[str] = None):
        self.table_name = table_name or settings.TABLE_NAME

        client_kwargs = {
            "aws_access_key_id": settings.AWS_ACCESS_KEY_ID,
            "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY,
            "region_name": settings.AWS_REGION,
        }
        if settings.DYNAMODB_ENDPOINT_URL:
            client_kwargs["endpoint_url"] = settings.DYNAMODB_ENDPOINT_URL

        # Low-level client for transactions, resource for item operations
        self.dynamodb = boto3.client("dynamodb", **client_kwargs)
        self.dynamodb_resource = boto3.resource("dynamodb", **client_kwargs)

        if self.table_name:
            self.table = self.dynamodb_resource.Table(self.table_name)
        else:
            self.table = None

    def test_connection(self) -> Dict[str, Any]:
        """Test DynamoDB connection and return table info"""
        if not self.table_name:
            return {
                "status": "error",
                "error": "Table name not configured in environment variables"
            }

        try:
            response = self.dynamodb.describe_table(TableName=self.table_name)
            return {
                "status": "connected",
                "table_name": self.table_name,
                "table_status": response["Table"]["TableStatus"],
                "item_count": response["Table"]["ItemCount"]
            }
        except ClientError as e:
            return {"status": "error", "error": str(e)}

    def put_item(self, item: Dict[str, Any], condition_expression: Optional[str] = None) -> Dict[str, Any]:
        """Put item into DynamoDB table"""
        try:
            kwargs = {"Item": item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            response = self.table.put_item(**kwargs)
            return {"status": "success", "response": response}
        except ClientError as e:
            return {"status": "error", "error": str(e), "code": _error_code(e)}

    def get_item(self, pk: str, sk: str) -> Dict[str, Any]:
        """Get item from DynamoDB table"""
        try:
            response = self.table.get_item(Key={"pk": pk, "sk": sk}, ConsistentRead=True)
            if "Item" in response:
                return {"status": "success", "item": response["Item"]}
            return {"status": "not_found", "item": None}
        except ClientError as e:
            return {"status": "error", "error": str(e)}

    def query_items(self, pk: str, sk_prefix: Optional[str] = None) -> Dict[str, Any]:
        """Query items by partition key, following pagination"""
        try:
            if sk_prefix:
                kwargs = {
                    "KeyConditionExpression": "pk = :pk AND begins_with(sk, :sk)",
                    "ExpressionAttributeValues": {":pk": pk, ":sk": sk_prefix}
                }
            else:
                kwargs = {
                    "KeyConditionExpression": "pk = :pk",
                    "ExpressionAttributeValues": {":pk": pk}
                }
            kwargs["ConsistentRead"] = True

            items = []
            while True:
                response = self.table.query(**kwargs)
                items.extend(response["Items"])
                if "LastEvaluatedKey" not in response:
                    break
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

            return {"status": "success", "items": items, "count": len(items)}
        except ClientError as e:
            return {"status": "error", "error": str(e)}

    def scan_items(self, filter_expression: Optional[str] = None,
                   expression_values: Optional[Dict[str, Any]] = None,
                   expression_names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Scan all items in the table with optional filter"""
        try:
            scan_kwargs = {}
            if filter_expression and expression_values:
                scan_kwargs["FilterExpression"] = filter_expression
                scan_kwargs["ExpressionAttributeValues"] = expression_values
                if expression_names:
                    scan_kwargs["ExpressionAttributeNames"] = expression_names

            items = []
            while True:
                response = self.table.scan(**scan_kwargs)
                items.extend(response["Items"])
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

            return {"status": "success", "items": items, "count": len(items)}
        except ClientError as e:
            return {"status": "error", "error": str(e)}

    def transact_write(self, transact_items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Execute a transactional write operation.

        On cancellation the per-item reason codes are returned under
        ``reasons`` (same order as ``transact_items``).
        """
        try:
            response = self.dynamodb.transact_write_items(TransactItems=transact_items)
            return {"status": "success", "response": response}
        except ClientError as e:
            reasons = [
                reason.get("Code", "None")
                for reason in e.response.get("CancellationReasons", [])
            ]
            return {
                "status": "error",
                "error": str(e),
                "code": _error_code(e),
                "reasons": reasons
            }

    def update_item_conditional(self, pk: str, sk: str, update_expression: str,
                                condition_expression: str, expression_values: Dict[str, Any],
                                expression_names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Update item with conditional expression"""
        try:
            kwargs = {
                "Key": {"pk": pk, "sk": sk},
                "UpdateExpression": update_expression,
                "ConditionExpression": condition_expression,
                "ExpressionAttributeValues": expression_values,
                "ReturnValues": "ALL_NEW"
            }
            if expression_names:
                kwargs["ExpressionAttributeNames"] = expression_names
            response = self.table.update_item(**kwargs)
            return {"status": "success", "item": response.get("Attributes")}
        except ClientError as e:
            return {"status": "error", "error": str(e), "code": _error_code(e)}

    def delete_items(self, keys: List[Dict[str, str]]) -> Dict[str, Any]:
        """Delete items in batches"""
        try:
            with self.table.batch_writer() as batch:
                for key in keys:
                    batch.delete_item(Key=key)
            return {"status": "success", "count": len(keys)}
        except ClientError as e:
            return {"status": "error", "error": str(e)}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")
