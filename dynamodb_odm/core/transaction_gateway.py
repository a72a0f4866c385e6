"""
Transactional write gateway.

The single entry point through which documents reach DynamoDB. It accepts a
batch of boto3-shaped ``Put``/``Update``/``Delete`` transact items (the
high-level resource client serializes Python values), submits them as one
TransactWriteItems call and translates failures through
``map_dynamodb_error``. A cancelled batch surfaces as ``TransactionAborted``.
"""

import logging
from typing import Any, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from ..config import DynamoDBConfig
from ..exceptions import ConnectionError, ValidationError
from .connection import get_dynamodb_resource
from .table_gateway import map_dynamodb_error

logger = logging.getLogger(__name__)


def _table_names(transact_items: List[Dict[str, Any]]) -> str:
    names = []
    for transact_item in transact_items:
        for request in transact_item.values():
            name = request.get('TableName')
            if name and name not in names:
                names.append(name)
    return ", ".join(names)


class TransactionGateway:
    """Submits TransactWriteItems batches for one configuration."""

    def __init__(self, config: DynamoDBConfig):
        self.config = config
        self._dynamodb = None

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            self._dynamodb = get_dynamodb_resource(self.config)
        return self._dynamodb

    def transact_write_items(self, transact_items: List[Dict[str, Any]]) -> None:
        """
        Execute transactional write operations atomically.

        Args:
            transact_items: List of transaction items

        Raises:
            ValidationError: If the batch exceeds ``config.max_transaction_items``
            TransactionAborted: If DynamoDB cancels the batch
            ConnectionError: If the request never reached DynamoDB

        Example:
            gateway.transact_write_items([
                {
                    'Put': {
                        'TableName': 'users',
                        'Item': {...},
                        'ConditionExpression': 'attribute_not_exists(#_k0)',
                        'ExpressionAttributeNames': {'#_k0': 'id'}
                    }
                },
                {
                    'Delete': {
                        'TableName': 'sessions',
                        'Key': {'id': 'abc'}
                    }
                }
            ])
        """
        if not transact_items:
            return

        limit = self.config.max_transaction_items
        if len(transact_items) > limit:
            raise ValidationError(
                f"Transaction has {len(transact_items)} operations, the maximum is {limit}",
                {'operations': len(transact_items), 'max_transaction_items': limit}
            )

        table_names = _table_names(transact_items)
        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=transact_items
            )
            logger.info(f"Transaction of {len(transact_items)} operations completed on {table_names}")
        except ClientError as e:
            raise map_dynamodb_error(e, "TransactWriteItems", table_names) from e
        except BotoCoreError as e:
            raise ConnectionError(f"TransactWriteItems failed on {table_names}: {e}", e) from e


def create_transaction_gateway(config: DynamoDBConfig) -> TransactionGateway:
    """Factory function to create a TransactionGateway instance."""
    return TransactionGateway(config)
