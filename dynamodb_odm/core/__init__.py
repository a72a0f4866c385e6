"""
Core infrastructure components for DynamoDB operations.

This module contains the foundational components used by documents and
transactions:
- Shared boto3 resource cache
- TableGateway: Thin wrapper over boto3 table reads
- TransactionGateway: Atomic TransactWriteItems submission
- Error mapping from botocore to domain exceptions
"""

from .connection import get_dynamodb_resource, reset_connections
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error
from .transaction_gateway import TransactionGateway, create_transaction_gateway

__all__ = [
    "TableGateway",
    "TransactionGateway",
    "create_table_gateway",
    "create_transaction_gateway",
    "get_dynamodb_resource",
    "map_dynamodb_error",
    "reset_connections",
]
