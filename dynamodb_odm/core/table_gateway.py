"""
Thin DynamoDB Table Gateway

This module provides the error mapping shared by every DynamoDB call the ODM
makes, plus a lightweight per-table gateway used for reads:

1. ``map_dynamodb_error`` turns botocore ClientErrors into domain exceptions
2. ``TableGateway`` wraps a boto3 Table handle with GetItem/Scan helpers

Writes never go through this gateway. Every document write is expressed as
part of a TransactWriteItems batch (see ``transaction_gateway``), so single
saves and multi-model transactions share one code path.
"""

import logging
from typing import Any, Dict, Iterator, Optional

from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConnectionError,
    ConflictError,
    ItemNotFoundError,
    RetryableError,
    TransactionAborted,
    ValidationError,
)
from .connection import get_dynamodb_resource

logger = logging.getLogger(__name__)


# Error codes grouped by the domain exception they map to
CONFLICT_CODES = frozenset({
    'ConditionalCheckFailedException',
    'TransactionConflictException',
})

RETRYABLE_CODES = frozenset({
    'ProvisionedThroughputExceededException',
    'RequestLimitExceeded',
    'ThrottlingException',
    'SlowDown',
    'BandwidthLimitExceeded',
    'RequestThrottledException',
    'TooManyRequestsException',
    'InternalServerError',
    'ServiceUnavailable',
    'TransactionInProgressException',
    'RequestTimeoutException',
    'RequestExpiredException',
})

VALIDATION_CODES = frozenset({
    'ValidationException',
    'ItemCollectionSizeLimitExceededException',
    'LimitExceededException',
    'IdempotentParameterMismatchException',
})

CONNECTION_CODES = frozenset({
    'UnrecognizedClientException',
    'AccessDeniedException',
    'ExpiredTokenException',
    'TokenRefreshRequiredException',
})


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to domain-specific exceptions.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "TransactWriteItems")
        table_name: The DynamoDB table name(s) involved
        resource_id: Optional resource identifier for context

    Returns:
        TransactionAborted for cancelled transactions, ConflictError for
        failed conditions, RetryableError for throttling and transient
        failures, ValidationError for rejected requests, ItemNotFoundError
        for missing items and ConnectionError otherwise
    """
    error_code = error.response['Error']['Code']
    error_message = error.response['Error'].get('Message', '')

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"
    full_message = f"{context}: {error_message} [{error_code}]"

    if error_code == 'TransactionCanceledException':
        return TransactionAborted(f"Transaction cancelled - {full_message}", original_error=error)

    if error_code == 'ResourceNotFoundException':
        if resource_id:
            return ItemNotFoundError(table_name, {'resource_id': resource_id}, original_error=error)
        return ConnectionError(f"Table not found - {full_message}", original_error=error)

    if error_code in CONFLICT_CODES:
        return ConflictError(f"Conflict - {full_message}", resource_id, original_error=error)
    if error_code in RETRYABLE_CODES:
        return RetryableError(f"Retryable failure - {full_message}", original_error=error)
    if error_code in VALIDATION_CODES:
        return ValidationError(f"Request rejected - {full_message}", original_error=error)

    if error_code not in CONNECTION_CODES:
        logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


class TableGateway:
    """
    Thin gateway for reading a single DynamoDB table.

    The boto3 resource is resolved lazily from the shared connection cache, so
    building a gateway never touches the network.
    """

    def __init__(self, config: DynamoDBConfig, table_name: str):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
            table_name: Full name of the DynamoDB table
        """
        self.config = config
        self.table_name = table_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            self._dynamodb = get_dynamodb_resource(self.config)
        return self._dynamodb

    @property
    def table(self):
        """Get boto3 DynamoDB Table resource."""
        if self._table is None:
            try:
                self._table = self.dynamodb.Table(self.table_name)
            except Exception as e:
                logger.error(f"Failed to access table '{self.table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{self.table_name}': {e}", e) from e
        return self._table

    def get_item(self, key: Dict[str, Any], consistent_read: bool = True) -> Optional[Dict[str, Any]]:
        """
        Fetch a single item by primary key.

        Args:
            key: Dumped primary key
            consistent_read: Use a strongly consistent read

        Returns:
            The raw item, or None when no item has that key
        """
        try:
            response = self.table.get_item(Key=key, ConsistentRead=consistent_read)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", self.table_name) from e
        return response.get('Item')

    def scan(self, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Scan operation.

        Args:
            **kwargs: All boto3 scan parameters

        Returns:
            Raw DynamoDB response
        """
        try:
            return self.table.scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Scan", self.table_name) from e

    def scan_all(self, **kwargs) -> Iterator[Dict[str, Any]]:
        """Yield every item in the table, following LastEvaluatedKey."""
        while True:
            response = self.scan(**kwargs)
            for item in response.get('Items', []):
                yield item
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return
            kwargs['ExclusiveStartKey'] = last_key

    def count(self) -> int:
        """Count items with a paginated COUNT scan."""
        total = 0
        kwargs: Dict[str, Any] = {'Select': 'COUNT'}
        while True:
            response = self.scan(**kwargs)
            total += response.get('Count', 0)
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return total
            kwargs['ExclusiveStartKey'] = last_key


def create_table_gateway(config: DynamoDBConfig, table_name: str) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration
        table_name: Base table name (prefixed through config.get_table_name())

    Returns:
        Configured TableGateway instance
    """
    full_table_name = config.get_table_name(table_name)
    return TableGateway(config, full_table_name)
