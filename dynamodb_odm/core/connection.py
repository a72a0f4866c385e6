"""
DynamoDB resource management.

Creating a boto3 session and resource is comparatively expensive, so one
resource is kept per configuration and shared by every table gateway and
transaction gateway built from that configuration.
"""

import logging
from typing import Any, Dict

import boto3
from botocore.config import Config

from ..config import DynamoDBConfig
from ..exceptions import ConnectionError

logger = logging.getLogger(__name__)

_resources: Dict[DynamoDBConfig, Any] = {}


def create_dynamodb_resource(config: DynamoDBConfig):
    """Create a boto3 DynamoDB service resource for ``config``.

    Raises:
        ConnectionError: If the session or resource cannot be created
    """
    try:
        session = boto3.Session(
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
            region_name=config.region_name
        )

        # Configure connection parameters
        dynamodb_config = {
            'region_name': config.region_name
        }

        if config.endpoint_url:
            dynamodb_config['endpoint_url'] = config.endpoint_url

        # Add retry and timeout configuration
        boto_config = Config(
            retries={'max_attempts': config.retries},
            max_pool_connections=config.max_pool_connections,
            read_timeout=config.timeout_seconds,
            connect_timeout=config.timeout_seconds
        )
        dynamodb_config['config'] = boto_config

        return session.resource('dynamodb', **dynamodb_config)
    except Exception as e:
        logger.error(f"Failed to create DynamoDB resource: {e}")
        raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e


def get_dynamodb_resource(config: DynamoDBConfig):
    """Return the shared DynamoDB resource for ``config``, creating it on first use."""
    resource = _resources.get(config)
    if resource is None:
        resource = create_dynamodb_resource(config)
        _resources[config] = resource
        logger.debug(f"Created DynamoDB resource for region {config.region_name}")
    return resource


def reset_connections() -> None:
    """Drop every cached resource."""
    _resources.clear()
