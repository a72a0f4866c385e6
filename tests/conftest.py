"""
Test configuration and fixtures for the DynamoDB ODM.

Every test runs against a fresh "test" configuration. Integration tests use
moto's in-memory DynamoDB, with tables created from model metadata.
"""

import os

import boto3
import pytest
from moto import mock_aws

from dynamodb_odm import DynamoDBConfig, configure, reset_config
from dynamodb_odm.core import reset_connections


def build_test_config(**overrides) -> DynamoDBConfig:
    """DynamoDB configuration used by the test suite."""
    options = dict(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        environment="test",
        table_prefix="odm",
        application_timezone="UTC",
        dynamodb_timezone="UTC",
        timestamps=True,
    )
    options.update(overrides)
    return DynamoDBConfig(**options)


@pytest.fixture(autouse=True)
def odm_config():
    """Install the test configuration for the duration of a test."""
    config = configure(build_test_config())
    yield config
    reset_config()
    reset_connections()


@pytest.fixture
def aws_credentials():
    """Mocked AWS credentials for moto."""
    previous = {key: os.environ.get(key) for key in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")}
    os.environ["AWS_ACCESS_KEY_ID"] = "test_key"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "test_secret"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    yield
    for key, value in previous.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def mock_dynamodb_resource(aws_credentials):
    """Mock DynamoDB resource."""
    with mock_aws():
        reset_connections()
        yield boto3.resource('dynamodb', region_name='us-east-1')


def _attribute_type(field, config: DynamoDBConfig) -> str:
    if field.type in ('integer', 'number'):
        return 'N'
    if field.type == 'datetime' and not field.options.get('store_as_string', config.store_datetime_as_string):
        return 'N'
    if field.type == 'date' and not field.options.get('store_as_string', config.store_date_as_string):
        return 'N'
    return 'S'


@pytest.fixture
def create_model_table(mock_dynamodb_resource, odm_config):
    """Factory creating the table of a model class from its key declaration."""

    def _create(model_class):
        fields = model_class.fields()
        key_names = [model_class.hash_key_name()]
        key_schema = [{'AttributeName': model_class.hash_key_name(), 'KeyType': 'HASH'}]
        if model_class.has_range_key():
            key_names.append(model_class.range_key_name())
            key_schema.append({'AttributeName': model_class.range_key_name(), 'KeyType': 'RANGE'})

        return mock_dynamodb_resource.create_table(
            TableName=model_class.table_name(odm_config),
            KeySchema=key_schema,
            AttributeDefinitions=[
                {'AttributeName': name, 'AttributeType': _attribute_type(fields[name], odm_config)}
                for name in key_names
            ],
            BillingMode='PROVISIONED',
            ProvisionedThroughput={'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}
        )

    return _create
