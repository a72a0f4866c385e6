"""
Connection and document-mapping configuration.

Every setting has an environment variable or a default, so
``DynamoDBConfig()`` is a complete configuration. Mapper flags that the
codec and the transaction actions consult (timestamps, storage formats, nil
handling) live here next to the connection settings and are threaded through
explicitly instead of being read from module globals.
"""

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.timezone import TimezoneManager, resolve_zone

# Load environment variables from .env file if it exists
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class DynamoDBConfig(BaseModel):
    """Configuration for DynamoDB connection and document mapping.

    Instances are immutable. Use ``replace()`` to derive a changed copy.
    """

    aws_access_key_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID"),
        description="AWS access key ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY"),
        description="AWS secret access key"
    )

    region_name: str = Field(
        default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"),
        description="AWS region name"
    )

    # DynamoDB specific settings
    endpoint_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL"),
        description="DynamoDB endpoint URL (for local development)"
    )

    # Table configuration
    table_prefix: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_TABLE_PREFIX", ""),
        description="Prefix to add to all table names"
    )

    # Connection settings
    max_pool_connections: int = Field(
        default=50,
        description="Maximum number of connections in the connection pool"
    )

    retries: int = Field(
        default=3,
        description="Number of retry attempts for failed requests"
    )

    timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout in seconds"
    )

    # Environment settings
    environment: str = Field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "dev"),
        description="Current environment (dev, test, staging, prod)"
    )

    # Document mapping settings
    timestamps: bool = Field(
        default_factory=lambda: _env_flag("DYNAMODB_TIMESTAMPS", "true"),
        description="Maintain created_at/updated_at on documents"
    )

    application_timezone: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_TIMEZONE", "UTC"),
        description="Timezone of datetimes handed back to the application ('local' for the system zone)"
    )

    dynamodb_timezone: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_STORAGE_TIMEZONE", "UTC"),
        description="Timezone used when datetimes are stored as strings"
    )

    store_datetime_as_string: bool = Field(
        default=False,
        description="Store datetime fields as ISO-8601 strings instead of epoch seconds"
    )

    store_date_as_string: bool = Field(
        default=False,
        description="Store date fields as ISO-8601 strings instead of epoch days"
    )

    store_boolean_as_native: bool = Field(
        default=True,
        description="Store booleans as native BOOL instead of 't'/'f'"
    )

    store_empty_string_as_nil: bool = Field(
        default=True,
        description="Treat empty strings as absent values"
    )

    store_attribute_with_nil_value: bool = Field(
        default=False,
        description="Persist None attributes as NULL instead of omitting them"
    )

    convert_big_decimal: bool = Field(
        default=False,
        description="Convert Decimal numbers inside raw/map fields to float on load"
    )

    max_transaction_items: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum number of operations per TransactWriteItems call"
    )

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        """Validate AWS region name."""
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        valid_environments = ['dev', 'test', 'staging', 'prod']
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator('application_timezone', 'dynamodb_timezone')
    @classmethod
    def validate_timezone(cls, v):
        """Validate timezone string."""
        try:
            resolve_zone(v)
        except Exception:
            raise ValueError(f"Invalid timezone: {v}. Please use a valid IANA timezone identifier.") from None
        return v

    def get_table_name(self, base_name: str) -> str:
        """Get the full table name with prefix and environment.

        Args:
            base_name: Base table name

        Returns:
            Full table name with prefix and environment
        """
        parts = []

        if self.table_prefix:
            parts.append(self.table_prefix)

        if self.environment != "prod":
            parts.append(self.environment)

        parts.append(base_name)

        return "_".join(parts)

    def replace(self, **changes: Any) -> 'DynamoDBConfig':
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        """Create configuration from environment variables.

        Returns:
            DynamoDBConfig instance
        """
        return cls()

    @classmethod
    def for_local_development(cls) -> 'DynamoDBConfig':
        """Create configuration for local DynamoDB development.

        Returns:
            DynamoDBConfig instance configured for local development
        """
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url="http://localhost:8000",
            environment="dev"
        )

    def get_timezone_manager(self):
        """Get a TimezoneManager bound to this config's application and storage zones."""
        return TimezoneManager(self.application_timezone, self.dynamodb_timezone)

    model_config = ConfigDict(frozen=True)
