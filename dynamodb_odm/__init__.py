from .config import DynamoDBConfig, configure, get_config, override_config, reset_config
from .exceptions import (
    ArgumentError,
    ConflictError,
    ConnectionError,
    DocumentNotValid,
    DynamoDBODMError,
    ItemNotFoundError,
    MissingHashKey,
    MissingRangeKey,
    RecordNotDestroyed,
    RecordNotSaved,
    RetryableError,
    Rollback,
    TransactionAborted,
    UnknownAttribute,
    ValidationError,
)
from .codec import (
    # Value codec
    cast_field,
    dump_field,
    register_type_adapter,
    undump_field,
    unregister_type_adapter,
)
from .core import (
    # Backend access
    TableGateway,
    TransactionGateway,
    create_table_gateway,
    create_transaction_gateway,
)
from .transactions import TransactionWrite
from .models import (
    # Documents
    Document,
    Field,
    IdentityMap,
    TableMeta,
    # Lifecycle
    Abort,
    after_commit,
    after_create,
    after_destroy,
    after_rollback,
    after_save,
    after_update,
    after_validation,
    around_create,
    around_destroy,
    around_save,
    around_update,
    around_validation,
    before_create,
    before_destroy,
    before_save,
    before_update,
    before_validation,
    validator,
)

__version__ = "0.1.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",
    "configure",
    "get_config",
    "override_config",
    "reset_config",

    # Exceptions
    "ArgumentError",
    "ConflictError",
    "ConnectionError",
    "DocumentNotValid",
    "DynamoDBODMError",
    "ItemNotFoundError",
    "MissingHashKey",
    "MissingRangeKey",
    "RecordNotDestroyed",
    "RecordNotSaved",
    "RetryableError",
    "Rollback",
    "TransactionAborted",
    "UnknownAttribute",
    "ValidationError",

    # Value codec
    "cast_field",
    "dump_field",
    "register_type_adapter",
    "undump_field",
    "unregister_type_adapter",

    # Backend access
    "TableGateway",
    "TransactionGateway",
    "create_table_gateway",
    "create_transaction_gateway",

    # Transactions
    "TransactionWrite",

    # Documents
    "Document",
    "Field",
    "IdentityMap",
    "TableMeta",

    # Lifecycle
    "Abort",
    "after_commit",
    "after_create",
    "after_destroy",
    "after_rollback",
    "after_save",
    "after_update",
    "after_validation",
    "around_create",
    "around_destroy",
    "around_save",
    "around_update",
    "around_validation",
    "before_create",
    "before_destroy",
    "before_save",
    "before_update",
    "before_validation",
    "validator",
]
