# Schema
from .fields import FIELD_TYPES, Field

# Documents
from .document import Document, TableMeta
from .identity_map import IdentityMap

# Lifecycle
from .callbacks import (
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
)
from .validations import Errors, validator

__all__ = [
    # Schema
    "FIELD_TYPES",
    "Field",

    # Documents
    "Document",
    "IdentityMap",
    "TableMeta",

    # Lifecycle
    "Abort",
    "Errors",
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
