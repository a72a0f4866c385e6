"""
Configuration for the DynamoDB ODM.

``DynamoDBConfig`` is immutable. The library keeps a single current
configuration which is read with ``get_config()`` and swapped with
``configure()`` or, for a bounded block, ``override_config()``. Transactions
capture the current configuration when they are opened and pass it
explicitly to every action and codec call they make.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .config import DynamoDBConfig

logger = logging.getLogger(__name__)

_current_config: Optional[DynamoDBConfig] = None


def get_config() -> DynamoDBConfig:
    """Return the current configuration, loading it from the environment on first use."""
    global _current_config
    if _current_config is None:
        _current_config = DynamoDBConfig.from_env()
    return _current_config


def configure(config: Optional[DynamoDBConfig] = None, **changes: Any) -> DynamoDBConfig:
    """Install ``config`` (or the current one) with ``changes`` applied as the current configuration."""
    global _current_config
    new_config = config or get_config()
    if changes:
        new_config = new_config.replace(**changes)
    _current_config = new_config
    logger.debug(f"Configured DynamoDB ODM: environment={new_config.environment}, region={new_config.region_name}")
    return new_config


def reset_config() -> None:
    """Forget the current configuration; the next ``get_config()`` reloads it from the environment."""
    global _current_config
    _current_config = None


@contextmanager
def override_config(config: Optional[DynamoDBConfig] = None, **changes: Any) -> Iterator[DynamoDBConfig]:
    """Temporarily install a configuration, restoring the previous one on exit.

    Example:
        with override_config(timestamps=False):
            User.create(name='Alex')
    """
    global _current_config
    previous = _current_config
    try:
        yield configure(config, **changes)
    finally:
        _current_config = previous


__all__ = [
    "DynamoDBConfig",
    "configure",
    "get_config",
    "override_config",
    "reset_config",
]
