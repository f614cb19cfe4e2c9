"""Core infrastructure module.

Contains configuration, interchange models, and exceptions.
"""

from .config import (
    Settings,
    get_settings,
    get_cached_settings,
    clear_settings_cache,
)
from .exceptions import InvalidSchemaError, SchemaValidationError
from .models import (
    BaseTableKeyRequest,
    BaseTableRequest,
    CollapseRequest,
    ConnectRequest,
    JoinMapResponse,
    ResortRequest,
    SchemaPayload,
    TablePayload,
    UpdateLinkRequest,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "get_cached_settings",
    "clear_settings_cache",
    # Exceptions
    "InvalidSchemaError",
    "SchemaValidationError",
    # Models
    "BaseTableKeyRequest",
    "BaseTableRequest",
    "CollapseRequest",
    "ConnectRequest",
    "JoinMapResponse",
    "ResortRequest",
    "SchemaPayload",
    "TablePayload",
    "UpdateLinkRequest",
]
