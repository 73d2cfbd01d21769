"""
Client configuration
"""
from dataclasses import dataclass
from typing import NamedTuple
from typing import Optional

from pydyno.exceptions import ValidationError
from pydyno.settings import get_settings_value


@dataclass(frozen=True)
class ClientConfig:
    """
    Configuration for one client, built once and shared by every component of that client.

    Timeouts, retries and pool size default to the values from :mod:`pydyno.settings`.
    The ``read`` and ``write`` flags restrict a client to read or write operations.
    """
    table: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None
    connect_timeout_seconds: Optional[float] = None
    read_timeout_seconds: Optional[float] = None
    max_retry_attempts: Optional[int] = None
    max_pool_connections: Optional[int] = None
    read: bool = False
    write: bool = False

    def __post_init__(self) -> None:
        if not self.table:
            raise ValidationError("table is required")
        if not self.region:
            raise ValidationError("region is required")
        if self.read and self.write:
            raise ValidationError("a client cannot be both read-only and write-only")
        for key in ('connect_timeout_seconds', 'read_timeout_seconds', 'max_retry_attempts', 'max_pool_connections'):
            if getattr(self, key) is None:
                object.__setattr__(self, key, get_settings_value(key))


class ReadWriteConfig(NamedTuple):
    read: ClientConfig
    write: ClientConfig
