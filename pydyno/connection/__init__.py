"""
pydyno lowest level connection
"""

from pydyno.connection.base import Connection


__all__ = [
    "Connection",
]
