"""
pydyno: an asyncio DynamoDB client with batch splitting, streaming pagination
and table lifecycle helpers.
"""
from pydyno.batch import Delete
from pydyno.batch import Put
from pydyno.client import Client
from pydyno.client import MultiClient
from pydyno.client import ReadClient
from pydyno.client import WriteClient
from pydyno.client import connect
from pydyno.serialization import DynamoSet
from pydyno.serialization import create_set
from pydyno.serialization import deserialize
from pydyno.serialization import serialize

__author__ = 'pydyno contributors'
__license__ = 'MIT'
__version__ = '0.1.0'

__all__ = [
    "Client",
    "Delete",
    "DynamoSet",
    "MultiClient",
    "Put",
    "ReadClient",
    "WriteClient",
    "connect",
    "create_set",
    "deserialize",
    "serialize",
]
