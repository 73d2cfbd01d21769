"""
DynamoDB clients bound to one table, or to a read table and a write table
"""
from dataclasses import fields
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydyno import lifecycle
from pydyno.batch import WriteOperation, batch_get_requests, batch_write_requests, split_batch_get, split_batch_write
from pydyno.config import ClientConfig, ReadWriteConfig
from pydyno.connection import Connection
from pydyno.constants import (
    BATCH_GET_ITEM, BATCH_WRITE_ITEM, DELETE_ITEM, DESCRIBE_TABLE, GET_ITEM, LIST_TABLES, PUT_ITEM, QUERY,
    SCAN, TABLE_NAME, UPDATE_ITEM,
)
from pydyno.exceptions import ValidationError
from pydyno.pagination import ItemStream
from pydyno.request_set import RequestSet
from pydyno.serialization import decode_response, encode_request


class _BaseClient(object):
    """
    Operations every client has. Request parameters use DynamoDB's names,
    with ``TableName`` defaulting to the configured table.
    """

    def __init__(self, config: ClientConfig, connection: Optional[Connection] = None) -> None:
        self.config = config
        self.connection = connection if connection is not None else Connection.from_config(config)

    def __repr__(self) -> str:
        return "{}<{}>".format(self.__class__.__name__, self.config.table)

    def _params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        params = dict(params)
        params.setdefault(TABLE_NAME, self.config.table)
        return params

    async def _call(self, operation_name: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        # encoding errors surface before anything is sent
        data = await self.connection.dispatch(operation_name, encode_request(params))
        return decode_response(data)

    async def describe_table(self, **params: Any) -> Dict[str, Any]:
        return await self._call(DESCRIBE_TABLE, self._params(params))

    async def list_tables(self, **params: Any) -> Dict[str, Any]:
        return await self._call(LIST_TABLES, params)

    async def create_table(self,
                           poll_interval: Optional[float] = None,
                           timeout: Optional[float] = None,
                           **params: Any) -> Dict[str, Any]:
        """
        Creates a table and waits until it is ACTIVE
        """
        return await lifecycle.create_table(self.connection, self._params(params), poll_interval, timeout)

    async def delete_table(self,
                           poll_interval: Optional[float] = None,
                           timeout: Optional[float] = None,
                           **params: Any) -> Dict[str, Any]:
        """
        Deletes a table and waits until it is gone
        """
        table_name = self._params(params)[TABLE_NAME]
        return await lifecycle.delete_table(self.connection, table_name, poll_interval, timeout)

    async def close(self) -> None:
        await self.connection.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class _ReadOperations(_BaseClient):

    async def get_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(GET_ITEM, self._params(params))

    async def query(self, **params: Any) -> Dict[str, Any]:
        return await self._call(QUERY, self._params(params))

    async def scan(self, **params: Any) -> Dict[str, Any]:
        return await self._call(SCAN, self._params(params))

    async def batch_get_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(BATCH_GET_ITEM, params)

    def batch_get_item_requests(self, keys: Optional[Iterable[Mapping[str, Any]]] = None, **params: Any) -> RequestSet:
        """
        Splits a batch get of any size into requests DynamoDB accepts.

        Either pass `keys` to read from the configured table (``TableName`` overrides it),
        or ``RequestItems`` for several tables.
        """
        if keys is not None:
            table_name = params.pop(TABLE_NAME, self.config.table)
            return batch_get_requests(self.connection, table_name, keys, **params)
        return split_batch_get(self.connection, params)

    def query_stream(self, pages: Optional[int] = None, **params: Any) -> ItemStream:
        """
        Returns the query's items as an async iterator that fetches pages on demand

        :param pages: stop after this many pages
        """
        return ItemStream(self.connection, QUERY, encode_request(self._params(params)), pages)

    def scan_stream(self, pages: Optional[int] = None, **params: Any) -> ItemStream:
        """
        Returns the scan's items as an async iterator that fetches pages on demand
        """
        return ItemStream(self.connection, SCAN, encode_request(self._params(params)), pages)


class _WriteOperations(_BaseClient):

    async def put_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(PUT_ITEM, self._params(params))

    async def update_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(UPDATE_ITEM, self._params(params))

    async def delete_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(DELETE_ITEM, self._params(params))

    async def batch_write_item(self, **params: Any) -> Dict[str, Any]:
        return await self._call(BATCH_WRITE_ITEM, params)

    def batch_write_item_requests(self, write_ops: Optional[Iterable[WriteOperation]] = None, **params: Any) -> RequestSet:
        """
        Splits a batch write of any size into requests DynamoDB accepts.

        Either pass `write_ops` (:class:`~pydyno.batch.Put` / :class:`~pydyno.batch.Delete`)
        for the configured table, or ``RequestItems`` for several tables.
        """
        if write_ops is not None:
            table_name = params.pop(TABLE_NAME, self.config.table)
            return batch_write_requests(self.connection, table_name, write_ops, **params)
        return split_batch_write(self.connection, params)


class ReadClient(_ReadOperations):
    """
    A client limited to reading
    """


class WriteClient(_WriteOperations):
    """
    A client limited to writing
    """


class Client(_ReadOperations, _WriteOperations):
    """
    A client for reading and writing one table
    """


_CONFIG_OPTIONS = frozenset(field.name for field in fields(ClientConfig))


def _make_config(options: Mapping[str, Any]) -> ClientConfig:
    unknown = set(options) - _CONFIG_OPTIONS
    if unknown:
        raise ValidationError("Unknown client options: {}".format(', '.join(sorted(unknown))))
    return ClientConfig(**options)


def connect(**options: Any) -> Union[ReadClient, WriteClient, Client]:
    """
    Creates a client for one table.

    ``table`` and ``region`` are required. ``read=True`` or ``write=True`` returns a
    client with only read or only write operations.

    Example::

        async with connect(table='my-table', region='us-east-1') as client:
            await client.put_item(Item={'id': 'my-record', 'data': create_set([1, 2, 3])})
    """
    config = _make_config(options)
    if config.read:
        return ReadClient(config)
    if config.write:
        return WriteClient(config)
    return Client(config)


class MultiClient(object):
    """
    A client that reads from one table and writes to another.

    Table creation and deletion apply to both tables and wait for both.
    """

    def __init__(self, read_options: Mapping[str, Any], write_options: Mapping[str, Any]) -> None:
        read_options = {key: value for key, value in read_options.items() if key != 'write'}
        write_options = {key: value for key, value in write_options.items() if key != 'read'}
        self.reader = ReadClient(_make_config(dict(read_options, read=True)))
        self.writer = WriteClient(_make_config(dict(write_options, write=True)))
        self.config = ReadWriteConfig(self.reader.config, self.writer.config)

    def __repr__(self) -> str:
        return "MultiClient<read={}, write={}>".format(self.config.read.table, self.config.write.table)

    async def get_item(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.get_item(**params)

    async def query(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.query(**params)

    async def scan(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.scan(**params)

    async def batch_get_item(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.batch_get_item(**params)

    def batch_get_item_requests(self, keys: Optional[Iterable[Mapping[str, Any]]] = None, **params: Any) -> RequestSet:
        return self.reader.batch_get_item_requests(keys, **params)

    def query_stream(self, pages: Optional[int] = None, **params: Any) -> ItemStream:
        return self.reader.query_stream(pages, **params)

    def scan_stream(self, pages: Optional[int] = None, **params: Any) -> ItemStream:
        return self.reader.scan_stream(pages, **params)

    async def describe_table(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.describe_table(**params)

    async def list_tables(self, **params: Any) -> Dict[str, Any]:
        return await self.reader.list_tables(**params)

    async def put_item(self, **params: Any) -> Dict[str, Any]:
        return await self.writer.put_item(**params)

    async def update_item(self, **params: Any) -> Dict[str, Any]:
        return await self.writer.update_item(**params)

    async def delete_item(self, **params: Any) -> Dict[str, Any]:
        return await self.writer.delete_item(**params)

    async def batch_write_item(self, **params: Any) -> Dict[str, Any]:
        return await self.writer.batch_write_item(**params)

    def batch_write_item_requests(self, write_ops: Optional[Iterable[WriteOperation]] = None, **params: Any) -> RequestSet:
        return self.writer.batch_write_item_requests(write_ops, **params)

    async def create_table(self,
                           poll_interval: Optional[float] = None,
                           timeout: Optional[float] = None,
                           **params: Any) -> lifecycle.MultiTableResult:
        """
        Creates the table on both stores, each under its configured name unless ``TableName`` is given
        """
        if TABLE_NAME in params:
            read_params = write_params = params
        else:
            read_params = dict(params, **{TABLE_NAME: self.config.read.table})
            write_params = dict(params, **{TABLE_NAME: self.config.write.table})
        return await lifecycle.multi_create(self.reader.connection, self.writer.connection, read_params,
                                            poll_interval, timeout, write_params=write_params)

    async def delete_table(self,
                           poll_interval: Optional[float] = None,
                           timeout: Optional[float] = None,
                           **params: Any) -> lifecycle.MultiTableResult:
        read_table = params.get(TABLE_NAME, self.config.read.table)
        write_table = params.get(TABLE_NAME, self.config.write.table)
        return await lifecycle.multi_delete(self.reader.connection, self.writer.connection, read_table,
                                            poll_interval, timeout, write_table_name=write_table)

    async def close(self) -> None:
        await self.reader.close()
        await self.writer.close()

    async def __aenter__(self) -> 'MultiClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
