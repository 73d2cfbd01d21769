"""
Splitting unbounded batch gets and writes into calls DynamoDB accepts
"""
from typing import Any, Dict, Iterable, Mapping

from pydyno.constants import (
    ATTRS_TO_GET, CONSISTENT_READ, DELETE_REQUEST, EXPRESSION_ATTRIBUTE_NAMES, ITEM, KEY, KEYS,
    PROJECTION_EXPRESSION, PUT_REQUEST, REQUEST_ITEMS,
)
from pydyno.exceptions import ValidationError
from pydyno.request_set import RequestSet
from pydyno.serialization import Delete, Put, WriteOperation, encode_request, to_attribute_map

# BatchGetItem options that belong to a table's KeysAndAttributes rather than the request
TABLE_GET_OPTIONS = (CONSISTENT_READ, PROJECTION_EXPRESSION, EXPRESSION_ATTRIBUTE_NAMES, ATTRS_TO_GET)


def _encode_write(write_op: Any) -> Dict[str, Any]:
    if isinstance(write_op, Put):
        return {PUT_REQUEST: {ITEM: to_attribute_map(write_op.item)}}
    if isinstance(write_op, Delete):
        return {DELETE_REQUEST: {KEY: to_attribute_map(write_op.key)}}
    raise ValidationError("Write operations must be Put or Delete, not {}".format(type(write_op).__name__))


def batch_get_requests(connection: Any,
                       table_name: str,
                       keys: Iterable[Mapping[str, Any]],
                       **options: Any) -> RequestSet:
    """
    Builds the BatchGetItem calls needed to fetch `keys` from one table.

    ``ConsistentRead``, ``ProjectionExpression``, ``ExpressionAttributeNames`` and
    ``AttributesToGet`` apply to the table, any other option (e.g. ``ReturnConsumedCapacity``)
    to every call.
    """
    table_options = {name: value for name, value in options.items() if name in TABLE_GET_OPTIONS}
    common_params = {name: value for name, value in options.items() if name not in TABLE_GET_OPTIONS}
    table_options[KEYS] = [to_attribute_map(key) for key in keys]
    return RequestSet.for_batch_get(connection, {table_name: table_options}, common_params)


def batch_write_requests(connection: Any,
                         table_name: str,
                         write_ops: Iterable[WriteOperation],
                         **options: Any) -> RequestSet:
    """
    Builds the BatchWriteItem calls needed to apply `write_ops` to one table
    """
    write_requests = [_encode_write(write_op) for write_op in write_ops]
    return RequestSet.for_batch_write(connection, {table_name: write_requests}, options)


def split_batch_get(connection: Any, params: Mapping[str, Any]) -> RequestSet:
    """
    Splits a BatchGetItem request of any size, possibly spanning several tables
    """
    if REQUEST_ITEMS not in params:
        raise ValidationError("RequestItems is required")
    encoded = encode_request(params)
    request_items = encoded.pop(REQUEST_ITEMS)
    return RequestSet.for_batch_get(connection, request_items, encoded)


def split_batch_write(connection: Any, params: Mapping[str, Any]) -> RequestSet:
    """
    Splits a BatchWriteItem request of any size, possibly spanning several tables.

    Write requests may be given as :class:`Put` / :class:`Delete` or in DynamoDB's
    ``PutRequest`` / ``DeleteRequest`` form.
    """
    if REQUEST_ITEMS not in params:
        raise ValidationError("RequestItems is required")
    encoded = encode_request(params)
    request_items = encoded.pop(REQUEST_ITEMS)
    return RequestSet.for_batch_write(connection, request_items, encoded)
