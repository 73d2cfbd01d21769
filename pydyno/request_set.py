"""
Bounded batch requests and their concurrent dispatch
"""
import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from pydyno._util import add_consumed_capacity, chunked
from pydyno.constants import (
    BATCH_GET_ITEM, BATCH_GET_PAGE_LIMIT, BATCH_WRITE_ITEM, BATCH_WRITE_PAGE_LIMIT, CONSUMED_CAPACITY, KEYS,
    REQUEST_ITEMS, RESPONSES, UNPROCESSED_ITEMS, UNPROCESSED_KEYS,
)
from pydyno.exceptions import PartialBatchFailure, ValidationError
from pydyno.serialization import decode_response

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())


class BatchRequest(NamedTuple):
    """
    One fully-formed BatchGetItem or BatchWriteItem call, in wire format
    """
    operation_name: str
    params: Dict[str, Any]


class RequestSet(Sequence):
    """
    An ordered collection of independently dispatchable batch requests.

    Built by :mod:`pydyno.batch` and sent with :meth:`send_all`.
    """

    def __init__(self, connection: Any, requests: Iterable[BatchRequest] = ()) -> None:
        self.connection = connection
        self._requests: List[BatchRequest] = list(requests)

    def __getitem__(self, index):
        return self._requests[index]

    def __len__(self) -> int:
        return len(self._requests)

    def __repr__(self) -> str:
        return "RequestSet<{} request(s)>".format(len(self._requests))

    @classmethod
    def for_batch_get(cls,
                      connection: Any,
                      request_items: Mapping[str, Mapping[str, Any]],
                      common_params: Optional[Mapping[str, Any]] = None) -> 'RequestSet':
        """
        Splits wire-format BatchGetItem ``RequestItems`` into calls of at most 100 keys.

        Keys are taken table by table in order, so one call may address several tables;
        each table keeps its own projection and consistency options.
        """
        entries = [
            (table_name, key)
            for table_name, keys_and_attributes in request_items.items()
            for key in keys_and_attributes.get(KEYS, [])
        ]
        requests = []
        for chunk in chunked(entries, BATCH_GET_PAGE_LIMIT):
            chunk_items: Dict[str, Dict[str, Any]] = {}
            for table_name, key in chunk:
                if table_name not in chunk_items:
                    chunk_items[table_name] = dict(request_items[table_name], **{KEYS: []})
                chunk_items[table_name][KEYS].append(key)
            requests.append(cls._build(connection, BATCH_GET_ITEM, chunk_items, common_params))
        return cls(connection, requests)

    @classmethod
    def for_batch_write(cls,
                        connection: Any,
                        request_items: Mapping[str, Iterable[Mapping[str, Any]]],
                        common_params: Optional[Mapping[str, Any]] = None) -> 'RequestSet':
        """
        Splits wire-format BatchWriteItem ``RequestItems`` into calls of at most 25 writes
        """
        entries = [
            (table_name, write_request)
            for table_name, write_requests in request_items.items()
            for write_request in write_requests
        ]
        requests = []
        for chunk in chunked(entries, BATCH_WRITE_PAGE_LIMIT):
            chunk_items: Dict[str, List[Mapping[str, Any]]] = {}
            for table_name, write_request in chunk:
                chunk_items.setdefault(table_name, []).append(write_request)
            requests.append(cls._build(connection, BATCH_WRITE_ITEM, chunk_items, common_params))
        return cls(connection, requests)

    @staticmethod
    def _build(connection: Any,
               operation_name: str,
               request_items: Dict[str, Any],
               common_params: Optional[Mapping[str, Any]]) -> BatchRequest:
        params = dict(common_params or {})
        params[REQUEST_ITEMS] = request_items
        connection.validate_request(operation_name, params)
        return BatchRequest(operation_name, params)

    async def send_all(self, concurrency: int = 1) -> 'AggregateResult':
        """
        Sends every request with at most `concurrency` of them in flight.

        Responses are returned in request order. If a request fails no further requests
        are started, those in flight are awaited, and the first error is raised.
        Unprocessed keys or items are not an error: see :attr:`AggregateResult.unprocessed`.
        """
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            raise ValidationError("concurrency must be an integer of at least 1, got {!r}".format(concurrency))
        if not self._requests:
            return AggregateResult([], {}, RequestSet(self.connection))

        raw_responses: List[Optional[Dict[str, Any]]] = [None] * len(self._requests)
        errors: List[Exception] = []
        pending: Iterator[Tuple[int, BatchRequest]] = enumerate(self._requests)

        async def worker() -> None:
            for index, request in pending:
                if errors:
                    return
                try:
                    raw_responses[index] = await self.connection.dispatch(request.operation_name, request.params)
                except Exception as e:
                    errors.append(e)
                    return

        workers = min(concurrency, len(self._requests))
        log.debug("Sending %s batch request(s), %s at a time", len(self._requests), workers)
        await asyncio.gather(*(worker() for _ in range(workers)))
        if errors:
            raise errors[0]
        return AggregateResult.from_responses(self, raw_responses)


class AggregateResult(object):
    """
    The combined outcome of a :class:`RequestSet`.

    :attr responses: one decoded response per request, in request order
    :attr consumed_capacity: capacity units summed per table and index name
    :attr unprocessed: a RequestSet retrying the keys or items DynamoDB left unprocessed
    """

    def __init__(self,
                 responses: List[Dict[str, Any]],
                 consumed_capacity: Dict[str, float],
                 unprocessed: RequestSet) -> None:
        self.responses = responses
        self.consumed_capacity = consumed_capacity
        self.unprocessed = unprocessed

    @classmethod
    def from_responses(cls, request_set: RequestSet, raw_responses: List[Any]) -> 'AggregateResult':
        consumed_capacity: Dict[str, float] = {}
        unprocessed_keys: Dict[str, Dict[str, Any]] = {}
        unprocessed_items: Dict[str, List[Any]] = {}
        for raw in raw_responses:
            add_consumed_capacity(consumed_capacity, raw.get(CONSUMED_CAPACITY))
            for table_name, keys_and_attributes in (raw.get(UNPROCESSED_KEYS) or {}).items():
                if table_name in unprocessed_keys:
                    unprocessed_keys[table_name][KEYS].extend(keys_and_attributes.get(KEYS, []))
                else:
                    unprocessed_keys[table_name] = dict(keys_and_attributes, **{KEYS: list(keys_and_attributes.get(KEYS, []))})
            for table_name, write_requests in (raw.get(UNPROCESSED_ITEMS) or {}).items():
                unprocessed_items.setdefault(table_name, []).extend(write_requests)

        # Retries reuse the options the original requests were sent with
        common_params = {
            key: value for key, value in request_set[0].params.items() if key != REQUEST_ITEMS
        }
        connection = request_set.connection
        retries: List[BatchRequest] = []
        if unprocessed_keys:
            retries.extend(RequestSet.for_batch_get(connection, unprocessed_keys, common_params))
        if unprocessed_items:
            retries.extend(RequestSet.for_batch_write(connection, unprocessed_items, common_params))

        return cls([decode_response(raw) for raw in raw_responses], consumed_capacity,
                   RequestSet(connection, retries))

    @property
    def items(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Items returned by batch get requests, merged per table
        """
        merged: Dict[str, List[Dict[str, Any]]] = {}
        for response in self.responses:
            for table_name, items in (response.get(RESPONSES) or {}).items():
                merged.setdefault(table_name, []).extend(items)
        return merged

    @property
    def has_unprocessed(self) -> bool:
        return len(self.unprocessed) > 0

    def raise_for_unprocessed(self) -> None:
        """
        Raises PartialBatchFailure if any keys or items were left unprocessed
        """
        if self.has_unprocessed:
            raise PartialBatchFailure(self.unprocessed)
