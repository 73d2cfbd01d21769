import asyncio
import enum
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from pydyno._util import add_consumed_capacity
from pydyno.constants import (
    CAMEL_COUNT, CONSUMED_CAPACITY, EXCLUSIVE_START_KEY, ITEMS, LAST_EVALUATED_KEY, NONE,
    RETURN_CONSUMED_CAPACITY, SCANNED_COUNT,
)
from pydyno.serialization import decode_response, from_attribute_map

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())


class PageIterator(AsyncIterator[Dict[str, Any]]):
    """
    PageIterator handles Query and Scan result pagination, one request at a time.

    `params` are wire-formatted; pages are returned decoded.

    http://docs.aws.amazon.com/amazondynamodb/latest/developerguide/Query.html#Query.Pagination
    http://docs.aws.amazon.com/amazondynamodb/latest/developerguide/Scan.html#Scan.Pagination
    """
    def __init__(
        self,
        connection: Any,
        operation_name: str,
        params: Dict[str, Any],
        pages: Optional[int] = None,
    ) -> None:
        self._connection = connection
        self._operation_name = operation_name
        self._params = dict(params)
        self._pages = pages
        self._first_iteration = True
        self._last_evaluated_key = params.get(EXCLUSIVE_START_KEY)
        self._total_scanned_count = 0
        self._pages_fetched = 0
        self.consumed_capacity: Dict[str, float] = {}

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self

    async def __anext__(self) -> Dict[str, Any]:
        page = await self.next_page()
        if page is None:
            raise StopAsyncIteration
        return page

    @property
    def has_more(self) -> bool:
        if self._pages is not None and self._pages_fetched >= self._pages:
            return False
        return self._first_iteration or self._last_evaluated_key is not None

    async def next_page(self) -> Optional[Dict[str, Any]]:
        """
        Fetches the next page, or returns None when there are no more
        """
        if not self.has_more:
            return None

        self._first_iteration = False

        params = dict(self._params)
        if self._last_evaluated_key is not None:
            params[EXCLUSIVE_START_KEY] = self._last_evaluated_key

        page = await self._connection.dispatch(self._operation_name, params)
        self._pages_fetched += 1
        self._last_evaluated_key = page.get(LAST_EVALUATED_KEY)
        self._total_scanned_count += page.get(SCANNED_COUNT, 0)
        add_consumed_capacity(self.consumed_capacity, page.get(CONSUMED_CAPACITY))
        return decode_response(page)

    @property
    def last_evaluated_key(self) -> Optional[Dict[str, Dict[str, Any]]]:
        return self._last_evaluated_key

    @property
    def total_scanned_count(self) -> int:
        return self._total_scanned_count

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched


class StreamState(enum.Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    BUFFERED = 'buffered'
    DONE = 'done'
    ERRORED = 'errored'
    CLOSED = 'closed'


TERMINAL_STATES = (StreamState.DONE, StreamState.ERRORED, StreamState.CLOSED)


class ItemStream(AsyncIterator[Dict[str, Any]]):
    """
    ItemStream yields the items of a Query or Scan, fetching a page only when the
    buffered one is used up.

    At most one page request is in flight. A failed request is raised once, after which
    iteration ends. Closing the stream stops further requests; the items of a page still
    in flight are dropped but its consumed capacity is still counted.

    Example::

        async with client.query_stream(KeyConditionExpression='id = :id',
                                       ExpressionAttributeValues={':id': 'abc'}) as stream:
            async for item in stream:
                ...
    """
    def __init__(
        self,
        connection: Any,
        operation_name: str,
        params: Dict[str, Any],
        pages: Optional[int] = None,
    ) -> None:
        self.page_iter = PageIterator(connection, operation_name, params, pages)
        self._track_capacity = params.get(RETURN_CONSUMED_CAPACITY, NONE) != NONE
        self._state = StreamState.IDLE
        self._items: List[Dict[str, Any]] = []
        self._index = 0
        self._total_count = 0
        self._pending: Optional[asyncio.Future] = None
        self._error: Optional[Exception] = None

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self

    async def __anext__(self) -> Dict[str, Any]:
        while True:
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            if self._state in TERMINAL_STATES:
                raise StopAsyncIteration
            if self._state is StreamState.BUFFERED and self._index < len(self._items):
                item = self._items[self._index]
                self._index += 1
                return item
            if self._pending is None:
                if not self.page_iter.has_more:
                    self._state = StreamState.DONE
                    continue
                self._state = StreamState.FETCHING
                self._pending = asyncio.ensure_future(self._load_page())
            # a cancelled consumer leaves the page request running
            await asyncio.shield(self._pending)

    async def _load_page(self) -> None:
        try:
            page = await self.page_iter.next_page()
        except Exception as e:
            if self._state is StreamState.CLOSED:
                log.debug("Discarding error from a closed stream: %s", e)
            else:
                self._state = StreamState.ERRORED
                self._error = e
            return
        finally:
            self._pending = None

        if self._state is StreamState.CLOSED or page is None:
            return
        self._items = page.get(ITEMS) or []  # not returned if 'Select' is set to 'COUNT'
        self._index = 0
        self._total_count += page.get(CAMEL_COUNT, 0)
        self._state = StreamState.BUFFERED

    async def aclose(self) -> None:
        """
        Stops the stream. A page request already in flight is awaited and its items dropped.
        """
        if self._state not in (StreamState.DONE, StreamState.ERRORED):
            self._state = StreamState.CLOSED
        self._items = []
        self._index = 0
        if self._pending is not None:
            await asyncio.shield(self._pending)

    async def __aenter__(self) -> 'ItemStream':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def consumed_capacity(self) -> Optional[Dict[str, float]]:
        """
        Capacity units consumed so far per table and index name, or None unless
        ReturnConsumedCapacity was requested
        """
        if not self._track_capacity:
            return None
        return dict(self.page_iter.consumed_capacity)

    @property
    def last_evaluated_key(self) -> Optional[Dict[str, Any]]:
        """
        The key to resume from with ExclusiveStartKey, or None once the results are exhausted
        """
        last_evaluated_key = self.page_iter.last_evaluated_key
        if last_evaluated_key is None:
            return None
        return from_attribute_map(last_evaluated_key)

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def total_scanned_count(self) -> int:
        return self.page_iter.total_scanned_count

    @property
    def pages_fetched(self) -> int:
        return self.page_iter.pages_fetched
