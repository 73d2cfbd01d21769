import asyncio
from unittest.mock import patch

import pytest
from botocore.client import ClientError

from pydyno.exceptions import ScanError
from pydyno.pagination import ItemStream, PageIterator, StreamState

from .data import PATCH_METHOD, TEST_TABLE_NAME


class FakeScan(object):
    """
    Serves a fixed dataset of ``{'id': n}`` items in pages, like a Scan with a Limit
    """

    def __init__(self, count=7, page_size=3, fail_on_page=None):
        self.items = [{'id': {'N': str(i)}} for i in range(count)]
        self.page_size = page_size
        self.fail_on_page = fail_on_page
        self.calls = []

    async def handle(self, operation_name, kwargs):
        self.calls.append(kwargs)
        if self.fail_on_page == len(self.calls):
            raise ClientError({'Error': {'Code': 'InternalServerError', 'Message': 'boom'}}, operation_name)
        start = 0
        if 'ExclusiveStartKey' in kwargs:
            start = int(kwargs['ExclusiveStartKey']['id']['N']) + 1
        page = self.items[start:start + self.page_size]
        data = {'Items': page, 'Count': len(page), 'ScannedCount': len(page) + 1}
        if start + self.page_size < len(self.items):
            data['LastEvaluatedKey'] = page[-1]
        if kwargs.get('ReturnConsumedCapacity', 'NONE') != 'NONE':
            data['ConsumedCapacity'] = {'TableName': TEST_TABLE_NAME, 'CapacityUnits': 0.5}
        return data


def _stream(connection, pages=None, **params):
    params.setdefault('TableName', TEST_TABLE_NAME)
    return ItemStream(connection, 'Scan', params, pages)


@pytest.mark.asyncio
async def test_stream__exhausts_dataset(connection):
    scan = FakeScan()
    stream = _stream(connection)
    assert stream.state is StreamState.IDLE

    with patch(PATCH_METHOD, side_effect=scan.handle):
        items = [item async for item in stream]

    assert items == [{'id': i} for i in range(7)]
    assert stream.state is StreamState.DONE
    assert stream.pages_fetched == 3
    assert stream.total_count == 7
    assert stream.total_scanned_count == 10
    assert stream.last_evaluated_key is None
    assert stream.consumed_capacity is None
    assert len(scan.calls) == 3
    assert 'ExclusiveStartKey' not in scan.calls[0]
    assert scan.calls[1]['ExclusiveStartKey'] == {'id': {'N': '2'}}


@pytest.mark.asyncio
async def test_stream__fetches_lazily(connection):
    scan = FakeScan()
    stream = _stream(connection)

    with patch(PATCH_METHOD, side_effect=scan.handle):
        assert len(scan.calls) == 0
        assert await stream.__anext__() == {'id': 0}
        assert stream.state is StreamState.BUFFERED
        assert len(scan.calls) == 1
        await stream.__anext__()
        await stream.__anext__()
        assert len(scan.calls) == 1
        assert await stream.__anext__() == {'id': 3}
        assert len(scan.calls) == 2


@pytest.mark.asyncio
async def test_stream__close_stops_requests(connection):
    scan = FakeScan()
    stream = _stream(connection)

    with patch(PATCH_METHOD, side_effect=scan.handle):
        await stream.__anext__()
        await stream.__anext__()
        await stream.aclose()
        assert stream.state is StreamState.CLOSED
        assert [item async for item in stream] == []

    assert len(scan.calls) == 1
    assert stream.last_evaluated_key == {'id': 2}


@pytest.mark.asyncio
async def test_stream__context_manager(connection):
    scan = FakeScan()
    with patch(PATCH_METHOD, side_effect=scan.handle):
        async with _stream(connection) as stream:
            async for item in stream:
                if item['id'] == 4:
                    break
    assert stream.state is StreamState.CLOSED
    assert len(scan.calls) == 2


@pytest.mark.asyncio
async def test_stream__consumed_capacity(connection):
    scan = FakeScan()
    stream = _stream(connection, ReturnConsumedCapacity='TOTAL')

    with patch(PATCH_METHOD, side_effect=scan.handle):
        assert stream.consumed_capacity == {}
        await stream.__anext__()
        assert stream.consumed_capacity == {TEST_TABLE_NAME: 0.5}
        _ = [item async for item in stream]

    assert stream.consumed_capacity == {TEST_TABLE_NAME: 1.5}


@pytest.mark.asyncio
async def test_stream__capacity_counted_after_close(connection):
    gate = asyncio.Event()
    scan = FakeScan()

    async def slow_scan(operation_name, kwargs):
        await gate.wait()
        return await scan.handle(operation_name, kwargs)

    stream = _stream(connection, ReturnConsumedCapacity='TOTAL')
    with patch(PATCH_METHOD, side_effect=slow_scan):
        consumer = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        assert stream.state is StreamState.FETCHING

        closing = asyncio.ensure_future(stream.aclose())
        await asyncio.sleep(0)
        assert stream.state is StreamState.CLOSED

        gate.set()
        await closing
        with pytest.raises(StopAsyncIteration):
            await consumer

    assert stream.consumed_capacity == {TEST_TABLE_NAME: 0.5}
    assert len(scan.calls) == 1


@pytest.mark.asyncio
async def test_stream__error_surfaces_once(connection):
    scan = FakeScan(fail_on_page=2)
    stream = _stream(connection)
    items = []

    with patch(PATCH_METHOD, side_effect=scan.handle):
        with pytest.raises(ScanError):
            async for item in stream:
                items.append(item)
        assert stream.state is StreamState.ERRORED
        assert [item async for item in stream] == []

    assert items == [{'id': 0}, {'id': 1}, {'id': 2}]
    assert len(scan.calls) == 2


@pytest.mark.asyncio
async def test_stream__pages_cap(connection):
    scan = FakeScan()
    stream = _stream(connection, pages=2)

    with patch(PATCH_METHOD, side_effect=scan.handle):
        items = [item async for item in stream]

    assert items == [{'id': i} for i in range(6)]
    assert stream.state is StreamState.DONE
    assert stream.last_evaluated_key == {'id': 5}
    assert len(scan.calls) == 2


@pytest.mark.asyncio
async def test_stream__concurrent_pulls_share_one_request(connection):
    gate = asyncio.Event()
    scan = FakeScan()

    async def slow_scan(operation_name, kwargs):
        await gate.wait()
        return await scan.handle(operation_name, kwargs)

    stream = _stream(connection)
    with patch(PATCH_METHOD, side_effect=slow_scan):
        pulls = asyncio.gather(stream.__anext__(), stream.__anext__())
        await asyncio.sleep(0)
        gate.set()
        first, second = await pulls

    assert sorted([first['id'], second['id']]) == [0, 1]
    assert len(scan.calls) == 1


@pytest.mark.asyncio
async def test_stream__count_only_pages(connection):
    responses = [
        {'Count': 4, 'ScannedCount': 4, 'LastEvaluatedKey': {'id': {'N': '3'}}},
        {'Count': 2, 'ScannedCount': 2},
    ]
    stream = _stream(connection, Select='COUNT')
    with patch(PATCH_METHOD, side_effect=responses):
        assert [item async for item in stream] == []
    assert stream.total_count == 6
    assert stream.pages_fetched == 2


@pytest.mark.asyncio
async def test_page_iterator(connection):
    scan = FakeScan()
    page_iter = PageIterator(connection, 'Scan', {'TableName': TEST_TABLE_NAME, 'ExclusiveStartKey': {'id': {'N': '0'}}})

    with patch(PATCH_METHOD, side_effect=scan.handle):
        pages = [page async for page in page_iter]

    assert [page['Items'] for page in pages] == [
        [{'id': 1}, {'id': 2}, {'id': 3}],
        [{'id': 4}, {'id': 5}, {'id': 6}],
    ]
    assert page_iter.pages_fetched == 2
    assert page_iter.total_scanned_count == 8
    assert page_iter.last_evaluated_key is None
    assert not page_iter.has_more
    assert await page_iter.next_page() is None
