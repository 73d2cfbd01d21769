"""
RequestSet dispatch tests
"""
import asyncio
from unittest.mock import patch

import pytest
from botocore.client import ClientError

from pydyno.batch import Put, batch_get_requests, batch_write_requests
from pydyno.exceptions import BatchGetError, BatchWriteError, PartialBatchFailure, ValidationError
from pydyno.request_set import AggregateResult, RequestSet

from .data import PATCH_METHOD, TEST_TABLE_NAME


def _first_id(params):
    return int(params['RequestItems'][TEST_TABLE_NAME]['Keys'][0]['id']['N'])


def _client_error(code='ValidationException', operation_name='BatchGetItem'):
    return ClientError({'Error': {'Code': code, 'Message': 'nope'}}, operation_name)


@pytest.mark.asyncio
async def test_send_all__empty(connection):
    with patch(PATCH_METHOD) as req:
        result = await RequestSet(connection).send_all()
    assert result.responses == []
    assert result.consumed_capacity == {}
    assert not result.has_unprocessed
    assert req.call_count == 0


@pytest.mark.parametrize('concurrency', [0, -1, 2.5, '2', None, True])
@pytest.mark.asyncio
async def test_send_all__invalid_concurrency(connection, concurrency):
    requests = batch_get_requests(connection, TEST_TABLE_NAME, [{'id': 1}])
    with patch(PATCH_METHOD) as req:
        with pytest.raises(ValidationError):
            await requests.send_all(concurrency=concurrency)
    assert req.call_count == 0


@pytest.mark.parametrize('concurrency', [1, 3, 20])
@pytest.mark.asyncio
async def test_send_all__concurrency_cap(connection, concurrency):
    in_flight = 0
    max_in_flight = 0

    async def fake_api_call(operation_name, kwargs):
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return {}

    requests = batch_write_requests(connection, TEST_TABLE_NAME, [Put({'id': i}) for i in range(250)])
    assert len(requests) == 10

    with patch(PATCH_METHOD, side_effect=fake_api_call) as req:
        result = await requests.send_all(concurrency=concurrency)

    assert req.call_count == 10
    assert len(result.responses) == 10
    assert max_in_flight == min(concurrency, 10)


@pytest.mark.asyncio
async def test_send_all__index_aligned(connection):
    async def fake_api_call(operation_name, kwargs):
        first_id = _first_id(kwargs)
        # later requests finish first
        await asyncio.sleep(0.001 * (5 - first_id))
        return {'Responses': {TEST_TABLE_NAME: [{'id': {'N': str(first_id)}}]}}

    with patch('pydyno.request_set.BATCH_GET_PAGE_LIMIT', 1):
        requests = batch_get_requests(connection, TEST_TABLE_NAME, [{'id': i} for i in range(5)])

    with patch(PATCH_METHOD, side_effect=fake_api_call):
        result = await requests.send_all(concurrency=5)

    assert [response['Responses'][TEST_TABLE_NAME][0]['id'] for response in result.responses] == [0, 1, 2, 3, 4]
    assert result.items == {TEST_TABLE_NAME: [{'id': i} for i in range(5)]}


@pytest.mark.asyncio
async def test_send_all__first_error_stops_launching(connection):
    calls = []

    async def fake_api_call(operation_name, kwargs):
        calls.append(_first_id(kwargs))
        if len(calls) == 2:
            raise _client_error()
        return {}

    with patch('pydyno.request_set.BATCH_GET_PAGE_LIMIT', 1):
        requests = batch_get_requests(connection, TEST_TABLE_NAME, [{'id': i} for i in range(5)])

    with patch(PATCH_METHOD, side_effect=fake_api_call):
        with pytest.raises(BatchGetError) as excinfo:
            await requests.send_all()

    assert calls == [0, 1]
    assert excinfo.value.cause_response_code == 'ValidationException'


@pytest.mark.asyncio
async def test_send_all__in_flight_requests_finish(connection):
    finished = []

    async def fake_api_call(operation_name, kwargs):
        first_id = _first_id(kwargs)
        if first_id == 0:
            await asyncio.sleep(0.001)
            raise _client_error()
        await asyncio.sleep(0.01)
        finished.append(first_id)
        return {}

    with patch('pydyno.request_set.BATCH_GET_PAGE_LIMIT', 1):
        requests = batch_get_requests(connection, TEST_TABLE_NAME, [{'id': i} for i in range(5)])

    with patch(PATCH_METHOD, side_effect=fake_api_call) as req:
        with pytest.raises(BatchGetError):
            await requests.send_all(concurrency=2)

    assert finished == [1]
    assert req.call_count == 2


@pytest.mark.asyncio
async def test_send_all__write_error(connection):
    requests = batch_write_requests(connection, TEST_TABLE_NAME, [Put({'id': 'a'})])
    with patch(PATCH_METHOD, side_effect=_client_error('InternalServerError', 'BatchWriteItem')):
        with pytest.raises(BatchWriteError):
            await requests.send_all()


@pytest.mark.asyncio
async def test_send_all__consumed_capacity(connection):
    response = {
        'ConsumedCapacity': [
            {
                'TableName': TEST_TABLE_NAME,
                'CapacityUnits': 1.5,
                'GlobalSecondaryIndexes': {'VersionIndex': {'CapacityUnits': 0.5}},
            },
            {'TableName': 'other-table', 'CapacityUnits': 1},
        ]
    }
    requests = batch_write_requests(
        connection, TEST_TABLE_NAME, [Put({'id': i}) for i in range(30)], ReturnConsumedCapacity='INDEXES')

    with patch(PATCH_METHOD, return_value=response):
        result = await requests.send_all(concurrency=2)

    assert result.consumed_capacity == {TEST_TABLE_NAME: 3.0, 'VersionIndex': 1.0, 'other-table': 2}


@pytest.mark.asyncio
async def test_send_all__unprocessed_keys(connection):
    responses = [
        {
            'Responses': {TEST_TABLE_NAME: [{'id': {'N': '0'}}]},
            'UnprocessedKeys': {
                TEST_TABLE_NAME: {'Keys': [{'id': {'N': '1'}}], 'ConsistentRead': True},
            },
        },
        {
            'Responses': {TEST_TABLE_NAME: []},
            'UnprocessedKeys': {
                TEST_TABLE_NAME: {'Keys': [{'id': {'N': '3'}}], 'ConsistentRead': True},
            },
        },
    ]
    with patch('pydyno.request_set.BATCH_GET_PAGE_LIMIT', 2):
        requests = batch_get_requests(
            connection, TEST_TABLE_NAME, [{'id': i} for i in range(4)],
            ConsistentRead=True, ReturnConsumedCapacity='TOTAL')

    with patch(PATCH_METHOD, side_effect=responses):
        result = await requests.send_all()

    assert result.has_unprocessed
    assert len(result.unprocessed) == 1
    assert result.unprocessed[0].params == {
        'RequestItems': {
            TEST_TABLE_NAME: {'Keys': [{'id': {'N': '1'}}, {'id': {'N': '3'}}], 'ConsistentRead': True},
        },
        'ReturnConsumedCapacity': 'TOTAL',
    }
    assert result.responses[0]['UnprocessedKeys'] == {TEST_TABLE_NAME: {'Keys': [{'id': 1}], 'ConsistentRead': True}}

    with pytest.raises(PartialBatchFailure) as excinfo:
        result.raise_for_unprocessed()
    assert excinfo.value.unprocessed is result.unprocessed

    # the retry set is sent like any other
    with patch(PATCH_METHOD, return_value={'Responses': {TEST_TABLE_NAME: [{'id': {'N': '1'}}, {'id': {'N': '3'}}]}}):
        retried = await result.unprocessed.send_all()
    assert retried.items == {TEST_TABLE_NAME: [{'id': 1}, {'id': 3}]}
    retried.raise_for_unprocessed()


@pytest.mark.asyncio
async def test_send_all__unprocessed_items(connection):
    unprocessed = [{'PutRequest': {'Item': {'id': {'N': str(i)}}}} for i in range(30)]
    requests = batch_write_requests(connection, TEST_TABLE_NAME, [Put({'id': i}) for i in range(30)])

    with patch(PATCH_METHOD, side_effect=[
        {'UnprocessedItems': {TEST_TABLE_NAME: unprocessed[:25]}},
        {'UnprocessedItems': {TEST_TABLE_NAME: unprocessed[25:]}},
    ]):
        result = await requests.send_all()

    assert [len(request.params['RequestItems'][TEST_TABLE_NAME]) for request in result.unprocessed] == [25, 5]
    assert result.unprocessed[0].operation_name == 'BatchWriteItem'


def test_aggregate_result__no_unprocessed(connection):
    result = AggregateResult([{'Responses': {}}], {}, RequestSet(connection))
    assert not result.has_unprocessed
    assert result.items == {}
    result.raise_for_unprocessed()


def test_request_set__sequence(connection):
    requests = batch_get_requests(connection, TEST_TABLE_NAME, [{'id': i} for i in range(150)])
    assert len(requests) == 2
    assert requests[-1] is requests[1]
    assert repr(requests) == 'RequestSet<2 request(s)>'
