"""
Lowest level connection
"""
import asyncio
import logging
import uuid
from contextlib import AsyncExitStack
from functools import lru_cache
from typing import Any, Dict, Optional

import botocore.session
from aiobotocore.config import AioConfig
from aiobotocore.session import AioSession, get_session
from botocore import xform_name
from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError
from botocore.model import ServiceModel
from botocore.validate import validate_parameters

from pydyno.config import ClientConfig
from pydyno.constants import (
    BATCH_GET_ITEM, BATCH_WRITE_ITEM, CAPACITY_UNITS, CONSUMED_CAPACITY, CREATE_TABLE, DELETE_ITEM,
    DELETE_TABLE, DESCRIBE_TABLE, GET_ITEM, LIST_TABLES, PUT_ITEM, QUERY, REQUEST_ITEMS,
    RESOURCE_NOT_FOUND, RESPONSE_METADATA, SCAN, SERVICE_NAME, TABLE_KEY, TABLE_NAME, UPDATE_ITEM,
)
from pydyno.exceptions import (
    BatchGetError, BatchWriteError, DeleteError, GetError, PutError, QueryError, RequestError, ScanError,
    TableDoesNotExist, TableError, UpdateError, ValidationError,
)
from pydyno.settings import get_settings_value
from pydyno.signals import pre_dynamodb_send, post_dynamodb_send

BOTOCORE_EXCEPTIONS = (BotoCoreError, ClientError)

OPERATION_ERRORS = {
    GET_ITEM: GetError,
    PUT_ITEM: PutError,
    UPDATE_ITEM: UpdateError,
    DELETE_ITEM: DeleteError,
    QUERY: QueryError,
    SCAN: ScanError,
    BATCH_GET_ITEM: BatchGetError,
    BATCH_WRITE_ITEM: BatchWriteError,
    CREATE_TABLE: TableError,
    DELETE_TABLE: TableError,
    DESCRIBE_TABLE: TableError,
    LIST_TABLES: TableError,
}

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())


@lru_cache(maxsize=None)
def _service_model() -> ServiceModel:
    return botocore.session.get_session().get_service_model(SERVICE_NAME)


class Connection(object):
    """
    An asyncio abstraction over an aiobotocore DynamoDB client.

    Signing, credential resolution and retries with backoff are left to botocore.
    The client is created on first use and must be used from a single event loop.
    """

    def __init__(self,
                 region: Optional[str] = None,
                 host: Optional[str] = None,
                 read_timeout_seconds: Optional[float] = None,
                 connect_timeout_seconds: Optional[float] = None,
                 max_retry_attempts: Optional[int] = None,
                 max_pool_connections: Optional[int] = None,
                 aws_access_key_id: Optional[str] = None,
                 aws_secret_access_key: Optional[str] = None,
                 aws_session_token: Optional[str] = None):
        self.region = region
        self.host = host
        self._session: Optional[AioSession] = None
        self._client: Any = None
        self._client_lock: Optional[asyncio.Lock] = None
        self._exit_stack = AsyncExitStack()

        if connect_timeout_seconds is not None:
            self._connect_timeout_seconds = connect_timeout_seconds
        else:
            self._connect_timeout_seconds = get_settings_value('connect_timeout_seconds')

        if read_timeout_seconds is not None:
            self._read_timeout_seconds = read_timeout_seconds
        else:
            self._read_timeout_seconds = get_settings_value('read_timeout_seconds')

        if max_retry_attempts is not None:
            self._max_retry_attempts = max_retry_attempts
        else:
            self._max_retry_attempts = get_settings_value('max_retry_attempts')

        if max_pool_connections is not None:
            self._max_pool_connections = max_pool_connections
        else:
            self._max_pool_connections = get_settings_value('max_pool_connections')

        self._credentials: Dict[str, Optional[str]] = {}
        if aws_access_key_id and aws_secret_access_key:
            self._credentials = {
                'aws_access_key_id': aws_access_key_id,
                'aws_secret_access_key': aws_secret_access_key,
                'aws_session_token': aws_session_token,
            }

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'Connection':
        return cls(region=config.region,
                   host=config.endpoint,
                   read_timeout_seconds=config.read_timeout_seconds,
                   connect_timeout_seconds=config.connect_timeout_seconds,
                   max_retry_attempts=config.max_retry_attempts,
                   max_pool_connections=config.max_pool_connections,
                   aws_access_key_id=config.aws_access_key_id,
                   aws_secret_access_key=config.aws_secret_access_key,
                   aws_session_token=config.aws_session_token)

    def __repr__(self) -> str:
        return "Connection<{}>".format(self.host or self.region)

    @property
    def session(self) -> AioSession:
        """
        Returns a valid aiobotocore session
        """
        if self._session is None:
            self._session = get_session()
        return self._session

    async def get_client(self) -> Any:
        """
        Returns the aiobotocore dynamodb client, creating it on first use
        """
        if self._client is None:
            if self._client_lock is None:
                self._client_lock = asyncio.Lock()
            async with self._client_lock:
                if self._client is None:
                    config = AioConfig(
                        parameter_validation=False,  # requests are validated when they are built
                        connect_timeout=self._connect_timeout_seconds,
                        read_timeout=self._read_timeout_seconds,
                        max_pool_connections=self._max_pool_connections,
                        retries={'max_attempts': self._max_retry_attempts})
                    self._client = await self._exit_stack.enter_async_context(
                        self.session.create_client(SERVICE_NAME, region_name=self.region, endpoint_url=self.host,
                                                   config=config, **self._credentials))
        return self._client

    async def close(self) -> None:
        """
        Releases the underlying HTTP client
        """
        await self._exit_stack.aclose()
        self._client = None
        self._exit_stack = AsyncExitStack()

    def validate_request(self, operation_name: str, operation_kwargs: Dict[str, Any]) -> None:
        """
        Checks `operation_kwargs` against the service's input shape for `operation_name`, without sending it

        Raises ValidationError if the request is malformed
        """
        input_shape = _service_model().operation_model(operation_name).input_shape
        try:
            validate_parameters(operation_kwargs, input_shape)
        except ParamValidationError as e:
            raise ValidationError("Invalid {} request: {}".format(operation_name, e), e)

    async def dispatch(self, operation_name: str, operation_kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatches `operation_name` with arguments `operation_kwargs`

        Raises a RequestError subclass matching the operation if the call fails,
        and TableDoesNotExist if a described table does not exist
        """
        log.debug("Calling %s with arguments %s", operation_name, operation_kwargs)

        table_name = self._get_table_name(operation_kwargs)
        req_uuid = uuid.uuid4()

        self.send_pre_boto_callback(operation_name, req_uuid, table_name)
        try:
            data = await self._make_api_call(operation_name, operation_kwargs)
        except BOTOCORE_EXCEPTIONS as e:
            raise self._wrap_error(operation_name, table_name, e)
        self.send_post_boto_callback(operation_name, req_uuid, table_name)

        if data and CONSUMED_CAPACITY in data:
            capacity = data.get(CONSUMED_CAPACITY)
            if isinstance(capacity, dict) and CAPACITY_UNITS in capacity:
                capacity = capacity.get(CAPACITY_UNITS)
            log.debug("%s %s consumed %s units", table_name or '', operation_name, capacity)
        return data

    @staticmethod
    def _get_table_name(operation_kwargs: Dict[str, Any]) -> Optional[str]:
        if REQUEST_ITEMS in operation_kwargs:
            # Batch operations can hit multiple tables, report them comma separated
            return ','.join(operation_kwargs[REQUEST_ITEMS])
        return operation_kwargs.get(TABLE_NAME)

    @staticmethod
    def _wrap_error(operation_name: str, table_name: Optional[str], e: Exception) -> RequestError:
        if isinstance(e, ClientError) and operation_name == DESCRIBE_TABLE \
                and e.response.get('Error', {}).get('Code') == RESOURCE_NOT_FOUND:
            return TableDoesNotExist(table_name or '', e)
        error_cls = OPERATION_ERRORS.get(operation_name, RequestError)
        return error_cls("Failed to call {}: {}".format(operation_name, e), e)

    def send_post_boto_callback(self, operation_name, req_uuid, table_name):
        try:
            post_dynamodb_send.send(self, operation_name=operation_name, table_name=table_name, req_uuid=req_uuid)
        except Exception:
            log.exception("post_boto callback threw an exception.")

    def send_pre_boto_callback(self, operation_name, req_uuid, table_name):
        try:
            pre_dynamodb_send.send(self, operation_name=operation_name, table_name=table_name, req_uuid=req_uuid)
        except Exception:
            log.exception("pre_boto callback threw an exception.")

    async def _make_api_call(self, operation_name: str, operation_kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """
        The one place requests leave the process, so unit tests can patch it
        """
        client = await self.get_client()
        data = await getattr(client, xform_name(operation_name))(**operation_kwargs)
        data.pop(RESPONSE_METADATA, None)
        return data

    async def describe_table(self, table_name: str) -> Dict[str, Any]:
        """
        Performs the DescribeTable operation and returns the table description

        Raises TableDoesNotExist if the table does not exist
        """
        data = await self.dispatch(DESCRIBE_TABLE, {TABLE_NAME: table_name})
        if TABLE_KEY not in data:
            raise TableError("No table description returned for {}".format(table_name))
        return data[TABLE_KEY]
