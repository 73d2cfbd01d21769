"""
Creating and deleting tables, waiting until DynamoDB reports them ready or gone
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, NamedTuple, Optional

from pydyno.constants import (
    ACTIVE, CREATE_TABLE, DELETE_TABLE, GLOBAL_SECONDARY_INDEXES, INDEX_STATUS, TABLE_DESCRIPTION, TABLE_NAME,
    TABLE_POLL_INTERVAL_SECONDS, TABLE_STATUS,
)
from pydyno.exceptions import LifecycleTimeout, MultiTableError, RequestError, TableDoesNotExist, ValidationError

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())


class TableTarget(enum.Enum):
    ACTIVE = 'ACTIVE'
    ABSENT = 'ABSENT'


def _is_active(description: Mapping[str, Any]) -> bool:
    if description.get(TABLE_STATUS) != ACTIVE:
        return False
    return all(index.get(INDEX_STATUS) == ACTIVE for index in description.get(GLOBAL_SECONDARY_INDEXES, []))


@dataclass
class TableLifecycleTask:
    """
    Polls DescribeTable until a table reaches `target`.

    Transient polling errors are logged and retried. Without a `timeout` polling
    continues until the table settles or the task is cancelled.
    """
    table_name: str
    target: TableTarget
    poll_interval: Optional[float] = None
    timeout: Optional[float] = None
    polls: int = 0
    outcome: Any = None

    async def wait(self, connection: Any) -> Dict[str, Any]:
        try:
            if self.timeout is None:
                description = await self._poll(connection)
            else:
                description = await asyncio.wait_for(self._poll(connection), self.timeout)
        except asyncio.TimeoutError:
            self.outcome = LifecycleTimeout("Table {} did not become {} within {} seconds".format(
                self.table_name, self.target.value, self.timeout))
            raise self.outcome
        except Exception as e:
            self.outcome = e
            raise
        self.outcome = description
        return description

    async def _poll(self, connection: Any) -> Dict[str, Any]:
        interval = self.poll_interval if self.poll_interval is not None else TABLE_POLL_INTERVAL_SECONDS
        while True:
            self.polls += 1
            try:
                description = await connection.describe_table(self.table_name)
            except TableDoesNotExist:
                if self.target is TableTarget.ABSENT:
                    log.info("Table %s is deleted", self.table_name)
                    return {}
                log.debug("Table %s is not visible yet", self.table_name)
            except RequestError as e:
                if not e.retryable:
                    raise
                log.warning("Polling table %s failed, retrying: %s", self.table_name, e)
            else:
                if self.target is TableTarget.ACTIVE and _is_active(description):
                    log.info("Table %s is active", self.table_name)
                    return description
                log.debug("Table %s is %s", self.table_name, description.get(TABLE_STATUS))
            await asyncio.sleep(interval)


async def create_table(connection: Any,
                       params: Mapping[str, Any],
                       poll_interval: Optional[float] = None,
                       timeout: Optional[float] = None) -> Dict[str, Any]:
    """
    Issues CreateTable and returns the table's description once it and its
    global secondary indexes are ACTIVE

    Raises TableError at once if DynamoDB rejects the request
    """
    if not params.get(TABLE_NAME):
        raise ValidationError("TableName is required")
    await connection.dispatch(CREATE_TABLE, dict(params))
    log.info("Waiting for table %s to become active", params[TABLE_NAME])
    task = TableLifecycleTask(params[TABLE_NAME], TableTarget.ACTIVE, poll_interval, timeout)
    return await task.wait(connection)


async def delete_table(connection: Any,
                       table_name: str,
                       poll_interval: Optional[float] = None,
                       timeout: Optional[float] = None) -> Dict[str, Any]:
    """
    Issues DeleteTable and returns its table description once DescribeTable
    no longer finds the table
    """
    data = await connection.dispatch(DELETE_TABLE, {TABLE_NAME: table_name})
    log.info("Waiting for table %s to be deleted", table_name)
    task = TableLifecycleTask(table_name, TableTarget.ABSENT, poll_interval, timeout)
    await task.wait(connection)
    return data.get(TABLE_DESCRIPTION, {})


class MultiTableResult(NamedTuple):
    read: Dict[str, Any]
    write: Dict[str, Any]


async def _both(read_op, write_op) -> MultiTableResult:
    read, write = await asyncio.gather(read_op, write_op, return_exceptions=True)
    for outcome in (read, write):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
    if isinstance(read, Exception) or isinstance(write, Exception):
        raise MultiTableError(read, write)
    return MultiTableResult(read, write)


async def multi_create(read_connection: Any,
                       write_connection: Any,
                       params: Mapping[str, Any],
                       poll_interval: Optional[float] = None,
                       timeout: Optional[float] = None,
                       write_params: Optional[Mapping[str, Any]] = None) -> MultiTableResult:
    """
    Creates the same table on the read and write stores.

    `write_params` replaces `params` on the write store, e.g. for a different table name.
    Both sides always run to completion; MultiTableError carries both outcomes if either failed.
    """
    return await _both(create_table(read_connection, params, poll_interval, timeout),
                       create_table(write_connection, write_params or params, poll_interval, timeout))


async def multi_delete(read_connection: Any,
                       write_connection: Any,
                       table_name: str,
                       poll_interval: Optional[float] = None,
                       timeout: Optional[float] = None,
                       write_table_name: Optional[str] = None) -> MultiTableResult:
    """
    Deletes the same table from the read and write stores
    """
    return await _both(delete_table(read_connection, table_name, poll_interval, timeout),
                       delete_table(write_connection, write_table_name or table_name, poll_interval, timeout))
