"""
pydyno exceptions
"""
from typing import Any
from typing import Optional

import botocore.exceptions

from pydyno.constants import RATE_LIMITING_ERROR_CODES


class PyDynoException(Exception):
    """
    Base class for all pydyno exceptions.
    """

    msg: str

    def __init__(self, msg: Optional[str] = None, cause: Optional[Exception] = None) -> None:
        self.msg = msg if msg is not None else self.msg
        self.cause = cause
        super(PyDynoException, self).__init__(self.msg)

    @property
    def cause_response_code(self) -> Optional[str]:
        """
        The DynamoDB response code such as:

        - ``ResourceNotFoundException``
        - ``ProvisionedThroughputExceededException``
        - ``ResourceInUseException``

        Inspect this value to determine the cause of the error and handle it.
        """
        return getattr(self.cause, 'response', {}).get('Error', {}).get('Code')

    @property
    def cause_response_message(self) -> Optional[str]:
        """
        The human-readable description of the error returned by DynamoDB.
        """
        return getattr(self.cause, 'response', {}).get('Error', {}).get('Message')


class ValidationError(PyDynoException):
    """
    Raised for malformed input, before any request is sent
    """
    msg = "Invalid input"


class EncodingError(PyDynoException):
    """
    Raised when a native value cannot be converted to the wire format
    """
    msg = "Unable to encode value"

    def __init__(self, msg: Optional[str] = None, cause: Optional[Exception] = None) -> None:
        super(EncodingError, self).__init__(msg, cause)
        self.attr_path: Optional[str] = None

    def __str__(self) -> str:
        if self.attr_path:
            return "{} (attribute '{}')".format(self.msg, self.attr_path)
        return self.msg

    def prepend_path(self, attr_name: str) -> None:
        self.attr_path = attr_name if self.attr_path is None else attr_name + '.' + self.attr_path


class DecodingError(PyDynoException):
    """
    Raised when wire-formatted data cannot be converted to native values
    """
    msg = "Unable to decode value"


class RequestError(PyDynoException):
    """
    A single call to DynamoDB failed after botocore's own retries
    """
    msg = "Error performing request"

    @property
    def retryable(self) -> bool:
        """
        True if the failure is transient: a transport error, a server error or throttling.
        """
        if isinstance(self.cause, botocore.exceptions.BotoCoreError):
            return True
        response = getattr(self.cause, 'response', {})
        status_code = response.get('ResponseMetadata', {}).get('HTTPStatusCode') or 0
        return status_code >= 500 or self.cause_response_code in RATE_LIMITING_ERROR_CODES


class GetError(RequestError):
    """
    Raised when an item fails to be retrieved
    """
    msg = "Error getting item"


class PutError(RequestError):
    """
    Raised when an item fails to be created
    """
    msg = "Error putting item"


class UpdateError(RequestError):
    """
    Raised when an item fails to be updated
    """
    msg = "Error updating item"


class DeleteError(RequestError):
    """
    Raised when an error occurs deleting an item
    """
    msg = "Error deleting item"


class QueryError(RequestError):
    """
    Raised when queries fail
    """
    msg = "Error performing query"


class ScanError(RequestError):
    """
    Raised when a scan operation fails
    """
    msg = "Error performing scan"


class BatchGetError(RequestError):
    """
    Raised when a BatchGetItem request fails
    """
    msg = "Error performing batch get"


class BatchWriteError(RequestError):
    """
    Raised when a BatchWriteItem request fails
    """
    msg = "Error performing batch write"


class TableError(RequestError):
    """
    An error involving a dynamodb table operation
    """
    msg = "Error performing a table operation"


class TableDoesNotExist(TableError):
    """
    Raised when an operation is attempted on a table that doesn't exist
    """
    def __init__(self, table_name: str, cause: Optional[Exception] = None) -> None:
        self.table_name = table_name
        msg = "Table does not exist: `{}`".format(table_name)
        super(TableDoesNotExist, self).__init__(msg, cause)


class LifecycleTimeout(TableError):
    """
    Raised when a table does not reach its target state within the allowed time
    """
    msg = "Timed out waiting for table"


class MultiTableError(PyDynoException):
    """
    Raised when either side of a read/write table operation fails.

    Both outcomes are kept: each is the operation's result or the exception it raised.
    """
    msg = "Error performing a read/write table operation"

    def __init__(self, read: Any, write: Any) -> None:
        self.read = read
        self.write = write
        failed = [side for side, outcome in (('read', read), ('write', write)) if isinstance(outcome, Exception)]
        super(MultiTableError, self).__init__("Table operation failed on the {} store".format(' and '.join(failed)))


class PartialBatchFailure(PyDynoException):
    """
    Raised on request when a batch left keys or items unprocessed.

    :attr unprocessed: a RequestSet retrying exactly the unprocessed keys or items
    """
    msg = "Batch completed with unprocessed keys or items"

    def __init__(self, unprocessed: Any) -> None:
        self.unprocessed = unprocessed
        super(PartialBatchFailure, self).__init__(
            "Batch completed with {} unprocessed request(s)".format(len(unprocessed))
        )
