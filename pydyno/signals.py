"""
Signals sent around every call to DynamoDB.

Receivers are called with ``operation_name``, ``table_name`` and ``req_uuid``.
"""
from blinker import Namespace

# The namespace for pydyno signals. If you are not pydyno code, do
# not put signals in here. Create your own namespace instead.
_signals = Namespace()

pre_dynamodb_send = _signals.signal('pre_dynamodb_send')
post_dynamodb_send = _signals.signal('post_dynamodb_send')
