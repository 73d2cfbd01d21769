"""
Conversion between native items and DynamoDB's typed wire format.

A native item maps attribute names to ``str``, numbers (``int`` or ``Decimal``),
``bytes``, ``bool``, ``None``, lists, mappings or sets. On the wire every value is a
one-key mapping from a type tag to its encoded value::

    >>> serialize({'id': 'my-record', 'version': 2, 'data': b'Hello World!'})
    '{"id":{"S":"my-record"},"version":{"N":"2"},"data":{"B":"SGVsbG8gV29ybGQh"}}'

Lists are never turned into sets or back: build sets with :func:`create_set`.
Numbers come back as ``int`` when integral and ``Decimal`` otherwise, so floats are
rejected: pass ``Decimal(str(value))`` to store one.
"""
import binascii
import json
import re
from base64 import b64decode
from base64 import b64encode
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Union

from pydyno.constants import (
    ATTRIBUTES, BINARY, BINARY_SET, BOOLEAN, DELETE_REQUEST, EXCLUSIVE_START_KEY,
    EXPRESSION_ATTRIBUTE_VALUES, ITEM, ITEMS, KEY, KEYS, LAST_EVALUATED_KEY, LIST, MAP, NULL,
    NUMBER, NUMBER_SET, PUT_REQUEST, REQUEST_ITEMS, RESPONSES, SET_TYPES, STRING, STRING_SET,
    UNPROCESSED_ITEMS, UNPROCESSED_KEYS,
)
from pydyno.exceptions import DecodingError
from pydyno.exceptions import EncodingError

# Decimal() on its own also accepts whitespace, underscores and NaN
NUMBER_PATTERN = re.compile(r'^-?\d+(\.\d+)?([eE][+-]?\d+)?\Z')


class DynamoSet(frozenset):
    """
    A string, number or binary set attribute value.

    :param values: the set's elements; all strings, all numbers or all binaries
    :param set_type: one of ``SS``, ``NS`` or ``BS``. Inferred from the elements when omitted,
        which is only possible for a non-empty set.
    """
    set_type: str

    def __new__(cls, values: Iterable[Any] = (), set_type: Optional[str] = None) -> 'DynamoSet':
        values = [bytes(value) if isinstance(value, bytearray) else value for value in values]
        inferred = _infer_set_type(values)
        if set_type is None:
            if inferred is None:
                raise EncodingError("Cannot infer the type of an empty set, pass set_type")
            set_type = inferred
        elif set_type not in SET_TYPES:
            raise EncodingError("Unknown set type: {}".format(set_type))
        elif inferred is not None and inferred != set_type:
            raise EncodingError("Set of {} elements cannot be stored as {}".format(inferred, set_type))
        instance = super(DynamoSet, cls).__new__(cls, values)
        instance.set_type = set_type
        return instance

    def __reduce__(self):
        return self.__class__, (list(self), self.set_type)

    def __repr__(self) -> str:
        return "DynamoSet({!r}, set_type={!r})".format(list(self), self.set_type)


def create_set(values: Iterable[Any], set_type: Optional[str] = None) -> DynamoSet:
    """
    Creates a DynamoDB set. Lists are written as ``L`` attributes; wrap them
    with this function to write a ``SS``, ``NS`` or ``BS`` attribute instead.
    """
    return DynamoSet(values, set_type)


def _infer_set_type(values: List[Any]) -> Optional[str]:
    set_types = set()
    for value in values:
        if isinstance(value, str):
            set_types.add(STRING_SET)
        elif isinstance(value, bytes):
            set_types.add(BINARY_SET)
        elif isinstance(value, (int, Decimal)) and not isinstance(value, bool):
            set_types.add(NUMBER_SET)
        else:
            raise EncodingError("Unsupported set element type: {}".format(type(value).__name__))
    if len(set_types) > 1:
        raise EncodingError("Set elements must be all strings, all numbers or all binaries")
    return set_types.pop() if set_types else None


def _encode_number(value: Any) -> str:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise EncodingError("Numbers must be finite, got {}".format(value))
        return str(value)
    return str(int(value))


def serialize_value(value: Any) -> Dict[str, Any]:
    """
    Converts one native value to an attribute value. Binaries are left as bytes.
    """
    if value is None:
        return {NULL: True}
    if value is True or value is False:
        return {BOOLEAN: value}
    if isinstance(value, str):
        return {STRING: value}
    if isinstance(value, float):
        raise EncodingError("Floats are not supported, use Decimal instead of {!r}".format(value))
    if isinstance(value, (int, Decimal)):
        return {NUMBER: _encode_number(value)}
    if isinstance(value, (bytes, bytearray)):
        return {BINARY: bytes(value)}
    if isinstance(value, (set, frozenset)):
        return _serialize_set(value if isinstance(value, DynamoSet) else DynamoSet(value))
    if isinstance(value, Mapping):
        return {MAP: to_attribute_map(value)}
    if isinstance(value, (list, tuple)):
        return {LIST: [serialize_value(v) for v in value]}
    raise EncodingError("Unsupported attribute value type: {}".format(type(value).__name__))


def _serialize_set(value: DynamoSet) -> Dict[str, Any]:
    if not value:
        raise EncodingError("Empty sets cannot be stored")
    # sorted for a stable wire representation
    if value.set_type == NUMBER_SET:
        return {NUMBER_SET: [_encode_number(v) for v in sorted(value)]}
    return {value.set_type: sorted(value)}


def to_attribute_map(item: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Converts a native item (or key) to a map of attribute values
    """
    if not isinstance(item, Mapping):
        raise EncodingError("Items must be mappings, not {}".format(type(item).__name__))
    attribute_map = {}
    for name, value in item.items():
        if not isinstance(name, str):
            raise EncodingError("Attribute names must be strings, not {}".format(type(name).__name__))
        try:
            attribute_map[name] = serialize_value(value)
        except EncodingError as e:
            e.prepend_path(name)
            raise
    return attribute_map


def _decode_number(value: Any) -> Any:
    if not isinstance(value, str):
        raise DecodingError("Numbers must be encoded as strings, got {!r}".format(value))
    if not NUMBER_PATTERN.match(value):
        raise DecodingError("Invalid number: {!r}".format(value))
    number = Decimal(value)
    if '.' not in value and 'e' not in value.lower():
        return int(number)
    return number


def _decode_binary(value: Any, binary_encoded: bool) -> bytes:
    if binary_encoded:
        if not isinstance(value, str):
            raise DecodingError("Binaries must be base64 strings, got {!r}".format(value))
        try:
            return b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodingError("Invalid base64 binary: {!r}".format(value), e)
    if not isinstance(value, (bytes, bytearray)):
        raise DecodingError("Binaries must be bytes, got {!r}".format(value))
    return bytes(value)


def _expect(value: Any, kind: type, attr_type: str) -> Any:
    if not isinstance(value, kind):
        raise DecodingError("Invalid {} attribute value: {!r}".format(attr_type, value))
    return value


def deserialize_value(attribute_value: Mapping[str, Any], binary_encoded: bool = False) -> Any:
    """
    Converts one attribute value to a native value

    :param binary_encoded: True if binaries are base64 strings rather than bytes
    """
    if not isinstance(attribute_value, Mapping) or len(attribute_value) != 1:
        raise DecodingError("Attribute values must be single-key mappings, got {!r}".format(attribute_value))
    attr_type, value = next(iter(attribute_value.items()))
    if attr_type == STRING:
        return _expect(value, str, attr_type)
    if attr_type == NUMBER:
        return _decode_number(value)
    if attr_type == BINARY:
        return _decode_binary(value, binary_encoded)
    if attr_type == BOOLEAN:
        return _expect(value, bool, attr_type)
    if attr_type == NULL:
        if value is not True:
            raise DecodingError("Invalid NULL attribute value: {!r}".format(value))
        return None
    if attr_type == LIST:
        return [deserialize_value(v, binary_encoded) for v in _expect(value, list, attr_type)]
    if attr_type == MAP:
        return from_attribute_map(value, binary_encoded)
    if attr_type == STRING_SET:
        return DynamoSet((_expect(v, str, attr_type) for v in _expect(value, list, attr_type)), STRING_SET)
    if attr_type == NUMBER_SET:
        return DynamoSet((_decode_number(v) for v in _expect(value, list, attr_type)), NUMBER_SET)
    if attr_type == BINARY_SET:
        return DynamoSet((_decode_binary(v, binary_encoded) for v in _expect(value, list, attr_type)), BINARY_SET)
    raise DecodingError("Unknown attribute type: {}".format(attr_type))


def from_attribute_map(attribute_map: Mapping[str, Any], binary_encoded: bool = False) -> Dict[str, Any]:
    """
    Converts a map of attribute values to a native item
    """
    if not isinstance(attribute_map, Mapping):
        raise DecodingError("Items must be mappings, got {!r}".format(attribute_map))
    return {name: deserialize_value(value, binary_encoded) for name, value in attribute_map.items()}


def _b64encode(b: bytes) -> str:
    return b64encode(b).decode()


def bin_encode_attr(attr: Dict[str, Any]) -> None:
    if BINARY in attr:
        attr[BINARY] = _b64encode(attr[BINARY])
    elif BINARY_SET in attr:
        attr[BINARY_SET] = [_b64encode(v) for v in attr[BINARY_SET]]
    elif MAP in attr:
        for sub_attr in attr[MAP].values():
            bin_encode_attr(sub_attr)
    elif LIST in attr:
        for sub_attr in attr[LIST]:
            bin_encode_attr(sub_attr)


def serialize(item: Mapping[str, Any]) -> str:
    """
    Converts a native item into the wire-formatted string sent to DynamoDB
    """
    attribute_map = to_attribute_map(item)
    for attr in attribute_map.values():
        bin_encode_attr(attr)
    return json.dumps(attribute_map, separators=(',', ':'))


def deserialize(data: Any) -> Dict[str, Any]:
    """
    Converts a wire-formatted string into a native item
    """
    try:
        attribute_map = json.loads(data)
    except (TypeError, ValueError) as e:
        raise DecodingError("Malformed item: {}".format(e), e)
    return from_attribute_map(attribute_map, binary_encoded=True)


@dataclass(frozen=True)
class Put:
    """
    Writes a whole item, replacing any item with the same key
    """
    item: Mapping[str, Any]


@dataclass(frozen=True)
class Delete:
    """
    Deletes the item with the given key
    """
    key: Mapping[str, Any]


WriteOperation = Union[Put, Delete]


def write_request(write_op: Any) -> Any:
    """
    Returns a Put or Delete in DynamoDB's PutRequest / DeleteRequest form, anything else unchanged
    """
    if isinstance(write_op, Put):
        return {PUT_REQUEST: {ITEM: write_op.item}}
    if isinstance(write_op, Delete):
        return {DELETE_REQUEST: {KEY: write_op.key}}
    return write_op


def _map_write_request(request: Any, convert: Callable) -> Dict[str, Any]:
    request = write_request(request)
    if not isinstance(request, Mapping):
        raise ValueError("Unknown write request: {!r}".format(request))
    if PUT_REQUEST in request:
        return {PUT_REQUEST: {ITEM: convert(request[PUT_REQUEST][ITEM])}}
    if DELETE_REQUEST in request:
        return {DELETE_REQUEST: {KEY: convert(request[DELETE_REQUEST][KEY])}}
    raise ValueError("Unknown write request: {!r}".format(request))


def _map_request_items(request_items: Mapping[str, Any], convert: Callable) -> Dict[str, Any]:
    mapped: Dict[str, Any] = {}
    for table_name, requests in request_items.items():
        if isinstance(requests, Mapping):
            # BatchGetItem KeysAndAttributes
            mapped[table_name] = dict(requests, **{KEYS: [convert(key) for key in requests.get(KEYS, [])]})
        else:
            mapped[table_name] = [_map_write_request(request, convert) for request in requests]
    return mapped


def encode_request(params: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Returns a copy of request parameters with native items, keys and values converted to attribute values
    """
    encoded = dict(params)
    for key in (ITEM, KEY, EXCLUSIVE_START_KEY, EXPRESSION_ATTRIBUTE_VALUES):
        if encoded.get(key) is not None:
            encoded[key] = to_attribute_map(encoded[key])
    if encoded.get(REQUEST_ITEMS) is not None:
        try:
            encoded[REQUEST_ITEMS] = _map_request_items(encoded[REQUEST_ITEMS], to_attribute_map)
        except (KeyError, TypeError, ValueError) as e:
            raise EncodingError("Malformed RequestItems: {}".format(e), e)
    return encoded


def decode_response(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Returns a copy of a DynamoDB response with attribute values converted to native items
    """
    decoded = dict(data)
    for key in (ITEM, ATTRIBUTES, LAST_EVALUATED_KEY):
        if decoded.get(key) is not None:
            decoded[key] = from_attribute_map(decoded[key])
    if decoded.get(ITEMS) is not None:
        decoded[ITEMS] = [from_attribute_map(item) for item in decoded[ITEMS]]
    if decoded.get(RESPONSES) is not None:
        decoded[RESPONSES] = {
            table_name: [from_attribute_map(item) for item in items]
            for table_name, items in decoded[RESPONSES].items()
        }
    try:
        for key in (UNPROCESSED_KEYS, UNPROCESSED_ITEMS):
            if decoded.get(key) is not None:
                decoded[key] = _map_request_items(decoded[key], from_attribute_map)
    except (KeyError, TypeError, ValueError) as e:
        raise DecodingError("Malformed unprocessed requests: {}".format(e), e)
    return decoded
