from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Sequence
from typing import TypeVar

from pydyno.constants import CAPACITY_UNITS
from pydyno.constants import GLOBAL_SECONDARY_INDEXES
from pydyno.constants import LOCAL_SECONDARY_INDEXES
from pydyno.constants import TABLE_NAME

_T = TypeVar('_T')


def chunked(items: Sequence[_T], size: int) -> Iterator[List[_T]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def add_consumed_capacity(totals: Dict[str, float], consumed_capacity: Optional[Any]) -> None:
    """
    Adds a ConsumedCapacity response field to running totals keyed by table and index name.

    Batch operations report a list with one entry per table; queries, scans and single-item
    operations report a single entry. A table's total includes its indexes' units.
    """
    if not consumed_capacity:
        return
    if isinstance(consumed_capacity, list):
        for capacity in consumed_capacity:
            add_consumed_capacity(totals, capacity)
        return
    table_name = consumed_capacity.get(TABLE_NAME)
    if table_name is not None:
        totals[table_name] = totals.get(table_name, 0) + consumed_capacity.get(CAPACITY_UNITS, 0)
    for indexes_key in (GLOBAL_SECONDARY_INDEXES, LOCAL_SECONDARY_INDEXES):
        for index_name, capacity in consumed_capacity.get(indexes_key, {}).items():
            totals[index_name] = totals.get(index_name, 0) + capacity.get(CAPACITY_UNITS, 0)
