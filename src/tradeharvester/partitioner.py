from collections import defaultdict
from collections.abc import Iterable

from tradeharvester.models import TradeRecord
from tradeharvester.utils.time import ms_to_utc_date


def group_by_utc_date(page: Iterable[TradeRecord]) -> dict[str, list[list[str]]]:
    """Groups a page of trades into CSV rows keyed by UTC calendar day.

    Rows keep their page order inside each day. Callers must not rely on the
    order of the days themselves; every day is written to its own file.

    Args:
        page: The decoded trades of one fetch.

    Returns:
        A mapping of 'YYYY-MM-DD' to the rows of the trades on that day.
    """
    grouped: defaultdict[str, list[list[str]]] = defaultdict(list)
    for record in page:
        grouped[ms_to_utc_date(record.timestamp_ms)].append(record.to_row())
    return dict(grouped)
