from dataclasses import dataclass
from typing import Any, Final

from tradeharvester.utils.time import ms_to_datetime

# Header row of every partition file.
CSV_HEADER: Final[list[str]] = [
    "tradeId",
    "price",
    "quantity",
    "timestamp",
    "isBuyerMaker",
]


def _require_int(payload: dict[str, Any], key: str) -> int:
    value = payload[key]
    # bool is an int subclass; a flag in an id field is a malformed record.
    if isinstance(value, bool) or not isinstance(value, int):
        err_msg = f"Field '{key}' must be an integer, got {value!r}."
        raise ValueError(err_msg)
    return value


def _require_str(payload: dict[str, Any], key: str) -> str:
    value = payload[key]
    if not isinstance(value, str):
        err_msg = f"Field '{key}' must be a decimal string, got {value!r}."
        raise ValueError(err_msg)
    return value


def _require_bool(payload: dict[str, Any], key: str) -> bool:
    value = payload[key]
    if not isinstance(value, bool):
        err_msg = f"Field '{key}' must be a boolean, got {value!r}."
        raise ValueError(err_msg)
    return value


@dataclass(frozen=True, slots=True)
class TradeRecord:
    """One aggregated trade as returned by the trade-history endpoint.

    Prices and quantities are kept as the exchange's decimal strings so they
    are written out byte-for-byte as received.
    """

    trade_id: int
    price: str
    quantity: str
    first_id: int
    last_id: int
    timestamp_ms: int
    is_buyer_maker: bool
    is_best_match: bool

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TradeRecord":
        """Decodes one `{a, p, q, f, l, T, m, M}` object from the endpoint.

        Raises:
            ValueError: If the payload is not an object, a key is missing,
                a value has the wrong type, or the timestamp is out of range.
        """
        if not isinstance(payload, dict):
            err_msg = f"Trade payload must be an object, got {type(payload).__name__}."
            raise ValueError(err_msg)
        try:
            record = cls(
                trade_id=_require_int(payload, "a"),
                price=_require_str(payload, "p"),
                quantity=_require_str(payload, "q"),
                first_id=_require_int(payload, "f"),
                last_id=_require_int(payload, "l"),
                timestamp_ms=_require_int(payload, "T"),
                is_buyer_maker=_require_bool(payload, "m"),
                is_best_match=_require_bool(payload, "M"),
            )
        except KeyError as e:
            err_msg = f"Trade payload is missing field {e}."
            raise ValueError(err_msg) from e
        # Every stored trade must map to a calendar day.
        ms_to_datetime(record.timestamp_ms)
        return record

    def to_row(self) -> list[str]:
        """Converts the record to a CSV row matching `CSV_HEADER`."""
        return [
            str(self.trade_id),
            self.price,
            self.quantity,
            str(self.timestamp_ms),
            "true" if self.is_buyer_maker else "false",
        ]
