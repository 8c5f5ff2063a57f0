# src/tradeharvester/adapters/__init__.py
"""This package contains the upstream trade-history sources.

Each source is responsible for turning one `(symbol, from_id)` cursor into
one page of decoded `TradeRecord`s, mapping every transport, status and
decoding failure onto `FetchError`.

All sources inherit from the `TradeSource` abstract base class defined
in `tradeharvester.adapters.base`.
"""
