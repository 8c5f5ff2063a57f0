# src/tradeharvester/__init__.py
"""TradeHarvester: incremental, rate-governed download of exchange trade history.

One asyncio task per trading pair walks the exchange's aggregated-trades
endpoint page by page, sharing a single per-minute request budget, and
appends every page to per-day CSV partitions.

Key sub-packages:
- `adapters`: Connectors for the upstream trade-history endpoints.
- `utils`: Shared utilities like the request budget and time helpers.
"""

import importlib.metadata

try:
    __version__: str = importlib.metadata.version("tradeharvester")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"
