import csv
import io
from collections.abc import Sequence
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from tradeharvester.models import CSV_HEADER


def symbol_directory(output_directory: Path, symbol: str) -> Path:
    """Returns the directory holding every partition of one symbol."""
    return output_directory / symbol


def partition_path(output_directory: Path, symbol: str, date_str: str) -> Path:
    """Returns the file of one (symbol, UTC day) partition."""
    return symbol_directory(output_directory, symbol) / f"{date_str}.csv"


async def ensure_symbol_directory(output_directory: Path, symbol: str) -> Path:
    """Creates the symbol's partition directory if needed and returns it.

    Raises:
        OSError: If the directory cannot be created.
    """
    directory = symbol_directory(output_directory, symbol)
    await aiofiles.os.makedirs(directory, exist_ok=True)
    return directory


def _encode_rows(rows: Sequence[Sequence[str]], with_header: bool) -> str:
    """Builds the CSV text in memory so the file sees one write."""
    string_io = io.StringIO()
    writer = csv.writer(string_io, lineterminator="\n")
    if with_header:
        writer.writerow(CSV_HEADER)
    writer.writerows(rows)
    return string_io.getvalue()


class PartitionWriter:
    """Appends rows to per-day CSV partition files.

    Every call opens the file, writes, flushes and closes it again, so no
    handle outlives a batch. The header is written only when the file did not
    exist right before opening. Two writers racing on the same new path could
    both write a header; each partition belongs to a single worker, so that
    race does not occur here.

    Rows are appended as given. Nothing is deduplicated; uniqueness comes from
    the caller's strictly advancing cursor.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def append(self, path: Path, rows: Sequence[Sequence[str]]) -> int:
        """Appends `rows` to the partition at `path`, creating it if needed.

        Args:
            path: The partition file.
            rows: CSV rows matching `CSV_HEADER`.

        Returns:
            The number of data rows written.

        Raises:
            OSError: If the file cannot be opened or written.
            UnicodeEncodeError: If a value cannot be encoded.
        """
        is_new_file = not await aiofiles.os.path.exists(path)
        # A row that fails to encode leaves the file untouched.
        payload = _encode_rows(rows, with_header=is_new_file).encode(self.encoding)

        async with aiofiles.open(path, mode="ab") as handle:
            if is_new_file:
                logger.info(f"Creating new CSV file with header: {path}")
            await handle.write(payload)
            await handle.flush()

        return len(rows)
