from pathlib import Path

import pytest

from tradeharvester.persistence import (
    PartitionWriter,
    ensure_symbol_directory,
    partition_path,
)

HEADER_LINE = "tradeId,price,quantity,timestamp,isBuyerMaker"


def test_partition_path_layout(tmp_path: Path) -> None:
    assert partition_path(tmp_path, "ETHUSDT", "2023-11-14") == (
        tmp_path / "ETHUSDT" / "2023-11-14.csv"
    )


@pytest.mark.asyncio
async def test_ensure_symbol_directory_is_idempotent(tmp_path: Path) -> None:
    first = await ensure_symbol_directory(tmp_path, "ETHBTC")
    second = await ensure_symbol_directory(tmp_path, "ETHBTC")
    assert first == second == tmp_path / "ETHBTC"
    assert first.is_dir()


@pytest.mark.asyncio
async def test_ensure_symbol_directory_surfaces_os_error(tmp_path: Path) -> None:
    (tmp_path / "ETHBTC").write_text("not a directory")
    with pytest.raises(OSError):
        await ensure_symbol_directory(tmp_path, "ETHBTC")


@pytest.mark.asyncio
async def test_fresh_file_gets_header_then_rows(tmp_path: Path) -> None:
    writer = PartitionWriter()
    path = tmp_path / "2023-11-14.csv"
    rows = [
        ["1", "100.5", "0.25", "1700000000000", "false"],
        ["2", "101.0", "1.00", "1700003600000", "true"],
    ]

    written = await writer.append(path, rows)

    assert written == 2
    assert path.read_text(encoding="utf-8").splitlines() == [
        HEADER_LINE,
        "1,100.5,0.25,1700000000000,false",
        "2,101.0,1.00,1700003600000,true",
    ]


@pytest.mark.asyncio
async def test_second_append_does_not_repeat_header(tmp_path: Path) -> None:
    """Tests that rows are appended and the header is only written once."""
    writer = PartitionWriter()
    path = tmp_path / "2023-11-14.csv"

    await writer.append(path, [["1", "1", "1", "1700000000000", "true"]])
    await writer.append(
        path,
        [
            ["2", "2", "2", "1700000000001", "false"],
            ["3", "3", "3", "1700000000002", "false"],
        ],
    )

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines.count(HEADER_LINE) == 1
    assert lines[0] == HEADER_LINE
    assert [line.split(",")[0] for line in lines[1:]] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_existing_file_is_never_rewritten(tmp_path: Path) -> None:
    path = tmp_path / "2023-11-14.csv"
    path.write_text("pre-existing\n", encoding="utf-8")

    await PartitionWriter().append(path, [["9", "9", "9", "1700000000000", "true"]])

    assert path.read_text(encoding="utf-8") == (
        "pre-existing\n9,9,9,1700000000000,true\n"
    )


@pytest.mark.asyncio
async def test_values_with_delimiters_are_quoted(tmp_path: Path) -> None:
    path = tmp_path / "quoted.csv"

    await PartitionWriter().append(path, [["1", "1,5", 'a"b', "0", "true"]])

    data_line = path.read_text(encoding="utf-8").splitlines()[1]
    assert data_line == '1,"1,5","a""b",0,true'


@pytest.mark.asyncio
async def test_unencodable_row_leaves_no_file(tmp_path: Path) -> None:
    path = tmp_path / "ascii.csv"
    writer = PartitionWriter(encoding="ascii")

    with pytest.raises(UnicodeEncodeError):
        await writer.append(path, [["1", "€", "1", "0", "true"]])

    assert not path.exists()


@pytest.mark.asyncio
async def test_missing_directory_surfaces_os_error(tmp_path: Path) -> None:
    path = tmp_path / "no-such-dir" / "2023-11-14.csv"
    with pytest.raises(OSError):
        await PartitionWriter().append(path, [["1", "1", "1", "0", "true"]])
