from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture

from tradeharvester import __main__ as cli
from tradeharvester.config import Settings
from tradeharvester.orchestrator import HarvestReport


def test_overrides_replace_configured_values() -> None:
    args = cli.build_parser().parse_args(
        ["--symbols", "btcusdt", "ETHBTC", "--output-dir", "out", "--log-level", "DEBUG"]
    )

    settings = cli.apply_overrides(Settings(), args)

    assert settings.harvest.symbols == ["BTCUSDT", "ETHBTC"]
    assert settings.persistence.output_directory == "out"
    assert settings.general.log_level_console == "DEBUG"


def test_no_flags_keep_configuration() -> None:
    args = cli.build_parser().parse_args([])
    settings = cli.apply_overrides(Settings(), args)
    assert settings == Settings()


def test_main_runs_harvest_and_exits_zero(
    tmp_path: Path, mocker: MockerFixture
) -> None:
    mocker.patch.object(cli, "setup_logging")
    run = mocker.patch.object(
        cli, "run_from_settings", new=AsyncMock(return_value=HarvestReport())
    )

    code = cli.main(["--config", str(tmp_path / "none.toml"), "--symbols", "ETHUSDT"])

    assert code == 0
    run.assert_awaited_once()
    settings = run.await_args.args[0]
    assert settings.harvest.symbols == ["ETHUSDT"]


def test_main_returns_130_when_interrupted(
    tmp_path: Path, mocker: MockerFixture
) -> None:
    mocker.patch.object(cli, "setup_logging")
    mocker.patch.object(
        cli, "run_from_settings", new=AsyncMock(side_effect=KeyboardInterrupt)
    )

    assert cli.main(["--config", str(tmp_path / "none.toml")]) == cli.EXIT_INTERRUPTED


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.build_parser().parse_args(["--version"])
    assert exc_info.value.code == 0
    assert capsys.readouterr().out.strip()
