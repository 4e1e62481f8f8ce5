import json

from typer.testing import CliRunner

import playlist_dl.cli.app as cli_app
from playlist_dl import __version__

runner = CliRunner()


def _use_config_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(cli_app, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cli_app, "CONFIG_FILE", tmp_path / "config.ini")


def test_version() -> None:
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_then_validate(tmp_path, monkeypatch) -> None:
    _use_config_dir(monkeypatch, tmp_path)

    result = runner.invoke(
        cli_app.app, ["init", "--force", "-o", str(tmp_path / "music"), "-w", "3"]
    )
    assert result.exit_code == 0
    assert (tmp_path / "config.ini").is_file()

    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 0


def test_init_rejects_invalid_settings(tmp_path, monkeypatch) -> None:
    _use_config_dir(monkeypatch, tmp_path)
    result = runner.invoke(cli_app.app, ["init", "--force", "-w", "0"])
    assert result.exit_code == 1
    assert not (tmp_path / "config.ini").exists()


def test_ledger_and_clear_ledger(tmp_path, monkeypatch) -> None:
    _use_config_dir(monkeypatch, tmp_path)
    music = tmp_path / "music"
    music.mkdir()
    (music / "downloaded-tracks.json").write_text(json.dumps(["a", "b"]))

    result = runner.invoke(cli_app.app, ["ledger", str(music)])
    assert result.exit_code == 0

    result = runner.invoke(cli_app.app, ["clear-ledger", str(music), "--force"])
    assert result.exit_code == 0
    assert json.loads((music / "downloaded-tracks.json").read_text()) == []


def test_download_rejects_non_playlist_reference() -> None:
    result = runner.invoke(cli_app.app, ["download", "not a playlist"])
    assert result.exit_code == 1
