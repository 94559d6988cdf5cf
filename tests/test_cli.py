import pytest

from lycanstats.cli import _parse_args, main


def test_parse_args_defaults() -> None:
    args = _parse_args(["sync"])
    assert args.command == "sync"
    assert args.source == "main"
    assert not args.full
    assert _parse_args(["sync", "discord", "-f"]).full
    assert _parse_args(["titles", "discord"]).source == "discord"


def test_unknown_source_exits(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("STATS_LIST_URL", "https://bucket/StatsList.json")
    with pytest.raises(SystemExit, match="Unknown data source: nope"):
        main(["--base-dir", str(tmp_path), "sync", "nope"])


def test_sync_without_stats_list_url_exits(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("STATS_LIST_URL", raising=False)
    monkeypatch.setattr("lycanstats.cli.load_dotenv", lambda: False)
    with pytest.raises(SystemExit, match="STATS_LIST_URL"):
        main(["--base-dir", str(tmp_path), "sync"])


def test_titles_without_game_log_exits(tmp_path) -> None:
    with pytest.raises(SystemExit, match="Title generation failed"):
        main(["--base-dir", str(tmp_path), "titles"])
    assert not (tmp_path / "data").exists()
