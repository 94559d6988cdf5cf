from datetime import datetime, timezone

from lycanstats.models import coalesce, match_from_json, parse_datetime, parse_timing

from helpers import raw_game, raw_player


def test_coalesce_skips_only_none() -> None:
    assert coalesce(None, 0, 5) == 0
    assert coalesce("", "fallback") == ""
    assert coalesce(None, None, default="x") == "x"
    assert coalesce() is None


def test_parse_timing() -> None:
    assert parse_timing("N5") == ("N", 5)
    assert parse_timing("m12") == ("M", 12)
    assert parse_timing("") is None
    assert parse_timing("J") is None
    assert parse_timing("Nx") is None


def test_parse_datetime_defaults_to_utc() -> None:
    assert parse_datetime("2025-01-01T20:00:00Z") == datetime(2025, 1, 1, 20, tzinfo=timezone.utc)
    assert parse_datetime("2025-01-01T20:00:00") == datetime(2025, 1, 1, 20, tzinfo=timezone.utc)
    assert parse_datetime("not a date") is None
    assert parse_datetime(None) is None


def test_match_from_json_player_fields() -> None:
    players = [
        raw_player(
            "Alice",
            role="Villageois",
            MainRoleChanges=[{"NewMainRole": "Loup", "RoleChangeDateIrl": "2025-01-01T20:10:00Z"}],
            DeathDateIrl="2025-01-01T20:10:00Z",
            DeathType="WOLF",
            Votes=[{"Day": 1, "Target": "Passé", "Date": "2025-01-01T20:05:00Z"}],
        ),
        raw_player("Bob", ID=None),
    ]
    match = match_from_json(raw_game("Ponce-1", players, LegacyData={"x": 1}))

    alice, bob = match.players
    assert alice.final_role == "Loup"
    assert alice.votes[0].is_skip
    assert alice.actions is None
    assert match.alive_seconds(alice) == 600
    assert match.alive_seconds(bob) == 1800
    # Missing ID falls back to the username
    assert bob.player_id == "Bob"
    assert match.legacy_data == {"x": 1}
    assert match.raw["Id"] == "Ponce-1"
    assert match.find_player("Bob") is bob
    assert match.find_player("Nobody") is None


def test_parse_datetime_accepts_any_fraction_length() -> None:
    expected = datetime(2025, 1, 1, 20, 0, 0, 123456, tzinfo=timezone.utc)
    assert parse_datetime("2025-01-01T20:00:00.1234567Z") == expected
    assert parse_datetime("2025-01-01T20:00:00.1234567+00:00") == expected
    assert parse_datetime("2025-01-01T20:00:00.5Z") == datetime(
        2025, 1, 1, 20, 0, 0, 500000, tzinfo=timezone.utc
    )
    assert parse_datetime("2025-01-01T20:00:00.12") == datetime(
        2025, 1, 1, 20, 0, 0, 120000, tzinfo=timezone.utc
    )
