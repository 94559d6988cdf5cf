import json
from datetime import timedelta

from lycanstats.cache import (
    CACHE_FILENAME,
    CACHE_VERSION,
    create_empty_cache,
    detect_new_matches,
    ensure_player_in_cache,
    load_cache,
    refresh_dataset,
    save_cache,
)

from helpers import START, build_match, raw_player


def _matches(count: int):
    return [
        build_match(f"g{i}", [raw_player("A", victorious=True), raw_player(f"B{i}")], start=START + timedelta(hours=i))
        for i in range(count)
    ]


def test_missing_cache_is_empty(tmp_path) -> None:
    cache = load_cache(tmp_path)
    assert cache["version"] == CACHE_VERSION
    assert cache["lastProcessedGameId"] is None
    assert cache["allGames"]["totalGames"] == 0
    assert cache["moddedGames"]["votingStats"] is None


def test_version_mismatch_resets_cache(tmp_path) -> None:
    stale = create_empty_cache()
    stale["version"] = "1.0.0"
    stale["allGames"]["totalGames"] = 99
    (tmp_path / CACHE_FILENAME).write_text(json.dumps(stale), encoding="utf-8")

    assert load_cache(tmp_path)["allGames"]["totalGames"] == 0


def test_corrupt_cache_resets(tmp_path) -> None:
    (tmp_path / CACHE_FILENAME).write_text("{not json", encoding="utf-8")
    assert load_cache(tmp_path)["allGames"]["totalGames"] == 0


def test_save_and_reload(tmp_path) -> None:
    cache = create_empty_cache()
    cache["moddedGames"]["totalGames"] = 12
    save_cache(tmp_path, cache)

    assert load_cache(tmp_path)["moddedGames"]["totalGames"] == 12
    assert [p.name for p in tmp_path.iterdir()] == [CACHE_FILENAME]


def test_detect_new_matches_returns_appended_tail() -> None:
    matches = _matches(5)
    shuffled = [matches[3], matches[0], matches[4], matches[1], matches[2]]

    new = detect_new_matches(shuffled, {"totalGames": 3})
    assert [m.id for m in new] == ["g3", "g4"]
    assert detect_new_matches(shuffled, {"totalGames": 5}) == []
    assert detect_new_matches(shuffled, {"totalGames": 7}) == []
    assert len(detect_new_matches(shuffled, {})) == 5


def test_ensure_player_in_cache_tracks_latest_name() -> None:
    dataset = create_empty_cache()["allGames"]
    ensure_player_in_cache(dataset, "p1", "Old")
    dataset["playerStats"]["p1"]["gamesPlayed"] = 4
    ensure_player_in_cache(dataset, "p1", "New")

    assert dataset["playerStats"]["p1"]["gamesPlayed"] == 4
    assert dataset["playerStats"]["p1"]["playerName"] == "New"
    assert dataset["seriesState"]["p1"]["playerName"] == "New"


def test_refresh_dataset_updates_affected_players() -> None:
    dataset = create_empty_cache()["allGames"]
    matches = _matches(3)
    assert refresh_dataset(dataset, matches[:2])
    assert dataset["totalGames"] == 2
    assert dataset["playerStats"]["id-A"]["wins"] == 2
    assert dataset["mapStats"] == [
        {"mapName": "Château", "totalGames": 2, "wins": {"villageois": 2, "loup": 0, "solo": 0}}
    ]
    camps = {entry["playerId"]: entry["camps"] for entry in dataset["campStats"]}
    assert camps["id-A"]["villageois"] == {"played": 2, "won": 2, "winRate": 100}
    assert dataset["deathStats"]["totalDeaths"] == 0
    assert dataset["votingStats"] == {}

    assert refresh_dataset(dataset, matches)
    assert dataset["totalGames"] == 3
    assert dataset["playerStats"]["id-A"]["gamesPlayed"] == 3
    assert dataset["seriesState"]["id-A"]["longestWinSeries"] == 3
    assert "id-B2" in dataset["playerStats"]

    assert not refresh_dataset(dataset, matches)


def test_refresh_dataset_fills_death_hunter_and_voting_summaries() -> None:
    players = [
        raw_player("H", role="Chasseur", victorious=True, Votes=[{"Day": 1, "Target": "W"}]),
        raw_player("W", role="Loup", DeathType="BULLET", DeathTiming="J2", KillerName="H"),
    ]
    dataset = create_empty_cache()["moddedGames"]
    assert refresh_dataset(dataset, [build_match("g0", players)])

    deaths = dataset["deathStats"]
    assert deaths["totalDeaths"] == 1
    assert deaths["deathsByType"] == {"BULLET": 1}
    by_player = {p["playerId"]: p for p in deaths["players"]}
    assert by_player["id-H"]["kills"] == 1
    assert by_player["id-W"]["deaths"] == 1

    hunter = dataset["hunterStats"][0]
    assert hunter["playerName"] == "H"
    assert (hunter["gamesPlayed"], hunter["kills"], hunter["goodKills"]) == (1, 1, 1)
    assert hunter["accuracy"] == 100

    assert dataset["votingStats"]["id-H"]["votes"] == 1
    assert dataset["votingStats"]["id-H"]["accuracy"] == 100
