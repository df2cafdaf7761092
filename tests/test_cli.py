#!/usr/bin/env python3

import argparse
import json
import logging
from unittest.mock import patch

import pytest

from qqm.cli import build_parser, main, setup_logging
from qqm.content_fetcher import ContentFetcher
from qqm.errors import AuthError, NetworkError, TrackUnavailableError
from qqm.models import Album, Artist, SearchResult, SearchType, Track
from qqm.player import MpvPlayer, PlayerStatus


def make_track(mid):
    return Track(
        id=mid,
        name=f"Song {mid}",
        artists=(Artist("s1", "Singer"),),
        album=Album("a1", "Album"),
        duration_ms=180000,
        uri=f"qqmusic:track:{mid}",
    )


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("QQM_CONFIG_DIR", str(tmp_path))
    yield tmp_path
    logging.getLogger().handlers.clear()


def run(capsys, *argv):
    code = main(["--json", *argv])
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert "qqm 0.1.0" in capsys.readouterr().out


def test_search_outputs_json(capsys):
    result = SearchResult(total=1, offset=0, limit=5, tracks=[make_track("m1")])
    with patch.object(ContentFetcher, "search", return_value=result) as mock_search:
        code, envelope = run(capsys, "search", "track", "晴天", "-l", "5")

    assert code == 0
    mock_search.assert_called_once_with("晴天", SearchType.TRACK, limit=5, offset=0)
    assert envelope["success"] is True
    assert envelope["data"]["tracks"][0]["id"] == "m1"


def test_track_unavailable_exit_code(capsys):
    error = TrackUnavailableError("Track unavailable (no copyright or VIP required)")
    with patch.object(ContentFetcher, "get_track_url", side_effect=error):
        code, envelope = run(capsys, "track", "url", "m1", "-q", "flac")

    assert code == 3
    assert envelope["error"]["code"] == "TRACK_UNAVAILABLE"


def test_auth_error_exit_code(capsys):
    error = AuthError("Authentication failed, please re-login")
    with patch.object(ContentFetcher, "get_user_playlists", side_effect=error):
        code, envelope = run(capsys, "playlist", "list")

    assert code == 2
    assert envelope["error"]["message"] == "Authentication failed, please re-login"


def test_network_error_exit_code(capsys):
    with patch.object(
        ContentFetcher, "get_recent_tracks", side_effect=NetworkError("Request timed out")
    ):
        code, _ = run(capsys, "library", "recent")
    assert code == 3


def test_auth_check_without_session(capsys):
    code, envelope = run(capsys, "auth", "check")

    assert code == 0
    assert envelope["data"]["valid"] is False
    assert envelope["data"]["profile"] == "default"


def test_auth_profiles(capsys, config_dir):
    for name in ("work", "default"):
        session = config_dir / "profiles" / name / "session.json"
        session.parent.mkdir(parents=True)
        session.write_text('{"qm_keyst": "k"}', encoding="utf-8")

    code, envelope = run(capsys, "--profile", "work", "auth", "profiles")

    assert code == 0
    assert envelope["data"] == {"profiles": ["default", "work"], "active": "work"}


def test_liked_limits_detail_lookups(capsys):
    ids = ["a", "b", "c", "d"]
    with patch.object(ContentFetcher, "get_liked_track_ids", return_value=ids), \
            patch.object(
                ContentFetcher,
                "get_track_details",
                return_value=[make_track("a"), make_track("b")],
            ) as mock_details:
        code, envelope = run(capsys, "library", "liked", "-l", "2")

    assert code == 0
    mock_details.assert_called_once_with(["a", "b"])
    assert envelope["data"]["total"] == 4
    assert envelope["data"]["showing"] == 2


def test_player_status_when_idle(capsys):
    with patch.object(MpvPlayer, "get_status", return_value=PlayerStatus(playing=False)):
        code, envelope = run(capsys, "player", "status")

    assert code == 0
    assert envelope["data"]["playing"] is False


def test_player_pause_requires_running_player(capsys):
    with patch.object(MpvPlayer, "is_running", return_value=False):
        code, envelope = run(capsys, "player", "pause")

    assert code == 1
    assert envelope["error"] == {"code": "PLAYER_ERROR", "message": "Nothing is playing"}


def test_player_volume_reports_clamped_value(capsys):
    with patch.object(MpvPlayer, "is_running", return_value=True), \
            patch.object(MpvPlayer, "set_volume", return_value=150.0) as mock_set:
        code, envelope = run(capsys, "player", "volume", "180")

    assert code == 0
    mock_set.assert_called_once_with(180.0)
    assert envelope["data"]["message"] == "Volume: 150%"


def test_track_play_builds_title(capsys):
    with patch.object(ContentFetcher, "get_track_url", return_value="https://x/a.mp3"), \
            patch.object(ContentFetcher, "get_track_detail", return_value=make_track("m1")), \
            patch.object(MpvPlayer, "play") as mock_play:
        code, envelope = run(capsys, "track", "play", "m1")

    assert code == 0
    mock_play.assert_called_once_with("https://x/a.mp3", "Song m1 - Singer")
    assert envelope["data"]["message"] == "Now playing: Song m1 - Singer"


def test_plain_mode(capsys):
    with patch.object(ContentFetcher, "like_track") as mock_like:
        code = main(["--plain", "library", "unlike", "m1"])

    assert code == 0
    mock_like.assert_called_once_with("m1", False)
    assert capsys.readouterr().out == "Unliked\n"


def test_argument_validation():
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["playlist", "detail", "abc"])
    with pytest.raises(SystemExit):
        parser.parse_args(["--timeout", "0", "auth", "check"])
    with pytest.raises(SystemExit):
        parser.parse_args(["--api-variant", "other", "auth", "check"])

    args = parser.parse_args(["player", "seek", "-10"])
    assert args.seconds == -10.0 and args.absolute is False

    for value in ("nan", "inf"):
        with pytest.raises(SystemExit):
            parser.parse_args(["player", "volume", value])
        with pytest.raises(SystemExit):
            parser.parse_args(["player", "seek", value])
    with pytest.raises(SystemExit):
        parser.parse_args(["--timeout", "inf", "auth", "check"])


def test_setup_logging_levels():
    def level_for(**flags):
        args = argparse.Namespace(debug=False, verbose=False, log_file=None)
        vars(args).update(flags)
        setup_logging(args)
        return logging.getLogger().level

    assert level_for() == logging.WARNING
    assert level_for(verbose=True) == logging.INFO
    assert level_for(debug=True) == logging.DEBUG
