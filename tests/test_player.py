#!/usr/bin/env python3

"""Tests for the mpv IPC client against a fake mpv listening on a Unix socket."""

import json
import os
import shutil
import socket
import socketserver
import sys
import tempfile
import threading
from unittest.mock import Mock, patch

import pytest

from qqm.errors import ErrorKind, PlayerError
from qqm.player import MpvPlayer, PlayerState

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="Unix domain sockets only"
)


class FakeMpvHandler(socketserver.StreamRequestHandler):
    """Answers each command after some noise: an event, another id, garbage."""

    def handle(self):
        for raw in self.rfile:
            message = json.loads(raw)
            request_id = message["request_id"]
            self.server.commands.append(message["command"])
            reply = self.server.respond(message["command"])
            reply["request_id"] = request_id

            self.wfile.write(b'{"event":"property-change","name":"time-pos"}\n')
            other = {"request_id": request_id + 1000, "error": "success", "data": "x"}
            self.wfile.write(json.dumps(other).encode() + b"\n")
            self.wfile.write(b"not json at all\n")
            data = json.dumps(reply).encode() + b"\n"
            # Split the reply so the client has to join partial reads.
            self.wfile.write(data[:7])
            self.wfile.write(data[7:])


class FakeMpv(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True

    def __init__(self, path, properties):
        self.properties = dict(properties)
        self.commands = []
        super().__init__(path, FakeMpvHandler)

    def respond(self, command):
        name = command[0]
        if name == "get_property":
            if command[1] in self.properties:
                return {"error": "success", "data": self.properties[command[1]]}
            return {"error": "property unavailable"}
        if name == "set_property":
            self.properties[command[1]] = command[2]
            return {"error": "success"}
        if name == "cycle":
            self.properties[command[1]] = not self.properties.get(command[1], False)
            return {"error": "success"}
        if name in ("quit", "seek"):
            return {"error": "success"}
        return {"error": "invalid parameter"}


@pytest.fixture
def socket_dir():
    path = tempfile.mkdtemp(prefix="qqm")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_mpv(socket_dir):
    server = FakeMpv(os.path.join(socket_dir, "mpv.sock"), {"pid": 4242})
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def player(fake_mpv):
    return MpvPlayer(endpoint=fake_mpv.server_address, timeout=2.0)


def test_execute_matches_reply_by_request_id(player, fake_mpv):
    fake_mpv.properties["media-title"] = "晴天 - 周杰伦"

    result = player.get_property("media-title")

    assert result.ok
    assert result.data == "晴天 - 周杰伦"
    assert fake_mpv.commands == [["get_property", "media-title"]]


def test_execute_reports_error_reply(player):
    result = player.get_property("time-pos")

    assert not result.ok
    assert result.kind is ErrorKind.PLAYER
    assert result.message == "property unavailable"


def test_request_ids_increase(player, fake_mpv):
    assert player.execute(["quit"]).ok
    assert player.execute(["quit"]).ok
    assert player._next_request_id() == 3


def test_status_defaults_for_missing_properties(player, fake_mpv):
    fake_mpv.properties["media-title"] = "Song"

    status = player.get_status()

    assert status.playing is True
    assert status.position == 0
    assert status.duration == 0
    assert status.paused is False
    assert status.volume == 100
    assert status.loop == "no"
    assert status.repeat is False
    assert status.title == "Song"


def test_status_reads_properties(player, fake_mpv):
    fake_mpv.properties.update(
        {"time-pos": 61.5, "duration": 269.0, "pause": True, "volume": 80, "loop-file": "inf"}
    )

    status = player.get_status()

    assert (status.position, status.duration) == (61.5, 269.0)
    assert status.paused is True
    assert status.volume == 80
    assert status.repeat is True
    assert status.title is None


def test_volume_is_clamped(player, fake_mpv):
    assert player.set_volume(200) == 150
    assert fake_mpv.properties["volume"] == 150
    assert player.set_volume(-5) == 0
    assert player.get_volume() == 0


def test_pause_seek_and_loop(player, fake_mpv):
    player.pause()
    assert fake_mpv.properties["pause"] is True

    player.seek(-10)
    player.seek(30, "absolute")
    assert ["seek", "-10", "relative"] in fake_mpv.commands
    assert ["seek", "30", "absolute"] in fake_mpv.commands

    player.set_loop("inf")
    assert player.get_loop() == "inf"
    with pytest.raises(ValueError):
        player.set_loop("sometimes")


def test_non_finite_volume_and_seek_rejected(player, fake_mpv):
    with pytest.raises(ValueError):
        player.set_volume(float("nan"))
    with pytest.raises(ValueError):
        player.seek(float("inf"))

    assert fake_mpv.commands == []


def test_not_running_without_peer(socket_dir):
    player = MpvPlayer(endpoint=os.path.join(socket_dir, "missing.sock"))

    assert player.is_running() is False
    status = player.get_status()
    assert status.playing is False
    assert player.get_volume() == 100
    assert player.get_loop() == "no"
    with pytest.raises(PlayerError):
        player.pause()


def test_stop_is_idempotent(socket_dir):
    player = MpvPlayer(endpoint=os.path.join(socket_dir, "missing.sock"))
    player.state = PlayerState.READY

    player.stop()
    player.stop()

    assert player.state is PlayerState.IDLE


def test_stop_keeps_handle_until_process_exits(socket_dir):
    player = MpvPlayer(endpoint=os.path.join(socket_dir, "missing.sock"))
    process = Mock()
    process.poll.return_value = None
    player.process = process

    player.stop()
    assert player.process is process

    process.poll.return_value = 0
    player.stop()
    assert player.process is None


def test_silent_peer_times_out(socket_dir):
    path = os.path.join(socket_dir, "silent.sock")
    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    listener.bind(path)
    listener.listen(1)
    try:
        player = MpvPlayer(endpoint=path, timeout=0.3)
        result = player.execute(["get_property", "pid"])
    finally:
        listener.close()

    assert not result.ok
    assert result.message == "mpv IPC timeout"


class TestPlay:
    """Spawning and readiness polling, with the process and sleeps mocked."""

    def make_player(self, socket_dir):
        return MpvPlayer(endpoint=os.path.join(socket_dir, "mpv.sock"), mpv_path="mpv")

    @patch("qqm.player.time.sleep")
    @patch("qqm.player.subprocess.Popen")
    def test_ready_on_last_attempt(self, mock_popen, mock_sleep, socket_dir):
        player = self.make_player(socket_dir)
        probes = [False] * 9 + [True]

        with patch.object(MpvPlayer, "_probe", side_effect=probes) as mock_probe:
            player.play("https://example.com/a.mp3", title="Song - Artist")

        assert mock_probe.call_count == 10
        assert player.state is PlayerState.READY
        args = mock_popen.call_args.args[0]
        assert args == [
            "mpv",
            "--no-video",
            f"--input-ipc-server={player.endpoint}",
            "--title=Song - Artist",
            "https://example.com/a.mp3",
        ]
        kwargs = mock_popen.call_args.kwargs
        assert kwargs["start_new_session"] is True
        assert mock_sleep.call_args_list[0].args == (0.3,)
        assert all(c.args == (0.2,) for c in mock_sleep.call_args_list[1:])

    @patch("qqm.player.time.sleep")
    @patch("qqm.player.subprocess.Popen")
    def test_readiness_timeout_leaves_process_running(
        self, mock_popen, mock_sleep, socket_dir
    ):
        player = self.make_player(socket_dir)

        with patch.object(MpvPlayer, "_probe", return_value=False) as mock_probe:
            with pytest.raises(PlayerError) as excinfo:
                player.play("https://example.com/a.mp3")

        assert excinfo.value.message == "mpv started but IPC socket not available"
        assert mock_probe.call_count == 10
        process = mock_popen.return_value
        process.kill.assert_not_called()
        process.terminate.assert_not_called()
        assert "--title=qqm" in mock_popen.call_args.args[0]

    @patch("qqm.player.time.sleep")
    @patch("qqm.player.subprocess.Popen")
    def test_stale_socket_removed_before_spawn(self, mock_popen, mock_sleep, socket_dir):
        player = self.make_player(socket_dir)
        with open(player.endpoint, "w"):
            pass

        with patch.object(MpvPlayer, "_probe", return_value=True):
            player.play("https://example.com/a.mp3")

        assert not os.path.exists(player.endpoint)

    @patch("qqm.player.subprocess.Popen", side_effect=FileNotFoundError("mpv"))
    def test_spawn_failure(self, mock_popen, socket_dir):
        player = self.make_player(socket_dir)

        with pytest.raises(PlayerError) as excinfo:
            player.play("https://example.com/a.mp3")

        assert excinfo.value.message.startswith("Failed to start mpv:")
        assert player.state is PlayerState.IDLE
