#!/usr/bin/env python3

"""Control of a background mpv process over its JSON IPC endpoint.

mpv is started detached with ``--input-ipc-server`` pointing at a fixed
endpoint (a Unix socket, or a named pipe on Windows). Each command opens a
fresh connection, writes one JSON line ``{"command": [...], "request_id": N}``
and reads newline-delimited replies until the one carrying the same
``request_id`` arrives. Event lines and replies to other requests are
skipped.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional
import itertools
import json
import math
import logging
import os
import socket
import subprocess
import sys
import threading
import time

from qqm.constants import (
    DEFAULT_VOLUME,
    IPC_ENDPOINT,
    IPC_INITIAL_DELAY,
    IPC_POLL_ATTEMPTS,
    IPC_POLL_INTERVAL,
    IPC_TIMEOUT,
    MAX_VOLUME,
)
from qqm.errors import ErrorKind, PlayerError, Result

LOOP_OFF = "no"
LOOP_INFINITE = "inf"
SEEK_MODES = ("relative", "absolute")

_IS_WINDOWS = sys.platform == "win32"


class PlayerState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    READY = "ready"


@dataclass
class PlayerStatus:
    """Snapshot of the player as reported over IPC."""

    playing: bool
    paused: bool = False
    position: float = 0.0
    duration: float = 0.0
    volume: float = float(DEFAULT_VOLUME)
    loop: str = LOOP_OFF
    title: Optional[str] = None

    @property
    def repeat(self) -> bool:
        return is_loop_enabled(self.loop)


def is_loop_enabled(value: Any) -> bool:
    return value not in (None, False, LOOP_OFF, "false", "")


def _to_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class _SocketChannel:
    """One connection to a Unix domain socket."""

    def __init__(self, path: str, timeout: float):
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.settimeout(timeout)
        try:
            self.sock.connect(path)
        except OSError:
            self.sock.close()
            raise

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def recv(self, timeout: float) -> bytes:
        self.sock.settimeout(timeout)
        return self.sock.recv(4096)

    def close(self) -> None:
        self.sock.close()


class _PipeChannel:
    """One connection to a Windows named pipe.

    Reads on a pipe handle can't be given a timeout, so the overall deadline
    is only checked between reads.
    """

    def __init__(self, path: str, timeout: float):
        self.pipe = open(path, "r+b", buffering=0)

    def send(self, data: bytes) -> None:
        self.pipe.write(data)

    def recv(self, timeout: float) -> bytes:
        return self.pipe.read(4096)

    def close(self) -> None:
        self.pipe.close()


class MpvPlayer:
    """Owns one background mpv process and talks to it over IPC."""

    def __init__(
        self,
        endpoint: str = IPC_ENDPOINT,
        mpv_path: str = "mpv",
        timeout: float = IPC_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the player client.

        Args:
            endpoint: IPC socket path or named pipe.
            mpv_path: mpv executable.
            timeout: Seconds to wait for a matching reply to one command.
            logger: Optional logger instance.
        """
        self.logger = logger or logging.getLogger("MpvPlayer")
        self.endpoint = endpoint
        self.mpv_path = mpv_path
        self.timeout = timeout
        self.state = PlayerState.IDLE
        self.process: Optional[subprocess.Popen] = None
        self._request_ids = itertools.count(1)
        self._id_lock = threading.Lock()

    # Lifecycle

    def play(self, url: str, title: Optional[str] = None) -> None:
        """Replace whatever is playing with ``url``.

        Raises:
            PlayerError: If mpv can't be spawned, or its IPC endpoint never
                becomes reachable. In the latter case mpv is left running.
        """
        self.stop()
        self._remove_stale_socket()

        args = [
            self.mpv_path,
            "--no-video",
            f"--input-ipc-server={self.endpoint}",
            f"--title={title or 'qqm'}",
            url,
        ]
        self.logger.debug(f"Spawning {' '.join(args[:-1])} <url>")
        try:
            self.process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **self._detach_kwargs(),
            )
        except OSError as e:
            self.state = PlayerState.IDLE
            raise PlayerError(
                f"Failed to start mpv: {e}", details={"mpv_path": self.mpv_path}
            ) from e

        self.state = PlayerState.STARTING
        if not self._wait_for_ipc():
            raise PlayerError(
                "mpv started but IPC socket not available",
                details={"endpoint": self.endpoint},
            )
        self.state = PlayerState.READY

    def stop(self) -> None:
        """Ask mpv to quit. Never raises; mpv may already be gone."""
        result = self.execute(["quit"])
        if not result.ok:
            self.logger.debug(f"quit ignored: {result.message}")
        self.state = PlayerState.IDLE
        # A detached mpv may outlive quit; keep its handle until it is reaped.
        if self.process is not None and self.process.poll() is not None:
            self.process = None

    def is_running(self) -> bool:
        """Liveness probe. Any failure means "not running"."""
        running = self.get_property("pid").ok
        if not running:
            self.state = PlayerState.IDLE
        return running

    def _detach_kwargs(self) -> dict:
        if _IS_WINDOWS:
            return {
                "creationflags": subprocess.DETACHED_PROCESS
                | subprocess.CREATE_NEW_PROCESS_GROUP
            }
        return {"start_new_session": True}

    def _remove_stale_socket(self) -> None:
        if _IS_WINDOWS:
            return
        try:
            os.unlink(self.endpoint)
            self.logger.debug(f"Removed stale socket {self.endpoint}")
        except FileNotFoundError:
            pass

    def _wait_for_ipc(self) -> bool:
        time.sleep(IPC_INITIAL_DELAY)
        for attempt in range(1, IPC_POLL_ATTEMPTS + 1):
            if self._probe():
                self.logger.debug(f"IPC endpoint ready after {attempt} attempt(s)")
                return True
            if attempt < IPC_POLL_ATTEMPTS:
                time.sleep(IPC_POLL_INTERVAL)
        return False

    def _probe(self) -> bool:
        try:
            channel = self._connect(IPC_POLL_INTERVAL)
        except OSError:
            return False
        channel.close()
        return True

    def _connect(self, timeout: float):
        if _IS_WINDOWS:
            return _PipeChannel(self.endpoint, timeout)
        return _SocketChannel(self.endpoint, timeout)

    # Command protocol

    def _next_request_id(self) -> int:
        with self._id_lock:
            return next(self._request_ids)

    def execute(self, command: List[Any]) -> Result:
        """Send one command and wait for its reply.

        Returns:
            ``Result.success(data)`` with the reply's ``data`` field, or a
            PLAYER failure for connection errors, timeouts and error replies.
        """
        request_id = self._next_request_id()
        deadline = time.monotonic() + self.timeout

        try:
            channel = self._connect(self.timeout)
        except OSError as e:
            return Result.failure(ErrorKind.PLAYER, f"mpv IPC connection failed: {e}")

        try:
            message = json.dumps({"command": command, "request_id": request_id})
            channel.send(message.encode("utf-8") + b"\n")

            buffer = b""
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return Result.failure(ErrorKind.PLAYER, "mpv IPC timeout")
                chunk = channel.recv(remaining)
                if not chunk:
                    return Result.failure(
                        ErrorKind.PLAYER, "mpv IPC connection closed before reply"
                    )
                buffer += chunk
                *lines, buffer = buffer.split(b"\n")
                for line in lines:
                    reply = self._parse_line(line)
                    if reply is None or reply.get("request_id") != request_id:
                        continue
                    error = reply.get("error")
                    if error and error != "success":
                        return Result.failure(ErrorKind.PLAYER, str(error))
                    return Result.success(reply.get("data"))
        except socket.timeout:
            return Result.failure(ErrorKind.PLAYER, "mpv IPC timeout")
        except OSError as e:
            return Result.failure(ErrorKind.PLAYER, f"mpv IPC connection failed: {e}")
        finally:
            channel.close()

    @staticmethod
    def _parse_line(line: bytes) -> Optional[dict]:
        line = line.strip()
        if not line:
            return None
        try:
            reply = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return None
        return reply if isinstance(reply, dict) else None

    def get_property(self, name: str) -> Result:
        return self.execute(["get_property", name])

    def set_property(self, name: str, value: Any) -> Result:
        return self.execute(["set_property", name, value])

    # Controls

    def pause(self) -> None:
        """Toggle pause."""
        self.execute(["cycle", "pause"]).unwrap()

    def seek(self, seconds: float, mode: str = "relative") -> None:
        if mode not in SEEK_MODES:
            raise ValueError(f"Unknown seek mode: {mode}")
        if not math.isfinite(seconds):
            raise ValueError(f"Invalid seek position: {seconds}")
        self.execute(["seek", str(seconds), mode]).unwrap()

    def set_volume(self, volume: float) -> float:
        """Set the volume, clamped to 0..150. Returns the value applied."""
        if not math.isfinite(volume):
            raise ValueError(f"Invalid volume: {volume}")
        clamped = max(0.0, min(float(MAX_VOLUME), float(volume)))
        self.set_property("volume", clamped).unwrap()
        return clamped

    def get_volume(self) -> float:
        result = self.get_property("volume")
        if not result.ok:
            return float(DEFAULT_VOLUME)
        return _to_float(result.data, float(DEFAULT_VOLUME))

    def set_loop(self, mode: str) -> None:
        if mode not in (LOOP_OFF, LOOP_INFINITE):
            raise ValueError(f"Unknown loop mode: {mode}")
        self.set_property("loop-file", mode).unwrap()

    def get_loop(self) -> str:
        result = self.get_property("loop-file")
        if not result.ok or result.data is None:
            return LOOP_OFF
        if result.data is False:
            return LOOP_OFF
        return str(result.data)

    def get_status(self) -> PlayerStatus:
        """Fetch position, duration, pause, volume, loop and title.

        Each property is fetched on its own; one that the player can't
        report right now falls back to its default.
        """
        if not self.is_running():
            return PlayerStatus(playing=False)

        def fetch(name: str, default: Any) -> Any:
            result = self.get_property(name)
            return result.data if result.ok and result.data is not None else default

        title = fetch("media-title", None)
        loop = fetch("loop-file", LOOP_OFF)
        return PlayerStatus(
            playing=True,
            paused=bool(fetch("pause", False)),
            position=_to_float(fetch("time-pos", 0), 0.0),
            duration=_to_float(fetch("duration", 0), 0.0),
            volume=_to_float(fetch("volume", DEFAULT_VOLUME), float(DEFAULT_VOLUME)),
            loop=LOOP_OFF if loop is False else str(loop),
            title=str(title) if title else None,
        )
