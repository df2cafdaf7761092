#!/usr/bin/env python3

"""Rendering of command results as human text, plain rows or JSON.

Every command produces one of the result classes below. Each knows how to
render itself in the three modes, so :class:`OutputManager` never has to
guess a payload's shape.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO
import json
import os
import sys

from qqm.auth import AuthStatus
from qqm.models import Lyric, Playlist, SearchResult, Track
from qqm.player import PlayerStatus
from qqm.processor import format_duration, format_seconds

MODE_HUMAN = "human"
MODE_JSON = "json"
MODE_PLAIN = "plain"


class Colors:
    """ANSI color helper; every method returns the text unchanged when disabled."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @classmethod
    def detect(cls, no_color: bool = False, stream: Optional[TextIO] = None) -> "Colors":
        """Enable colors only for a TTY, unless NO_COLOR or TERM=dumb say otherwise."""
        stream = stream or sys.stdout
        if no_color or os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
            return cls(False)
        isatty = getattr(stream, "isatty", None)
        return cls(bool(isatty and isatty()))

    def _wrap(self, code: str, text: str) -> str:
        return f"{code}{text}{self.RESET}" if self.enabled else text

    def bold(self, text: str) -> str:
        return self._wrap(self.BOLD, text)

    def dim(self, text: str) -> str:
        return self._wrap(self.DIM, text)

    def red(self, text: str) -> str:
        return self._wrap(self.RED, text)

    def green(self, text: str) -> str:
        return self._wrap(self.GREEN, text)

    def yellow(self, text: str) -> str:
        return self._wrap(self.YELLOW, text)

    def cyan(self, text: str) -> str:
        return self._wrap(self.CYAN, text)


def track_to_dict(track: Track) -> Dict[str, Any]:
    data = asdict(track)
    data["artist"] = track.artist_names
    data["duration"] = format_duration(track.duration_ms)
    return data


def playlist_to_dict(playlist: Playlist) -> Dict[str, Any]:
    data = asdict(playlist)
    if playlist.tracks is not None:
        data["tracks"] = [track_to_dict(t) for t in playlist.tracks]
    return data


def _track_lines(tracks: List[Track], colors: Colors) -> List[str]:
    lines = []
    for i, track in enumerate(tracks, 1):
        duration = (
            f"  {colors.dim(format_duration(track.duration_ms))}"
            if track.duration_ms
            else ""
        )
        lines.append(
            f"  {colors.dim(str(i).rjust(2))}  {colors.bold(track.name)} "
            f"{colors.dim('-')} {colors.cyan(track.artist_names)}{duration}"
        )
    return lines


def _track_rows(tracks: List[Track]) -> List[str]:
    return [
        "\t".join([t.id, t.name, t.artist_names, t.album.name, t.uri]) for t in tracks
    ]


def _playlist_lines(playlists: List[Playlist], colors: Colors) -> List[str]:
    return [
        f"  {colors.dim(str(i).rjust(2))}  {colors.bold(p.name)} "
        f"{colors.dim(f'({p.track_count} tracks)')}"
        for i, p in enumerate(playlists, 1)
    ]


def _playlist_rows(playlists: List[Playlist]) -> List[str]:
    return [
        "\t".join(
            [p.id, p.name, str(p.track_count), p.creator.name if p.creator else ""]
        )
        for p in playlists
    ]


class CommandResult:
    """Base of all renderable results."""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def render_human(self, colors: Colors) -> List[str]:
        raise NotImplementedError

    def render_plain(self) -> List[str]:
        raise NotImplementedError


@dataclass
class TrackListResult(CommandResult):
    tracks: List[Track]
    total: Optional[int] = None
    showing: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracks": [track_to_dict(t) for t in self.tracks],
            "total": self.total if self.total is not None else len(self.tracks),
            "showing": self.showing if self.showing is not None else len(self.tracks),
        }

    def render_human(self, colors: Colors) -> List[str]:
        if not self.tracks:
            return [colors.dim("No tracks")]
        lines = _track_lines(self.tracks, colors)
        total = self.total if self.total is not None else len(self.tracks)
        showing = self.showing if self.showing is not None else len(self.tracks)
        if total > showing:
            lines.append(colors.dim(f"\n  {showing} of {total} tracks"))
        return lines

    def render_plain(self) -> List[str]:
        return _track_rows(self.tracks)


@dataclass
class PlaylistListResult(CommandResult):
    playlists: List[Playlist]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playlists": [playlist_to_dict(p) for p in self.playlists],
            "total": len(self.playlists),
        }

    def render_human(self, colors: Colors) -> List[str]:
        if not self.playlists:
            return [colors.dim("No playlists")]
        return _playlist_lines(self.playlists, colors)

    def render_plain(self) -> List[str]:
        return _playlist_rows(self.playlists)


@dataclass
class PlaylistDetailResult(CommandResult):
    playlist: Playlist
    limit: Optional[int] = None

    def _tracks(self) -> List[Track]:
        tracks = list(self.playlist.tracks or ())
        return tracks[: self.limit] if self.limit is not None else tracks

    def to_dict(self) -> Dict[str, Any]:
        data = playlist_to_dict(self.playlist)
        data["tracks"] = [track_to_dict(t) for t in self._tracks()]
        return data

    def render_human(self, colors: Colors) -> List[str]:
        p = self.playlist
        lines = [f"  {colors.bold(p.name)} {colors.dim(f'({p.track_count} tracks)')}"]
        if p.creator:
            lines.append(f"  {colors.dim('By:')} {colors.cyan(p.creator.name)}")
        if p.description:
            lines.append(f"  {colors.dim(p.description)}")
        lines.append("")
        lines.extend(_track_lines(self._tracks(), colors))
        return lines

    def render_plain(self) -> List[str]:
        return _track_rows(self._tracks())


@dataclass
class SearchOutput(CommandResult):
    result: SearchResult

    def _items(self) -> List[Any]:
        r = self.result
        return r.tracks or r.albums or r.playlists or r.artists

    def to_dict(self) -> Dict[str, Any]:
        r = self.result
        data: Dict[str, Any] = {
            "type": r.search_type.value,
            "total": r.total,
            "offset": r.offset,
            "limit": r.limit,
        }
        if r.tracks:
            data["tracks"] = [track_to_dict(t) for t in r.tracks]
        if r.albums:
            data["albums"] = [asdict(a) for a in r.albums]
        if r.playlists:
            data["playlists"] = [playlist_to_dict(p) for p in r.playlists]
        if r.artists:
            data["artists"] = [asdict(a) for a in r.artists]
        return data

    def render_human(self, colors: Colors) -> List[str]:
        r = self.result
        if r.tracks:
            lines = _track_lines(r.tracks, colors)
        elif r.playlists:
            lines = _playlist_lines(r.playlists, colors)
        elif r.albums or r.artists:
            lines = [
                f"  {colors.dim(str(i).rjust(2))}  {colors.bold(item.name)} "
                f"{colors.dim(item.id)}"
                for i, item in enumerate(r.albums or r.artists, 1)
            ]
        else:
            return [colors.dim("No results")]
        shown = len(self._items())
        if r.total > r.offset + shown:
            lines.append(colors.dim(f"\n  {r.offset + 1}-{r.offset + shown} of {r.total}"))
        return lines

    def render_plain(self) -> List[str]:
        r = self.result
        if r.tracks:
            return _track_rows(r.tracks)
        if r.playlists:
            return _playlist_rows(r.playlists)
        items: List[Any] = list(r.albums) or list(r.artists)
        return [f"{item.id}\t{item.name}" for item in items]


@dataclass
class TrackDetailResult(CommandResult):
    track: Track

    def to_dict(self) -> Dict[str, Any]:
        return track_to_dict(self.track)

    def render_human(self, colors: Colors) -> List[str]:
        t = self.track
        return [
            f"  {colors.bold(t.name)}",
            f"  {colors.dim('Artist:')}   {colors.cyan(t.artist_names)}",
            f"  {colors.dim('Album:')}    {t.album.name}",
            f"  {colors.dim('Duration:')} {format_duration(t.duration_ms)}",
            f"  {colors.dim('URI:')}      {t.uri}",
        ]

    def render_plain(self) -> List[str]:
        return _track_rows([self.track])


@dataclass
class UrlResult(CommandResult):
    id: str
    url: str
    quality: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, "quality": self.quality}

    def render_human(self, colors: Colors) -> List[str]:
        return [
            f"  {colors.dim('URL:')} {self.url}",
            f"  {colors.dim('Quality:')} {self.quality}",
        ]

    def render_plain(self) -> List[str]:
        return [self.url]


@dataclass
class LyricResult(CommandResult):
    id: str
    lyric: Lyric

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lrc": self.lyric.lrc,
            "tlyric": self.lyric.tlyric,
            "has_lyric": bool(self.lyric.lrc),
            "has_translation": bool(self.lyric.tlyric),
        }

    def render_human(self, colors: Colors) -> List[str]:
        if not self.lyric.lrc:
            return [colors.dim("No lyrics available")]
        return [self.lyric.lrc]

    def render_plain(self) -> List[str]:
        return [self.lyric.lrc] if self.lyric.lrc else []


@dataclass
class DownloadResult(CommandResult):
    id: str
    path: Path
    size: int
    quality: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": str(self.path),
            "size": self.size,
            "quality": self.quality,
        }

    def render_human(self, colors: Colors) -> List[str]:
        size_mb = self.size / (1024 * 1024)
        return [f"{colors.green('✓')} Saved {self.path} {colors.dim(f'({size_mb:.1f} MB)')}"]

    def render_plain(self) -> List[str]:
        return [f"{self.path}\t{self.size}"]


@dataclass
class AuthCheckResult(CommandResult):
    status: AuthStatus
    profile: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self.status)
        data["profile"] = self.profile
        return data

    def render_human(self, colors: Colors) -> List[str]:
        s = self.status
        lines = [
            f"{colors.bold('Credential check')} {colors.dim(f'(profile: {self.profile})')}",
            colors.dim("─" * 40),
        ]
        for name, found in s.credentials.items():
            icon = colors.green("✓") if found else colors.red("✗")
            text = colors.green("found") if found else colors.red("not found")
            lines.append(f"{icon} {colors.bold(name)}: {text}")
        if s.valid:
            lines.append(
                f"{colors.green('✓')} {colors.bold('session')}: {colors.green('valid')} "
                f"{colors.dim(f'({s.nickname})')}"
            )
        elif s.credentials.get("qm_keyst"):
            lines.append(
                f"{colors.red('✗')} {colors.bold('session')}: "
                f"{colors.red('expired or invalid')}"
            )
        if s.warnings:
            lines.append(f"\n{colors.yellow('!')} {colors.bold('Warnings:')}")
            lines.extend(f"   {colors.dim('-')} {w}" for w in s.warnings)
        return lines

    def render_plain(self) -> List[str]:
        s = self.status
        rows = [f"valid\t{str(s.valid).lower()}", f"profile\t{self.profile}"]
        rows.extend(f"{name}\t{str(found).lower()}" for name, found in s.credentials.items())
        if s.nickname:
            rows.append(f"nickname\t{s.nickname}")
        if s.error:
            rows.append(f"error\t{s.error}")
        return rows


@dataclass
class StatusResult(CommandResult):
    status: PlayerStatus

    def to_dict(self) -> Dict[str, Any]:
        s = self.status
        data = asdict(s)
        data["repeat"] = s.repeat
        data["volume"] = round(s.volume)
        return data

    def summary(self) -> str:
        s = self.status
        if not s.playing:
            return "Nothing is playing"
        state = "Paused" if s.paused else "Playing"
        repeat = " [repeat]" if s.repeat else ""
        return (
            f"{state}: {s.title or 'Unknown'} "
            f"{format_seconds(s.position)}/{format_seconds(s.duration)} "
            f"vol:{round(s.volume)}%{repeat}"
        )

    def render_human(self, colors: Colors) -> List[str]:
        if not self.status.playing:
            return [colors.dim(self.summary())]
        return [f"{colors.green('▶')} {self.summary()}"]

    def render_plain(self) -> List[str]:
        s = self.status
        return [
            "\t".join(
                [
                    "paused" if s.paused else ("playing" if s.playing else "stopped"),
                    s.title or "",
                    f"{s.position:.1f}",
                    f"{s.duration:.1f}",
                    str(round(s.volume)),
                    s.loop,
                ]
            )
        ]


@dataclass
class MessageResult(CommandResult):
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.data)
        result["message"] = self.message
        return result

    def render_human(self, colors: Colors) -> List[str]:
        return [f"{colors.green('✓')} {self.message}"]

    def render_plain(self) -> List[str]:
        return [self.message]


@dataclass
class ProfilesResult(CommandResult):
    profiles: List[str]
    active: str

    def to_dict(self) -> Dict[str, Any]:
        return {"profiles": self.profiles, "active": self.active}

    def render_human(self, colors: Colors) -> List[str]:
        if not self.profiles:
            return [colors.dim("No saved profiles")]
        return [
            f"{colors.green('*') if name == self.active else ' '} {name}"
            for name in self.profiles
        ]

    def render_plain(self) -> List[str]:
        return list(self.profiles)


class OutputManager:
    """Writes results and errors in the selected mode."""

    def __init__(
        self,
        mode: str = MODE_HUMAN,
        pretty: bool = False,
        quiet: bool = False,
        colors: Optional[Colors] = None,
        stream: Optional[TextIO] = None,
        error_stream: Optional[TextIO] = None,
    ):
        self.mode = mode
        self.pretty = pretty
        self.quiet = quiet
        self.stream = stream or sys.stdout
        self.error_stream = error_stream or sys.stderr
        self.colors = colors or Colors.detect(stream=self.stream)

    @staticmethod
    def resolve_mode(
        json_flag: bool = False, plain_flag: bool = False, stream: Optional[TextIO] = None
    ) -> str:
        """Explicit flags win; otherwise human for a terminal and JSON when piped."""
        if json_flag:
            return MODE_JSON
        if plain_flag:
            return MODE_PLAIN
        stream = stream or sys.stdout
        isatty = getattr(stream, "isatty", None)
        return MODE_HUMAN if isatty and isatty() else MODE_JSON

    def _dump(self, envelope: Dict[str, Any]) -> str:
        if self.pretty:
            return json.dumps(envelope, indent=2, ensure_ascii=False)
        return json.dumps(envelope, ensure_ascii=False)

    def _write(self, lines: List[str], stream: TextIO) -> None:
        for line in lines:
            print(line, file=stream)

    def emit(self, result: CommandResult) -> None:
        if self.quiet:
            return
        if self.mode == MODE_JSON:
            envelope = {"success": True, "data": result.to_dict(), "error": None}
            self._write([self._dump(envelope)], self.stream)
        elif self.mode == MODE_PLAIN:
            self._write(result.render_plain(), self.stream)
        else:
            self._write(result.render_human(self.colors), self.stream)

    def emit_error(self, code: str, message: str) -> None:
        if self.quiet:
            return
        if self.mode == MODE_JSON:
            envelope = {
                "success": False,
                "data": None,
                "error": {"code": code, "message": message},
            }
            self._write([self._dump(envelope)], self.stream)
        elif self.mode == MODE_PLAIN:
            self._write([f"error\t{code}\t{message}"], self.stream)
        else:
            c = self.colors
            self._write([f"{c.red('✗')} {c.bold(code)}: {message}"], self.error_stream)
