#!/usr/bin/env python3

from pathlib import Path
from typing import Callable, Dict, List, Optional
from qqm import __version__
from qqm.config import ConfigManager
from qqm.constants import API_VARIANTS
from qqm.context import AppContext
from qqm.errors import ErrorKind, PlayerError, QQMusicError
from qqm.models import Quality, SearchType
from qqm.output import (
    AuthCheckResult,
    Colors,
    CommandResult,
    DownloadResult,
    LyricResult,
    MessageResult,
    OutputManager,
    PlaylistDetailResult,
    PlaylistListResult,
    ProfilesResult,
    SearchOutput,
    StatusResult,
    TrackDetailResult,
    TrackListResult,
    UrlResult,
)
from qqm.player import LOOP_INFINITE, LOOP_OFF, is_loop_enabled
from qqm.processor import format_seconds
import argparse
import logging
import math
import sys

EXIT_OK = 0
EXIT_GENERAL = 1
EXIT_AUTH = 2
EXIT_NETWORK = 3

_EXIT_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NETWORK: EXIT_NETWORK,
    ErrorKind.API: EXIT_NETWORK,
    ErrorKind.DOMAIN: EXIT_NETWORK,
    ErrorKind.AUTH: EXIT_AUTH,
    ErrorKind.PLAYER: EXIT_GENERAL,
}

_ERROR_CODES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "NETWORK_ERROR",
    ErrorKind.API: "API_ERROR",
    ErrorKind.DOMAIN: "TRACK_UNAVAILABLE",
    ErrorKind.AUTH: "AUTH_ERROR",
    ErrorKind.PLAYER: "PLAYER_ERROR",
}


def setup_logging(args: argparse.Namespace) -> logging.Logger:
    """Configure logging based on command-line arguments.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Configured logger instance.
    """
    if args.debug:
        log_level = logging.DEBUG
    elif args.verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if args.log_file:
        log_file = Path(args.log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file)))

    logging.basicConfig(level=log_level, format=log_format, handlers=handlers, force=True)

    return logging.getLogger("qqm")


class CommandHandler:
    """Base for command group handlers.

    Subclasses implement one ``_<action>`` method per subcommand, each
    returning a :class:`CommandResult`. Errors from the package are mapped
    to an error code and exit status here.
    """

    def __init__(
        self,
        args: argparse.Namespace,
        context: AppContext,
        output: OutputManager,
        logger: logging.Logger,
    ):
        """Initialize the command handler.

        Args:
            args: Parsed command-line arguments.
            context: Components for the active profile.
            output: Renderer for results and errors.
            logger: Logger instance.
        """
        self.args = args
        self.context = context
        self.output = output
        self.logger = logger

    def run(self) -> CommandResult:
        action: Callable[[], CommandResult] = getattr(self, f"_{self.args.action}")
        return action()

    def execute(self) -> int:
        """Execute the command.

        Returns:
            Exit code (0 success, 1 general, 2 auth, 3 network or API).
        """
        try:
            result = self.run()
        except QQMusicError as e:
            self.logger.debug(f"{self.args.command} {self.args.action} failed: {e!r}")
            self.output.emit_error(_ERROR_CODES.get(e.kind, "ERROR"), e.message)
            return _EXIT_CODES.get(e.kind, EXIT_GENERAL)
        except ValueError as e:
            self.output.emit_error("INVALID_ARGUMENT", str(e))
            return EXIT_GENERAL

        self.output.emit(result)
        return EXIT_OK


class AuthCommandHandler(CommandHandler):
    """Handles the 'auth' commands."""

    def _login(self) -> CommandResult:
        auth = self.context.auth
        auth.import_from_browser(self.args.browser, self.args.browser_profile)
        return MessageResult(
            f"Login successful (via {auth.source})",
            {
                "authenticated": True,
                "browser": auth.source,
                "profile": self.context.profile,
            },
        )

    def _check(self) -> CommandResult:
        status = self.context.auth.check_auth(self.context.fetcher.get_user_profile)
        return AuthCheckResult(status, profile=self.context.profile)

    def _logout(self) -> CommandResult:
        self.context.auth.logout()
        return MessageResult("Logged out", {"authenticated": False})

    def _profiles(self) -> CommandResult:
        return ProfilesResult(self.context.store.list_profiles(), self.context.profile)


class SearchCommandHandler(CommandHandler):
    """Handles the 'search' commands."""

    def run(self) -> CommandResult:
        result = self.context.fetcher.search(
            self.args.keyword,
            SearchType(self.args.action),
            limit=self.args.limit,
            offset=self.args.offset,
        )
        return SearchOutput(result)


class TrackCommandHandler(CommandHandler):
    """Handles the 'track' commands."""

    @property
    def quality(self) -> Quality:
        if self.args.quality:
            return Quality(self.args.quality)
        return self.context.config.default_quality

    def _detail(self) -> CommandResult:
        return TrackDetailResult(self.context.fetcher.get_track_detail(self.args.id))

    def _url(self) -> CommandResult:
        url = self.context.fetcher.get_track_url(self.args.id, self.quality)
        return UrlResult(self.args.id, url, self.quality.value)

    def _lyric(self) -> CommandResult:
        return LyricResult(self.args.id, self.context.fetcher.get_lyric(self.args.id))

    def _download(self) -> CommandResult:
        path, size = self.context.fetcher.download_track(
            self.args.id, self.quality, self.args.output
        )
        return DownloadResult(self.args.id, path, size, self.quality.value)

    def _play(self) -> CommandResult:
        fetcher = self.context.fetcher
        url = fetcher.get_track_url(self.args.id, self.quality)
        track = fetcher.get_track_detail(self.args.id)
        title = f"{track.name} - {'/'.join(a.name for a in track.artists)}"
        self.context.player.play(url, title)
        return MessageResult(
            f"Now playing: {title}",
            {"id": self.args.id, "name": track.name, "quality": self.quality.value},
        )


class LibraryCommandHandler(CommandHandler):
    """Handles the 'library' commands."""

    def _liked(self) -> CommandResult:
        fetcher = self.context.fetcher
        ids = fetcher.get_liked_track_ids()
        limited = ids[: self.args.limit]
        tracks = fetcher.get_track_details(limited) if limited else []
        return TrackListResult(tracks, total=len(ids), showing=len(limited))

    def _like(self) -> CommandResult:
        self.context.fetcher.like_track(self.args.id, True)
        return MessageResult("Liked", {"track_id": self.args.id})

    def _unlike(self) -> CommandResult:
        self.context.fetcher.like_track(self.args.id, False)
        return MessageResult("Unliked", {"track_id": self.args.id})

    def _recent(self) -> CommandResult:
        return TrackListResult(self.context.fetcher.get_recent_tracks(self.args.limit))


class PlaylistCommandHandler(CommandHandler):
    """Handles the 'playlist' commands."""

    def _list(self) -> CommandResult:
        return PlaylistListResult(self.context.fetcher.get_user_playlists())

    def _detail(self) -> CommandResult:
        playlist = self.context.fetcher.get_playlist_detail(self.args.id)
        return PlaylistDetailResult(playlist, limit=self.args.limit)


class PlayerCommandHandler(CommandHandler):
    """Handles the 'player' commands."""

    def _require_running(self) -> None:
        if not self.context.player.is_running():
            raise PlayerError("Nothing is playing")

    def _status(self) -> CommandResult:
        return StatusResult(self.context.player.get_status())

    def _pause(self) -> CommandResult:
        self._require_running()
        player = self.context.player
        player.pause()
        paused = player.get_status().paused
        return MessageResult("Paused" if paused else "Resumed", {"paused": paused})

    def _stop(self) -> CommandResult:
        self.context.player.stop()
        return MessageResult("Stopped")

    def _seek(self) -> CommandResult:
        self._require_running()
        player = self.context.player
        player.seek(self.args.seconds, "absolute" if self.args.absolute else "relative")
        status = player.get_status()
        return MessageResult(
            f"Seeked to {format_seconds(status.position)}/{format_seconds(status.duration)}",
            {"position": status.position, "duration": status.duration},
        )

    def _volume(self) -> CommandResult:
        self._require_running()
        player = self.context.player
        if self.args.level is None:
            volume = player.get_volume()
        else:
            volume = player.set_volume(self.args.level)
        return MessageResult(f"Volume: {round(volume)}%", {"volume": volume})

    def _repeat(self) -> CommandResult:
        self._require_running()
        player = self.context.player
        if self.args.mode is None:
            enabled = not is_loop_enabled(player.get_loop())
        else:
            enabled = self.args.mode == "on"
        player.set_loop(LOOP_INFINITE if enabled else LOOP_OFF)
        return MessageResult(
            f"Repeat: {'on' if enabled else 'off'}", {"repeat": enabled}
        )


def finite_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if not math.isfinite(number):
        raise argparse.ArgumentTypeError(f"not a finite number: {value}")
    return number


def positive_float(value: str) -> float:
    number = finite_float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def positive_int(value: str) -> int:
    number = non_negative_int(value)
    if number == 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def playlist_id(value: str) -> str:
    if not value.isdigit():
        raise argparse.ArgumentTypeError(f"playlist ID must be numeric: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for every command."""
    parser = argparse.ArgumentParser(prog="qqm", description="QQ Music CLI")
    parser.add_argument("--version", action="version", version=f"qqm {__version__}")
    parser.add_argument(
        "--json", action="store_true", help="JSON output (default when piped)"
    )
    parser.add_argument("--plain", action="store_true", help="Plain text output")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--quiet", action="store_true", help="Suppress output")
    parser.add_argument("--no-color", action="store_true", help="Disable colors")
    parser.add_argument("--profile", help="Account profile (default: 'default')")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--debug", "-d", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--timeout", type=positive_float, help="Request timeout in seconds"
    )
    parser.add_argument(
        "--api-variant",
        choices=API_VARIANTS,
        help="Request signing variant of the API endpoint",
    )
    parser.add_argument("--log-file", help="Also append logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Auth commands
    auth_parser = subparsers.add_parser("auth", help="Authentication")
    auth_parser.set_defaults(handler=AuthCommandHandler)
    auth_sub = auth_parser.add_subparsers(dest="action", required=True)
    login_parser = auth_sub.add_parser(
        "login", help="Import login cookies from a local browser"
    )
    login_parser.add_argument(
        "--browser",
        "-b",
        default="chrome",
        help="Browser to read cookies from (e.g., 'chrome', 'edge', 'firefox', 'safari')",
    )
    login_parser.add_argument(
        "--browser-profile", help="Browser profile name or path"
    )
    auth_sub.add_parser("check", help="Check login status")
    auth_sub.add_parser("logout", help="Remove the saved session")
    auth_sub.add_parser("profiles", help="List saved profiles")

    # Search commands
    search_parser = subparsers.add_parser("search", help="Search music")
    search_parser.set_defaults(handler=SearchCommandHandler)
    search_sub = search_parser.add_subparsers(dest="action", required=True)
    for search_type in SearchType:
        type_parser = search_sub.add_parser(
            search_type.value, help=f"Search {search_type.value}s"
        )
        type_parser.add_argument("keyword", help="Search keyword")
        type_parser.add_argument(
            "--limit", "-l", type=positive_int, default=20, help="Result count"
        )
        type_parser.add_argument(
            "--offset", "-o", type=non_negative_int, default=0, help="Offset"
        )

    # Track commands
    track_parser = subparsers.add_parser("track", help="Track info and playback")
    track_parser.set_defaults(handler=TrackCommandHandler)
    track_sub = track_parser.add_subparsers(dest="action", required=True)
    quality_choices = [q.value for q in Quality]
    for action, help_text in (
        ("detail", "Track details"),
        ("url", "Get streaming URL"),
        ("lyric", "Get lyrics"),
        ("download", "Download track"),
        ("play", "Play track via mpv"),
    ):
        action_parser = track_sub.add_parser(action, help=help_text)
        action_parser.add_argument("id", help="Track MID")
        if action in ("url", "download", "play"):
            action_parser.add_argument(
                "--quality", "-q", choices=quality_choices, help="Audio quality"
            )
        if action == "download":
            action_parser.add_argument("--output", "-o", help="Output file path")

    # Library commands
    library_parser = subparsers.add_parser("library", help="User library")
    library_parser.set_defaults(handler=LibraryCommandHandler)
    library_sub = library_parser.add_subparsers(dest="action", required=True)
    liked_parser = library_sub.add_parser("liked", help="Liked tracks")
    liked_parser.add_argument("--limit", "-l", type=positive_int, default=50)
    like_parser = library_sub.add_parser("like", help="Like a track")
    like_parser.add_argument("id", help="Track MID")
    unlike_parser = library_sub.add_parser("unlike", help="Unlike a track")
    unlike_parser.add_argument("id", help="Track MID")
    recent_parser = library_sub.add_parser("recent", help="Recently played")
    recent_parser.add_argument("--limit", "-l", type=positive_int, default=50)

    # Playlist commands
    playlist_parser = subparsers.add_parser("playlist", help="Playlists")
    playlist_parser.set_defaults(handler=PlaylistCommandHandler)
    playlist_sub = playlist_parser.add_subparsers(dest="action", required=True)
    playlist_sub.add_parser("list", help="List my playlists")
    detail_parser = playlist_sub.add_parser("detail", help="Playlist details")
    detail_parser.add_argument("id", type=playlist_id, help="Playlist ID")
    detail_parser.add_argument(
        "--limit", "-l", type=positive_int, default=50, help="Track count limit"
    )

    # Player commands
    player_parser = subparsers.add_parser("player", help="Playback control")
    player_parser.set_defaults(handler=PlayerCommandHandler)
    player_sub = player_parser.add_subparsers(dest="action", required=True)
    player_sub.add_parser("status", help="Current playback status")
    player_sub.add_parser("pause", help="Toggle pause/resume")
    player_sub.add_parser("stop", help="Stop playback")
    seek_parser = player_sub.add_parser(
        "seek", help="Seek by relative seconds, or to a position with --absolute"
    )
    seek_parser.add_argument("seconds", type=finite_float)
    seek_parser.add_argument(
        "--absolute", action="store_true", help="Seek to absolute position"
    )
    volume_parser = player_sub.add_parser("volume", help="Get or set volume (0-150)")
    volume_parser.add_argument("level", type=finite_float, nargs="?")
    repeat_parser = player_sub.add_parser(
        "repeat", help="Toggle or set repeat mode"
    )
    repeat_parser.add_argument("mode", choices=("on", "off"), nargs="?")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for qqm."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_logging(args)

    output = OutputManager(
        mode=OutputManager.resolve_mode(args.json, args.plain),
        pretty=args.pretty,
        quiet=args.quiet,
        colors=Colors.detect(no_color=args.no_color),
    )

    try:
        config = ConfigManager(
            profile=args.profile,
            request_timeout=args.timeout,
            api_variant=args.api_variant,
            logger=logger.getChild("ConfigManager"),
        )
    except OSError as e:
        output.emit_error("CONFIG_ERROR", f"Cannot use config directory: {e}")
        return EXIT_GENERAL

    context = AppContext(config, logger=logger)
    try:
        return args.handler(args, context, output, logger).execute()
    finally:
        context.close()


if __name__ == "__main__":
    sys.exit(main())
