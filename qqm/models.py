#!/usr/bin/env python3

"""Domain types shared by the adapters, the CLI and the renderers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class SearchType(Enum):
    TRACK = "track"
    ALBUM = "album"
    PLAYLIST = "playlist"
    ARTIST = "artist"

    @property
    def remote_code(self) -> int:
        """Numeric ``search_type`` understood by the search service."""
        return _SEARCH_TYPE_CODES[self]


_SEARCH_TYPE_CODES = {
    SearchType.TRACK: 0,
    SearchType.ARTIST: 1,
    SearchType.ALBUM: 2,
    SearchType.PLAYLIST: 3,
}


class Quality(Enum):
    """Audio quality levels and the media file naming they map to.

    M500 is 128kbps MP3, M800 320kbps MP3, F000 FLAC and RS01 Hi-Res FLAC.
    """

    STANDARD = "standard"
    HIGH = "high"
    SQ = "sq"
    FLAC = "flac"
    HIRES = "hires"

    @property
    def file_prefix(self) -> str:
        return _QUALITY_FILES[self][0]

    @property
    def extension(self) -> str:
        return _QUALITY_FILES[self][1]

    def filename(self, mid: str) -> str:
        return f"{self.file_prefix}{mid}{mid}{self.extension}"


_QUALITY_FILES = {
    Quality.STANDARD: ("M500", ".mp3"),
    Quality.HIGH: ("M800", ".mp3"),
    Quality.SQ: ("F000", ".flac"),
    Quality.FLAC: ("F000", ".flac"),
    Quality.HIRES: ("RS01", ".flac"),
}


@dataclass(frozen=True)
class Artist:
    id: str
    name: str


@dataclass(frozen=True)
class Album:
    id: str
    name: str
    pic_url: Optional[str] = None


@dataclass(frozen=True)
class Track:
    """A single song.

    Attributes:
        id: Song MID, the string identifier used by every track call.
        duration_ms: Duration in milliseconds.
        uri: ``qqmusic:track:<mid>``.
    """

    id: str
    name: str
    artists: Tuple[Artist, ...]
    album: Album
    duration_ms: int
    uri: str

    @property
    def artist_names(self) -> str:
        return ", ".join(artist.name for artist in self.artists)


@dataclass(frozen=True)
class Creator:
    id: str
    name: str


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str
    track_count: int
    description: Optional[str] = None
    cover_url: Optional[str] = None
    creator: Optional[Creator] = None
    tracks: Optional[Tuple[Track, ...]] = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    nickname: str
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class Lyric:
    lrc: Optional[str] = None
    tlyric: Optional[str] = None


@dataclass
class SearchResult:
    """One page of search results; only the list matching the query type is filled."""

    total: int
    offset: int
    limit: int
    search_type: SearchType = SearchType.TRACK
    tracks: List[Track] = field(default_factory=list)
    albums: List[Album] = field(default_factory=list)
    playlists: List[Playlist] = field(default_factory=list)
    artists: List[Artist] = field(default_factory=list)
