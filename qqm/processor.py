#!/usr/bin/env python3

from typing import Any, Dict, List, Optional
import base64
import logging

from qqm.constants import ALBUM_COVER_URL
from qqm.models import Album, Artist, Creator, Playlist, Track, UserProfile


class TrackProcessor:
    """Translates the service's JSON shapes into domain models."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize the track processor.

        Args:
            logger: Optional logger instance. Defaults to a new logger if None.
        """
        self.logger = logger or logging.getLogger("TrackProcessor")

    def album_cover_url(self, pmid: Optional[str]) -> Optional[str]:
        return ALBUM_COVER_URL.format(pmid=pmid) if pmid else None

    def to_track(self, raw: Dict[str, Any]) -> Track:
        """Build a Track from a song entry.

        The same song shape (``mid``, ``name``, ``singer``, ``album``,
        ``interval`` in seconds) is returned by search, detail, playlist,
        favourites and play history calls.

        Args:
            raw: Song dictionary from an API response.

        Returns:
            The corresponding Track.
        """
        album = raw.get("album") or {}
        mid = raw.get("mid", "")
        return Track(
            id=mid,
            name=raw.get("name", ""),
            artists=tuple(
                Artist(id=singer.get("mid", ""), name=singer.get("name", ""))
                for singer in raw.get("singer") or []
            ),
            album=Album(
                id=album.get("mid", ""),
                name=album.get("name", ""),
                pic_url=self.album_cover_url(album.get("pmid")),
            ),
            duration_ms=int(raw.get("interval") or 0) * 1000,
            uri=f"qqmusic:track:{mid}",
        )

    def to_tracks(self, raw_list: Optional[List[Dict[str, Any]]]) -> List[Track]:
        return [self.to_track(raw) for raw in raw_list or []]

    def search_album(self, raw: Dict[str, Any]) -> Album:
        return Album(
            id=raw.get("albumMID", ""),
            name=raw.get("albumName", ""),
            pic_url=raw.get("albumPic"),
        )

    def search_artist(self, raw: Dict[str, Any]) -> Artist:
        return Artist(id=raw.get("singerMID", ""), name=raw.get("singerName", ""))

    def search_playlist(self, raw: Dict[str, Any]) -> Playlist:
        creator = raw.get("creator")
        return Playlist(
            id=str(raw.get("dissid", "")),
            name=raw.get("dissname", ""),
            description=raw.get("introduction"),
            cover_url=raw.get("imgurl"),
            track_count=int(raw.get("song_count") or 0),
            creator=self._creator(creator),
        )

    def playlist_detail(self, data: Dict[str, Any]) -> Playlist:
        """Build a Playlist (with tracks) from a diss info response."""
        info = data.get("dirinfo") or {}
        songlist = data.get("songlist")
        return Playlist(
            id=str(info.get("id", "")),
            name=info.get("title", ""),
            description=info.get("desc"),
            cover_url=info.get("picurl"),
            track_count=int(info.get("songnum") or 0),
            creator=self._creator(info.get("creator")),
            tracks=tuple(self.to_tracks(songlist)) if songlist is not None else None,
        )

    def homepage_playlist(self, raw: Dict[str, Any]) -> Playlist:
        return Playlist(
            id=str(raw.get("tid", "")),
            name=raw.get("diss_name", ""),
            cover_url=raw.get("diss_cover"),
            track_count=int(raw.get("song_cnt") or 0),
        )

    def user_profile(self, data: Dict[str, Any]) -> UserProfile:
        creator = data.get("creator") or {}
        return UserProfile(
            id=creator.get("encrypt_uin", ""),
            nickname=creator.get("nick", ""),
            avatar_url=creator.get("headpic"),
        )

    def decode_lyric(self, encoded: Optional[str]) -> Optional[str]:
        """Lyrics arrive base64 encoded; empty means no lyric of that kind."""
        if not encoded:
            return None
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            self.logger.warning(f"Could not decode lyric payload: {e}")
            return None

    def _creator(self, raw: Optional[Dict[str, Any]]) -> Optional[Creator]:
        if not raw:
            return None
        return Creator(id=raw.get("encrypt_uin", ""), name=raw.get("name", ""))


def format_duration(ms: Optional[int]) -> str:
    """Format milliseconds as ``m:ss``."""
    return format_seconds((ms or 0) / 1000)


def format_seconds(seconds: Optional[float]) -> str:
    """Format seconds as ``m:ss``; negative or missing values read as 0:00."""
    total = max(int(seconds or 0), 0)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"
