#!/usr/bin/env python3

from pathlib import Path
from typing import List, Optional, Tuple
import logging
import random
import tempfile

from qqm.client import ApiClient
from qqm.constants import DEFAULT_STREAM_HOST, DETAIL_BATCH_SIZE
from qqm.errors import TrackUnavailableError
from qqm.models import (
    Lyric,
    Playlist,
    Quality,
    SearchResult,
    SearchType,
    Track,
    UserProfile,
)
from qqm.processor import TrackProcessor
from qqm.thread_manager import ThreadManager


class ContentFetcher:
    """Domain operations on top of :class:`ApiClient`.

    Each method sends one fixed module/method/param call and reshapes the
    response with :class:`TrackProcessor`.
    """

    def __init__(
        self,
        client: ApiClient,
        processor: TrackProcessor,
        thread_manager: ThreadManager,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the content fetcher.

        Args:
            client: ApiClient used for every request.
            processor: TrackProcessor turning responses into models.
            thread_manager: ThreadManager for batched lookups.
            logger: Optional logger instance.
        """
        self.client = client
        self.processor = processor
        self.thread_manager = thread_manager
        self.logger = logger or logging.getLogger("ContentFetcher")

    # Search

    def search(
        self,
        keyword: str,
        search_type: SearchType = SearchType.TRACK,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        """Search the catalogue.

        Args:
            keyword: Search query.
            search_type: What to search for.
            limit: Page size.
            offset: Result offset; converted to a 1-based page number.

        Returns:
            A SearchResult with the list matching ``search_type`` filled in.
        """
        limit = max(limit, 1)
        data = self.client.call(
            "music.search.SearchCgiService",
            "DoSearchForQQMusicDesktop",
            {
                "query": keyword,
                "page_num": offset // limit + 1,
                "num_per_page": limit,
                "search_type": search_type.remote_code,
            },
        )
        body = data.get("body") or {}
        meta = data.get("meta") or {}
        result = SearchResult(
            total=int(meta.get("estimate_sum") or meta.get("sum") or 0),
            offset=offset,
            limit=limit,
            search_type=search_type,
        )

        def section(name: str) -> list:
            return (body.get(name) or {}).get("list") or []

        if search_type is SearchType.TRACK:
            result.tracks = self.processor.to_tracks(section("song"))
        elif search_type is SearchType.ALBUM:
            result.albums = [self.processor.search_album(a) for a in section("album")]
        elif search_type is SearchType.PLAYLIST:
            result.playlists = [
                self.processor.search_playlist(p) for p in section("songlist")
            ]
        elif search_type is SearchType.ARTIST:
            result.artists = [
                self.processor.search_artist(a) for a in section("singer")
            ]

        self.logger.debug(
            f"Search '{keyword}' ({search_type.value}) returned {result.total} total"
        )
        return result

    # Tracks

    def get_track_detail(self, mid: str) -> Track:
        data = self.client.call(
            "music.pf_song_detail_svr",
            "get_song_detail_yqq",
            {"song_mid": mid, "song_type": 0},
        )
        info = data.get("track_info") or {}
        if not info.get("mid"):
            raise TrackUnavailableError(
                f"Track not found: {mid}", details={"mid": mid}
            )
        return self.processor.to_track(info)

    def get_track_details(self, mids: List[str]) -> List[Track]:
        """Resolve many tracks by individual detail lookups.

        Lookups that fail are dropped from the result; the remaining tracks
        keep the order of ``mids``.
        """
        results = self.thread_manager.map_batched(
            self.get_track_detail, mids, DETAIL_BATCH_SIZE
        )
        tracks = [track for track in results if track is not None]
        if len(tracks) < len(mids):
            self.logger.info(f"Resolved {len(tracks)} of {len(mids)} tracks")
        return tracks

    def get_track_url(self, mid: str, quality: Quality = Quality.HIGH) -> str:
        """Resolve a temporary streaming URL.

        Raises:
            TrackUnavailableError: If the service returns no playable path.
        """
        data = self.client.call(
            "music.vkey.GetVkey",
            "UrlGetVkey",
            {
                "songmid": [mid],
                "songtype": [0],
                "filename": [quality.filename(mid)],
                "guid": str(random.randrange(10_000_000_000)),
                "platform": "20",
            },
        )
        url_info = data.get("midurlinfo") or []
        purl = url_info[0].get("purl") if url_info else None
        if not purl:
            raise TrackUnavailableError(
                "Track unavailable (no copyright or VIP required)",
                details={"mid": mid, "quality": quality.value},
            )
        sip = data.get("sip") or []
        host = sip[0] if sip and sip[0] else DEFAULT_STREAM_HOST
        return f"{host}{purl}"

    def get_lyric(self, mid: str) -> Lyric:
        data = self.client.call(
            "music.musichallSong.PlayLyricInfo",
            "GetPlayLyricInfo",
            {"songMID": mid, "songID": 0},
        )
        return Lyric(
            lrc=self.processor.decode_lyric(data.get("lyric")),
            tlyric=self.processor.decode_lyric(data.get("trans")),
        )

    def download_track(
        self,
        mid: str,
        quality: Quality = Quality.HIGH,
        output_path: Optional[str] = None,
    ) -> Tuple[Path, int]:
        """Download a track to disk.

        Args:
            mid: Track MID.
            quality: Requested quality.
            output_path: Destination; defaults to ``<tmp>/qqm-<mid>.<ext>``.

        Returns:
            Tuple of (destination path, size in bytes).
        """
        url = self.get_track_url(mid, quality)
        ext = "flac" if ".flac" in url else "mp3"
        dest = (
            Path(output_path)
            if output_path
            else Path(tempfile.gettempdir()) / f"qqm-{mid}.{ext}"
        )
        self.client.download(url, dest)
        return dest, dest.stat().st_size

    # Playlists

    def get_playlist_detail(self, playlist_id: str) -> Playlist:
        data = self.client.call(
            "music.srfDissInfo.aiDissInfo",
            "uniform_get_Ede_Diss_info",
            {
                "disstid": int(playlist_id),
                "onlysonglist": 0,
                "song_begin": 0,
                "song_num": 100000,
            },
        )
        return self.processor.playlist_detail(data)

    def get_user_playlists(self) -> List[Playlist]:
        data = self.client.call(
            "music.srfDissInfo.aiDissInfo", "uniform_get_homepage_diss_list"
        )
        return [self.processor.homepage_playlist(p) for p in data.get("disslist") or []]

    # User library

    def get_user_profile(self) -> UserProfile:
        data = self.client.call("music.UnLoginModule.MyHomepage", "MyHomepage")
        return self.processor.user_profile(data)

    def get_liked_track_ids(self) -> List[str]:
        data = self.client.call(
            "music.srfDissInfo.aiDissInfo",
            "uniform_get_Ede_Diss_info",
            {"onlysonglist": 1, "disstid": 0, "song_begin": 0, "song_num": 1000},
        )
        return [song.get("mid", "") for song in data.get("songlist") or []]

    def like_track(self, mid: str, like: bool = True) -> None:
        method = "AddSongFav" if like else "RemoveSongFav"
        self.client.call("music.musicasset.SongFavRead", method, {"songmid": [mid]})

    def get_recent_tracks(self, limit: int = 100) -> List[Track]:
        data = self.client.call(
            "music.musichallSong.RecentPlayList",
            "GetRecentPlayList",
            {"begin": 0, "num": limit},
        )
        return [
            self.processor.to_track(record.get("stSongInfo") or {})
            for record in data.get("vecPlayRecord") or []
        ]
