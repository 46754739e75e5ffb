"""
Playlist Ingestor - Collects the valid tracks of a Spotify playlist

Pages are followed through their ``next`` links one at a time. Items without
a track, without a track id, or whose type is not "track" (podcast episodes
show up in playlists too) are dropped, and repeated track ids are kept only
once.
"""
import html
import logging
from typing import Any, Dict, Iterator, List, Optional

from .errors import FetchError
from .models import PlaylistDetails, Track
from .rate_limiter import CancellationToken
from .spotify_session import SpotifySession

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


def extract_playlist_id(playlist_input: str) -> str:
    """
    Extract a playlist id from a URL, URI or bare id.

    Examples:
        https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc
        spotify:playlist:37i9dQZF1DXcBWIGoYBM5M
        37i9dQZF1DXcBWIGoYBM5M
    """
    value = (playlist_input or "").strip()
    if "playlist/" in value:
        value = value.split("playlist/")[-1].split("?")[0].split("/")[0]
    elif "spotify:playlist:" in value:
        value = value.split("spotify:playlist:")[-1]
    if not value:
        raise ValueError(f"Could not find a playlist id in {playlist_input!r}")
    return value


def is_valid_item(item: Any) -> bool:
    """True if a playlist item carries a real track with a stable id."""
    if not isinstance(item, dict):
        return False
    track = item.get('track')
    if not isinstance(track, dict):
        return False
    if not track.get('id'):
        return False
    return track.get('type') == 'track'


class PlaylistTrackSequence:
    """
    Lazy, restartable sequence of a playlist's valid tracks.

    Pages are fetched only as iteration reaches them. Iterating again
    replays the tracks already fetched before continuing, so no page is ever
    requested twice.
    """

    def __init__(
        self,
        session: SpotifySession,
        playlist_id: str,
        page_size: int = MAX_PAGE_SIZE,
        cancel: Optional[CancellationToken] = None,
    ):
        self.session = session
        self.playlist_id = playlist_id
        self.cancel = cancel
        self._tracks: List[Track] = []
        self._seen_ids = set()
        self._next_url: Optional[str] = f"playlists/{playlist_id}/tracks"
        self._next_params: Optional[Dict[str, Any]] = {'limit': page_size}
        self.pages_fetched = 0
        self.items_seen = 0
        self.invalid_items = 0
        self.duplicate_items = 0

    @property
    def exhausted(self) -> bool:
        return self._next_url is None

    def __iter__(self) -> Iterator[Track]:
        position = 0
        while True:
            while position < len(self._tracks):
                yield self._tracks[position]
                position += 1
            if self._next_url is None:
                return
            self._fetch_next_page()

    def _fetch_next_page(self) -> None:
        if self.cancel is not None:
            self.cancel.raise_if_cancelled()

        url = self._next_url
        data = self.session.get_json(url, self._next_params, self.cancel)
        self.pages_fetched += 1

        if not isinstance(data, dict) or not isinstance(data.get('items'), list):
            raise FetchError(f"Unexpected playlist page shape (page {self.pages_fetched})", url=url)

        for item in data['items']:
            self.items_seen += 1
            if not is_valid_item(item):
                self.invalid_items += 1
                continue
            try:
                track = Track.from_api(item['track'])
            except (TypeError, ValueError, AttributeError) as e:
                raise FetchError(
                    f"Malformed track on playlist page {self.pages_fetched}: {e}", url=url
                ) from e
            if track.id in self._seen_ids:
                self.duplicate_items += 1
                continue
            self._seen_ids.add(track.id)
            self._tracks.append(track)

        next_url = data.get('next')
        self._next_url = next_url if isinstance(next_url, str) and next_url else None
        self._next_params = None
        logger.debug(
            f"Playlist page {self.pages_fetched}: {len(data['items'])} items, "
            f"{len(self._tracks)} valid tracks so far"
        )


class TrackIngestor:
    """Reads playlist metadata and tracks through an authenticated session."""

    def __init__(self, session: SpotifySession, page_size: int = MAX_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.session = session
        self.page_size = min(page_size, MAX_PAGE_SIZE)

    def fetch_playlist_details(self, playlist_id: str,
                               cancel: Optional[CancellationToken] = None) -> PlaylistDetails:
        """
        Fetch playlist name, description and cover.

        Raises:
            FetchError: on a non-success response
            AuthExpiredError: if the session cannot be refreshed
        """
        data = self.session.get_json(f"playlists/{playlist_id}", cancel=cancel)
        if not isinstance(data, dict):
            raise FetchError(f"Unexpected playlist details shape for {playlist_id}")
        images = data.get('images') or []
        tracks = data.get('tracks') or {}
        return PlaylistDetails(
            id=data.get('id') or playlist_id,
            name=data.get('name') or '',
            description=html.unescape(data.get('description') or ''),
            image_url=images[0].get('url') if images and isinstance(images[0], dict) else None,
            total_tracks=int(tracks.get('total') or 0) if isinstance(tracks, dict) else 0,
        )

    def iter_tracks(self, playlist_id: str,
                    cancel: Optional[CancellationToken] = None) -> PlaylistTrackSequence:
        """Lazy sequence of the playlist's valid, de-duplicated tracks."""
        return PlaylistTrackSequence(self.session, playlist_id, self.page_size, cancel)

    def fetch_tracks(self, playlist_id: str,
                     cancel: Optional[CancellationToken] = None) -> List[Track]:
        """
        Fetch every valid track of a playlist.

        All-or-nothing: a failing page raises and nothing fetched so far is
        returned.

        Raises:
            FetchError: on a non-success page response
            AuthExpiredError: if the session cannot be refreshed
            AnalysisCancelled: if ``cancel`` fires between pages
        """
        sequence = self.iter_tracks(playlist_id, cancel)
        tracks = list(sequence)
        logger.info(
            f"Fetched {len(tracks)} tracks from playlist {playlist_id} "
            f"({sequence.pages_fetched} pages, {sequence.invalid_items} unplayable items, "
            f"{sequence.duplicate_items} duplicates skipped)"
        )
        return tracks
