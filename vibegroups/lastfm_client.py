"""
Last.FM Tag Client - Fetches descriptive tags and play statistics per track
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

import requests

from .errors import MalformedResponseError
from .models import PlayStats, TagLookup
from .rate_limiter import CancellationToken, RateLimiter

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> List[Any]:
    # Last.FM returns a bare object instead of a one-element list
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def parse_tag_names(container: Any) -> List[str]:
    """
    Extract lowercased tag names from a ``{"tag": [{"name": ...}]}`` block.

    Raises:
        MalformedResponseError: if the block is not shaped like a tag list
    """
    if container is None or container == "":
        return []
    if not isinstance(container, dict):
        raise MalformedResponseError(f"Expected tag container object, got {type(container).__name__}")

    names = []
    for tag in _as_list(container.get('tag')):
        if not isinstance(tag, dict):
            raise MalformedResponseError(f"Expected tag object, got {type(tag).__name__}")
        name = str(tag.get('name') or '').lower().strip()
        if name:
            names.append(name)
    return names


def _tags_or_empty(container: Any, source: str) -> List[str]:
    try:
        return parse_tag_names(container)
    except MalformedResponseError as e:
        logger.debug(f"Ignoring malformed {source} tags: {e}")
        return []


def parse_track_info(track: Any) -> Tuple[List[str], int, int]:
    """
    Return (tags, playcount, listeners) from a ``track.getInfo`` payload.

    A malformed tag block yields no tags; the counts are still read.
    """
    if not isinstance(track, dict):
        raise MalformedResponseError("track.getInfo payload is not an object")
    tags = _tags_or_empty(track.get('toptags'), 'track')
    return tags, _as_int(track.get('playcount')), _as_int(track.get('listeners'))


def parse_artist_info(artist: Any) -> Tuple[List[str], int, int]:
    """Return (tags, playcount, listeners) from an ``artist.getInfo`` payload."""
    if not isinstance(artist, dict):
        raise MalformedResponseError("artist.getInfo payload is not an object")
    tags = _tags_or_empty(artist.get('tags'), 'artist')
    stats = artist.get('stats')
    if not isinstance(stats, dict):
        if stats:
            logger.debug(f"Ignoring malformed artist stats block: {type(stats).__name__}")
        stats = {}
    return tags, _as_int(stats.get('playcount')), _as_int(stats.get('listeners'))


class LastFMTagClient:
    """
    Client for the Last.FM track/artist info endpoints.

    Every outbound request passes through one shared RateLimiter, so
    requests are never issued closer together than ``min_request_interval``
    seconds. Failures never propagate: a failed lookup contributes no tags.
    """

    BASE_URL = "https://ws.audioscrobbler.com/2.0/"

    def __init__(
        self,
        api_key: str,
        min_request_interval: float = 0.25,
        max_tags: int = 10,
        concurrent_lookups: bool = True,
        max_retries: int = 2,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize Last.FM tag client

        Args:
            api_key: Last.FM API key
            min_request_interval: Minimum seconds between requests
            max_tags: Tags kept per track after concatenation
            concurrent_lookups: Let the track and artist lookups overlap in flight
            max_retries: Retries for 5xx responses before giving up
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject a fake)
            rate_limiter: Optional limiter shared with other clients
        """
        self.api_key = api_key
        self.max_tags = max_tags
        self.concurrent_lookups = concurrent_lookups
        self.max_retries = max_retries
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter(min_interval=min_request_interval)
        self.request_count = 0
        self.failed_count = 0
        # Track and artist lookups update the counters from two threads
        self._stats_lock = threading.Lock()

        logger.debug(
            f"Initialized Last.FM tag client (interval={self.rate_limiter.min_interval:.3f}s, "
            f"max_tags={max_tags}, concurrent_lookups={concurrent_lookups})"
        )

    def _make_request(
        self,
        method: str,
        params: Dict[str, Any],
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[Dict]:
        """
        Make a request to the Last.FM API.

        5xx responses are retried with exponential backoff; any other
        failure returns None immediately.

        Returns:
            JSON response or None on error
        """
        request_params = {
            'method': method,
            'api_key': self.api_key,
            'format': 'json',
            'autocorrect': 1,
            **params
        }
        initial_delay = 1.0

        for attempt in range(self.max_retries + 1):
            self.rate_limiter.wait(cancel)
            with self._stats_lock:
                self.request_count += 1
            try:
                response = self.session.get(self.BASE_URL, params=request_params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logger.warning(f"Last.FM {method} request failed: {e}")
                self._record_failure()
                return None

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = initial_delay * (2 ** attempt)
                logger.warning(
                    f"Last.FM returned {response.status_code} for {method} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}), retrying in {delay:.1f}s"
                )
                if cancel is not None:
                    cancel.sleep(delay)
                else:
                    time.sleep(delay)
                continue

            if not 200 <= response.status_code < 300:
                logger.warning(f"Last.FM {method} returned HTTP {response.status_code}")
                self._record_failure()
                return None

            try:
                data = response.json()
            except ValueError:
                logger.warning(f"Last.FM {method} returned a non-JSON body")
                self._record_failure()
                return None

            if isinstance(data, dict) and 'error' in data:
                # Unknown track/artist comes back as 200 with an error code
                logger.debug(f"Last.FM {method} error {data.get('error')}: {data.get('message', '')}")
                return None
            return data if isinstance(data, dict) else None

        self._record_failure()
        return None

    def _record_failure(self) -> None:
        with self._stats_lock:
            self.failed_count += 1

    def get_track_info(self, artist_name: str, track_name: str,
                       cancel: Optional[CancellationToken] = None) -> Optional[Dict]:
        """
        Get the ``track`` object from track.getInfo

        Args:
            artist_name: Name of the artist
            track_name: Name of the track

        Returns:
            Raw track object or None
        """
        data = self._make_request('track.getInfo', {'artist': artist_name, 'track': track_name}, cancel)
        return data.get('track') if data else None

    def get_artist_info(self, artist_name: str,
                        cancel: Optional[CancellationToken] = None) -> Optional[Dict]:
        """
        Get the ``artist`` object from artist.getInfo

        Args:
            artist_name: Name of the artist

        Returns:
            Raw artist object or None
        """
        data = self._make_request('artist.getInfo', {'artist': artist_name}, cancel)
        return data.get('artist') if data else None

    def _fetch_both(self, artist_name: str, track_name: str,
                    cancel: Optional[CancellationToken]) -> Tuple[Optional[Dict], Optional[Dict]]:
        if not self.concurrent_lookups:
            return (self.get_track_info(artist_name, track_name, cancel),
                    self.get_artist_info(artist_name, cancel))

        with ThreadPoolExecutor(max_workers=2) as executor:
            track_future = executor.submit(self.get_track_info, artist_name, track_name, cancel)
            artist_future = executor.submit(self.get_artist_info, artist_name, cancel)
            return track_future.result(), artist_future.result()

    def lookup(self, artist_name: str, track_name: str,
               cancel: Optional[CancellationToken] = None) -> Optional[TagLookup]:
        """
        Fetch tags and play statistics for one track.

        Track tags come first, then artist tags; only the first ``max_tags``
        are kept.

        Returns:
            TagLookup, or None when neither lookup produced tags or statistics
        """
        track_info, artist_info = self._fetch_both(artist_name, track_name, cancel)

        track_tags: List[str] = []
        track_plays = track_listeners = 0
        if track_info is not None:
            try:
                track_tags, track_plays, track_listeners = parse_track_info(track_info)
            except MalformedResponseError as e:
                logger.debug(f"Ignoring malformed track info for {artist_name} - {track_name}: {e}")

        artist_tags: List[str] = []
        artist_plays = artist_listeners = 0
        if artist_info is not None:
            try:
                artist_tags, artist_plays, artist_listeners = parse_artist_info(artist_info)
            except MalformedResponseError as e:
                logger.debug(f"Ignoring malformed artist info for {artist_name}: {e}")

        stats = PlayStats(
            track_playcount=track_plays,
            track_listeners=track_listeners,
            artist_playcount=artist_plays,
            artist_listeners=artist_listeners,
        )
        tags = tuple((track_tags + artist_tags)[:self.max_tags])

        if not tags and stats.is_empty:
            logger.debug(f"No Last.FM data for {artist_name} - {track_name}")
            return None
        return TagLookup(tags=tags, stats=stats)

    def get_stats(self) -> dict:
        with self._stats_lock:
            counts = {'requests': self.request_count, 'failed_requests': self.failed_count}
        return {
            **counts,
            **self.rate_limiter.get_stats(),
        }
