"""Test configuration and fixtures."""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from vibegroups.models import PlayStats, TagLookup
from vibegroups.rate_limiter import RateLimiter

API_BASE = "https://api.spotify.com/v1"


class FakeResponse:
    """Just enough of requests.Response for the clients under test."""

    def __init__(self, status_code: int = 200, payload: Any = None, invalid_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHTTP:
    """
    Stand-in for requests.Session.

    ``responder(url, params, headers)`` returns a FakeResponse or raises.
    Every call is recorded in ``calls``.
    """

    def __init__(self, responder: Callable[[str, Optional[Dict], Dict], FakeResponse]):
        self.responder = responder
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers or {}, 'timeout': timeout})
        return self.responder(url, params, headers or {})


def track_item(index: int, artist: str = None, name: str = None, **overrides) -> Dict[str, Any]:
    track = {
        'id': f"track{index}",
        'name': name or f"Song {index}",
        'type': 'track',
        'artists': [{'name': artist or f"Artist {index % 7}"}],
        'album': {'name': f"Album {index}", 'images': [{'url': f"https://img/{index}.jpg"}],
                  'release_date': '2020-01-01'},
        'duration_ms': 180000,
        'preview_url': None,
    }
    track.update(overrides)
    return {'track': track}


def build_pages(items: List[Dict[str, Any]], playlist_id: str = "pl1",
                page_size: int = 50) -> Dict[str, Dict[str, Any]]:
    """
    Split playlist items into Spotify pages keyed by request URL.

    The first page is keyed by the relative tracks URL; later pages by their
    absolute ``next`` link.
    """
    first_url = f"{API_BASE}/playlists/{playlist_id}/tracks"
    chunks = [items[i:i + page_size] for i in range(0, len(items), page_size)] or [[]]
    pages = {}
    for number, chunk in enumerate(chunks):
        url = first_url if number == 0 else f"{first_url}?offset={number * page_size}&limit={page_size}"
        has_next = number + 1 < len(chunks)
        pages[url] = {
            'items': chunk,
            'next': f"{first_url}?offset={(number + 1) * page_size}&limit={page_size}" if has_next else None,
            'total': len(items),
        }
    return pages


def spotify_responder(pages: Dict[str, Dict[str, Any]], details: Optional[Dict[str, Any]] = None,
                      playlist_id: str = "pl1"):
    def respond(url, params, headers):
        if url in pages:
            return FakeResponse(200, pages[url])
        if url == f"{API_BASE}/playlists/{playlist_id}":
            return FakeResponse(200, details or {'id': playlist_id, 'name': 'Test Playlist',
                                                 'description': 'Late &amp; loud', 'images': [],
                                                 'tracks': {'total': 0}})
        return FakeResponse(404, {'error': {'status': 404, 'message': 'Not found'}})
    return respond


class FakeTagClient:
    """Tag client returning canned lookups keyed by (artist, title)."""

    def __init__(self, lookups: Optional[Dict[tuple, Optional[TagLookup]]] = None):
        self.lookups = lookups or {}
        self.calls: List[tuple] = []

    def lookup(self, artist_name, track_name, cancel=None):
        self.calls.append((artist_name, track_name))
        return self.lookups.get((artist_name, track_name))

    def get_stats(self) -> dict:
        return {'requests': len(self.calls) * 2, 'failed_requests': 0}


SYNTHETIC_VOCABULARY = """
energy:
  high: [zap]
  low: [snooze]
  medium: [hum]
mood:
  happy: [grin]
  sad: [frown]
  neutral: [shrug]
romantic: [heart]
era:
  vintage: [sepia]
  modern: [chrome]
mainstream:
  popular: [radio]
  niche: [basement]
fallback:
  energy:
    high: [boom]
    low: [hush]
  mood:
    happy: [yay]
    sad: [boo]
vibe_tags:
  - {category: nostalgic, keywords: [sepia]}
genres:
  alpha: [alpha]
  beta: [beta]
categories:
  party: {emoji: "🎉", description: "Loud and bright", energy: [0.7, 1.0], mood: [0.6, 1.0]}
  chill: {emoji: "😌", description: "Quiet and warm", energy: [0.0, 0.4], mood: [0.5, 1.0]}
  melancholy: {emoji: "😔", description: "Quiet and blue", energy: [0.0, 0.5], mood: [0.0, 0.4]}
"""


@pytest.fixture()
def synthetic_vocabulary_path(tmp_path):
    path = tmp_path / "vocabulary.yaml"
    path.write_text(SYNTHETIC_VOCABULARY, encoding="utf-8")
    return path


@pytest.fixture()
def synthetic_vocabulary(synthetic_vocabulary_path):
    from vibegroups.vocabulary import load_vocabulary
    return load_vocabulary(synthetic_vocabulary_path)


@pytest.fixture()
def no_sleep(monkeypatch):
    """Record backoff sleeps instead of sleeping."""
    import vibegroups.lastfm_client as lastfm_client
    import vibegroups.retry_helper as retry_helper

    slept: List[float] = []
    monkeypatch.setattr(lastfm_client.time, "sleep", slept.append)
    monkeypatch.setattr(retry_helper.time, "sleep", slept.append)
    return slept


@pytest.fixture()
def unlimited():
    """Rate limiter that never waits."""
    return RateLimiter(min_interval=0)


@pytest.fixture()
def make_lookup():
    def _make(tags=(), track_playcount=0, artist_listeners=0):
        return TagLookup(
            tags=tuple(tags),
            stats=PlayStats(track_playcount=track_playcount, artist_listeners=artist_listeners),
        )
    return _make
