from itertools import islice

import pytest

from conftest import API_BASE, FakeHTTP, FakeResponse, build_pages, spotify_responder, track_item
from vibegroups.errors import AnalysisCancelled, FetchError
from vibegroups.playlist_ingestor import (
    TrackIngestor,
    extract_playlist_id,
    is_valid_item,
)
from vibegroups.rate_limiter import CancellationToken
from vibegroups.spotify_session import SpotifySession


def _ingestor(items, page_size=50, **kwargs):
    http = FakeHTTP(spotify_responder(build_pages(items, page_size=page_size), **kwargs))
    return TrackIngestor(SpotifySession("token", http=http), page_size=page_size), http


def test_150_tracks_take_three_requests():
    ingestor, http = _ingestor([track_item(i) for i in range(150)])
    tracks = ingestor.fetch_tracks("pl1")

    assert len(tracks) == 150
    assert len({t.id for t in tracks}) == 150
    assert len(http.calls) == 3
    assert http.calls[0]['params'] == {'limit': 50}
    assert all(call['params'] is None for call in http.calls[1:])
    assert http.calls[1]['url'].startswith(f"{API_BASE}/playlists/pl1/tracks?offset=50")


def test_invalid_items_are_dropped():
    items = [track_item(i) for i in range(10)]
    items += [
        {'track': None},
        {'track': {'name': 'Local file', 'type': 'track', 'id': None}},
        {'track': {'id': 'ep1', 'name': 'Podcast', 'type': 'episode'}},
        {},
        "garbage",
    ]
    ingestor, _ = _ingestor(items, page_size=4)
    tracks = ingestor.fetch_tracks("pl1")

    assert len(tracks) == sum(1 for item in items if is_valid_item(item)) == 10


def test_duplicate_ids_kept_once():
    items = [track_item(1), track_item(2), track_item(1)]
    ingestor, _ = _ingestor(items)
    sequence = ingestor.iter_tracks("pl1")

    assert [t.id for t in sequence] == ["track1", "track2"]
    assert sequence.duplicate_items == 1


def test_track_fields():
    ingestor, _ = _ingestor([track_item(3, artist="Daft Punk", name=" One More Time ")])
    track = ingestor.fetch_tracks("pl1")[0]

    assert track.name == "One More Time"
    assert track.artists == ("Daft Punk",)
    assert track.primary_artist == "Daft Punk"
    assert track.album.image_url == "https://img/3.jpg"
    assert track.duration_ms == 180000


def test_sequence_is_lazy_and_restartable():
    ingestor, http = _ingestor([track_item(i) for i in range(120)])
    sequence = ingestor.iter_tracks("pl1")

    assert http.calls == []
    first = list(islice(sequence, 10))
    assert len(http.calls) == 1

    everything = list(sequence)
    assert [t.id for t in everything[:10]] == [t.id for t in first]
    assert len(everything) == 120
    assert list(sequence) == everything
    assert len(http.calls) == 3
    assert sequence.exhausted


def test_failing_page_fails_the_whole_fetch():
    pages = build_pages([track_item(i) for i in range(100)])
    second_url = pages[f"{API_BASE}/playlists/pl1/tracks"]['next']

    def respond(url, params, headers):
        if url == second_url:
            return FakeResponse(500, {'error': {'status': 500}})
        return FakeResponse(200, pages[url])

    ingestor = TrackIngestor(SpotifySession("token", http=FakeHTTP(respond)))
    with pytest.raises(FetchError) as excinfo:
        ingestor.fetch_tracks("pl1")
    assert excinfo.value.status == 500


def test_unexpected_page_shape():
    http = FakeHTTP(lambda url, params, headers: FakeResponse(200, {'items': 'nope'}))
    with pytest.raises(FetchError):
        TrackIngestor(SpotifySession("token", http=http)).fetch_tracks("pl1")


def test_odd_field_types_are_coerced():
    items = [
        track_item(0, artists=[{'name': 123}, "not-an-artist"], album="Just a string"),
        track_item(1, name=42, album={'name': None, 'images': "nope"}),
    ]
    ingestor, _ = _ingestor(items)
    first, second = ingestor.fetch_tracks("pl1")

    assert first.artists == ("123",)
    assert first.album.name == ""
    assert first.album.image_url is None
    assert second.name == "42"
    assert second.album.name == ""


def test_unparseable_track_is_a_fetch_error():
    ingestor, _ = _ingestor([track_item(0), track_item(1, duration_ms="three minutes")])
    with pytest.raises(FetchError, match="Malformed track"):
        ingestor.fetch_tracks("pl1")


def test_empty_playlist():
    ingestor, http = _ingestor([])
    assert ingestor.fetch_tracks("pl1") == []
    assert len(http.calls) == 1


def test_cancel_before_first_page():
    token = CancellationToken()
    token.cancel()
    ingestor, http = _ingestor([track_item(i) for i in range(10)])
    with pytest.raises(AnalysisCancelled):
        ingestor.fetch_tracks("pl1", token)
    assert http.calls == []


def test_playlist_details():
    ingestor, _ = _ingestor([], details={
        'id': 'pl1', 'name': 'Night Drive', 'description': 'Neon &amp; rain',
        'images': [{'url': 'https://img/cover.jpg'}], 'tracks': {'total': 12},
    })
    details = ingestor.fetch_playlist_details("pl1")

    assert details.name == "Night Drive"
    assert details.description == "Neon & rain"
    assert details.image_url == "https://img/cover.jpg"
    assert details.total_tracks == 12


def test_page_size_is_capped():
    assert TrackIngestor(SpotifySession("t", http=FakeHTTP(None)), page_size=500).page_size == 50
    with pytest.raises(ValueError):
        TrackIngestor(SpotifySession("t", http=FakeHTTP(None)), page_size=0)


@pytest.mark.parametrize("value", [
    "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc",
    "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M/",
    "spotify:playlist:37i9dQZF1DXcBWIGoYBM5M",
    "  37i9dQZF1DXcBWIGoYBM5M  ",
])
def test_extract_playlist_id(value):
    assert extract_playlist_id(value) == "37i9dQZF1DXcBWIGoYBM5M"


@pytest.mark.parametrize("value", ["", "   ", None, "https://open.spotify.com/playlist/"])
def test_extract_playlist_id_rejects_empty(value):
    with pytest.raises(ValueError):
        extract_playlist_id(value)
