"""End-to-end runs against fake Spotify and Last.FM endpoints."""
from unittest.mock import MagicMock

import pytest

import vibegroups.pipeline as pipeline_module
from conftest import FakeHTTP, FakeResponse, FakeTagClient, build_pages, spotify_responder, track_item
from vibegroups.errors import InsufficientDataError
from vibegroups.features import NEUTRAL, FeatureExtractor
from vibegroups.lastfm_client import LastFMTagClient
from vibegroups.pipeline import VibePipeline
from vibegroups.playlist_ingestor import TrackIngestor
from vibegroups.spotify_session import SpotifySession
from vibegroups.vocabulary import load_vocabulary


def _spotify(items):
    http = FakeHTTP(spotify_responder(build_pages(items)))
    return TrackIngestor(SpotifySession("token", http=http)), http


def test_untagged_tracks_are_partitioned_exactly():
    items = [track_item(i, name=f"Track {i}") for i in range(5)]
    ingestor, _ = _spotify(items)
    pipeline = VibePipeline(ingestor, FakeTagClient(), extractor=FeatureExtractor(load_vocabulary()), seed=4)

    result = pipeline.run("pl1", k=2)

    assert all(not a.tagged for a in result.analysis.analyses)
    assert all(a.features.scalars() == (NEUTRAL,) * 5 for a in result.analysis.analyses)
    assert len(result.clustering.assignments) == 5
    assert set(result.clustering.assignments) <= {0, 1}
    member_ids = [m.track.id for c in result.clustering.clusters for m in c.members]
    assert sorted(member_ids) == sorted(f"track{i}" for i in range(5))


def test_three_pages_for_150_tracks():
    items = [track_item(i) for i in range(150)]
    ingestor, http = _spotify(items)
    pipeline = VibePipeline(ingestor, FakeTagClient(), extractor=FeatureExtractor(load_vocabulary()))

    analysis = pipeline.analyze("pl1", include_details=False)

    assert len(http.calls) == 3
    ids = [t.id for t in analysis.tracks]
    assert len(ids) == len(set(ids)) == 150


def test_lastfm_server_errors_leave_neutral_vectors(unlimited):
    items = [track_item(i, name=f"Track {i}") for i in range(4)]
    ingestor, _ = _spotify(items)
    lastfm_http = FakeHTTP(lambda url, params, headers: FakeResponse(500))
    tag_client = LastFMTagClient("key", max_retries=0, session=lastfm_http, rate_limiter=unlimited)
    pipeline = VibePipeline(ingestor, tag_client, extractor=FeatureExtractor(load_vocabulary()), seed=0)

    result = pipeline.run("pl1", k=2)

    assert len(lastfm_http.calls) == 8
    assert all(a.features == pipeline.extractor.neutral() for a in result.analysis.analyses)
    assert sum(c.size for c in result.clustering.clusters) == 4


def test_too_few_tracks_for_k_skips_clustering(monkeypatch):
    items = [track_item(i) for i in range(3)]
    ingestor, _ = _spotify(items)
    pipeline = VibePipeline(ingestor, FakeTagClient(), extractor=FeatureExtractor(load_vocabulary()))
    spy = MagicMock()
    monkeypatch.setattr(pipeline_module, "kmeans", spy)

    with pytest.raises(InsufficientDataError) as excinfo:
        pipeline.run("pl1", k=4)

    spy.assert_not_called()
    assert (excinfo.value.required, excinfo.value.available) == (4, 3)
    assert len(excinfo.value.analysis.analyses) == 3
