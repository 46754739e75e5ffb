import json

import pytest

import vibegroups.cli as cli
from conftest import FakeHTTP, FakeTagClient, build_pages, spotify_responder, track_item
from vibegroups.errors import AuthExpiredError, FetchError
from vibegroups.features import FeatureExtractor
from vibegroups.pipeline import VibePipeline
from vibegroups.playlist_ingestor import TrackIngestor
from vibegroups.spotify_session import SpotifySession
from vibegroups.vocabulary import load_vocabulary


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv('LASTFM_API_KEY', raising=False)
    monkeypatch.delenv('SPOTIFY_ACCESS_TOKEN', raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    path = tmp_path / "config.yaml"
    path.write_text(
        "spotify:\n  access_token: tok\nlastfm:\n  api_key: key\nclustering:\n  seed: 1\n",
        encoding="utf-8",
    )
    return path


def _fake_pipeline(monkeypatch, n_tracks):
    def build(config, session, tag_client=None):
        http = FakeHTTP(spotify_responder(build_pages([track_item(i) for i in range(n_tracks)])))
        ingestor = TrackIngestor(SpotifySession("tok", http=http))
        return VibePipeline(ingestor, FakeTagClient(), extractor=FeatureExtractor(load_vocabulary()),
                            seed=config.cluster_seed)

    monkeypatch.setattr(cli.VibePipeline, "from_config", staticmethod(build))


def test_json_output(config_file, monkeypatch, capsys):
    _fake_pipeline(monkeypatch, 6)
    code = cli.main(["analyze", "pl1", "--config", str(config_file), "--json", "-k", "2"])

    assert code == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload['k'] == 2
    assert payload['playlist'] == {'id': 'pl1', 'name': 'Test Playlist'}
    assert sum(len(c['tracks']) for c in payload['clusters']) == 6


def test_console_report(config_file, monkeypatch, capsys):
    _fake_pipeline(monkeypatch, 4)
    code = cli.main(["analyze", "spotify:playlist:pl1", "--config", str(config_file)])

    assert code == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "VIBE GROUPS" in out
    assert "Test Playlist (4 tracks)" in out


def test_insufficient_data_exit_code(config_file, monkeypatch, capsys):
    _fake_pipeline(monkeypatch, 3)
    code = cli.main(["analyze", "pl1", "--config", str(config_file), "-k", "4"])

    assert code == cli.EXIT_INSUFFICIENT
    out = capsys.readouterr().out
    assert "Insufficient Data" in out
    assert "VIBES" in out


def test_missing_config_exit_code(tmp_path, capsys):
    code = cli.main(["analyze", "pl1", "--config", str(tmp_path / "nope.yaml")])
    assert code == cli.EXIT_CONFIG
    assert "Configuration Error" in capsys.readouterr().out


def test_invalid_playlist_exit_code(config_file):
    assert cli.main(["analyze", "   ", "--config", str(config_file)]) == cli.EXIT_FETCH


def test_mode_and_seed_overrides(config_file):
    args = cli.build_parser().parse_args(["analyze", "pl1", "--config", str(config_file),
                                          "--mode", "genre", "--seed", "5"])
    config = cli.load_config(args)
    assert config.cluster_mode == "genre"
    assert config.cluster_seed == 5


@pytest.mark.parametrize("error, code", [
    (FetchError("boom", status=500), cli.EXIT_FETCH),
    (AuthExpiredError("expired"), cli.EXIT_AUTH),
])
def test_error_exit_codes(error, code):
    assert cli.exit_code_for(error) == code
