"""
Data types shared across the pipeline.

Tracks and feature vectors are immutable once built; clustering results are
replaced wholesale on every run.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

SCALAR_DIMENSIONS: Tuple[str, ...] = ('energy', 'mood', 'popularity', 'era', 'mainstream')


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass(frozen=True)
class AlbumRef:
    name: str
    image_url: Optional[str] = None
    release_date: Optional[str] = None


@dataclass(frozen=True)
class Track:
    """A playable track taken from a playlist page."""
    id: str
    name: str
    artists: Tuple[str, ...]
    album: AlbumRef
    duration_ms: int = 0
    preview_url: Optional[str] = None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Track':
        album = data.get('album')
        if not isinstance(album, dict):
            album = {}
        images = album.get('images')
        if not isinstance(images, list):
            images = []
        artists = data.get('artists')
        if not isinstance(artists, list):
            artists = []
        return cls(
            id=str(data['id']),
            name=_text(data.get('name')),
            artists=tuple(
                _text(a.get('name'))
                for a in artists
                if isinstance(a, dict) and a.get('name')
            ),
            album=AlbumRef(
                name=_text(album.get('name')),
                image_url=images[0].get('url') if images and isinstance(images[0], dict) else None,
                release_date=album.get('release_date'),
            ),
            duration_ms=int(data.get('duration_ms') or 0),
            preview_url=data.get('preview_url'),
        )


@dataclass(frozen=True)
class PlaylistDetails:
    id: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    total_tracks: int = 0


@dataclass(frozen=True)
class PlayStats:
    """Play-count statistics reported by the tag source (0 when unknown)."""
    track_playcount: int = 0
    track_listeners: int = 0
    artist_playcount: int = 0
    artist_listeners: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.track_playcount or self.track_listeners
                    or self.artist_playcount or self.artist_listeners)


@dataclass(frozen=True)
class TagLookup:
    """Result of the track + artist tag lookups for one track."""
    tags: Tuple[str, ...] = ()
    stats: PlayStats = field(default_factory=PlayStats)


@dataclass(frozen=True)
class FeatureVector:
    """
    Numeric encoding of one track's inferred character.

    All scalar dimensions lie in [0, 1]. ``vibe_category`` and ``genre`` are
    the discrete labels used for cluster-count selection and naming.
    """
    energy: float = 0.5
    mood: float = 0.5
    popularity: float = 0.5
    era: float = 0.5
    mainstream: float = 0.5
    vibe_category: str = "chill"
    genre: str = "other"
    primary_tags: Tuple[str, ...] = ()

    def scalars(self) -> Tuple[float, ...]:
        return tuple(getattr(self, name) for name in SCALAR_DIMENSIONS)

    def as_array(self, genre_slots: Optional[Sequence[str]] = None) -> np.ndarray:
        """Scalar dimensions, optionally followed by a one-hot genre block."""
        values = list(self.scalars())
        if genre_slots:
            values.extend(1.0 if slot == self.genre else 0.0 for slot in genre_slots)
        return np.asarray(values, dtype=float)


@dataclass(frozen=True)
class TrackAnalysis:
    track: Track
    features: FeatureVector
    tagged: bool = True


@dataclass(frozen=True)
class PlaylistAnalysis:
    """Tracks with their feature vectors; the unclustered view of a playlist."""
    details: Optional[PlaylistDetails]
    analyses: Tuple[TrackAnalysis, ...]

    @property
    def tracks(self) -> List[Track]:
        return [a.track for a in self.analyses]


@dataclass(frozen=True)
class ClusterLabel:
    name: str
    emoji: str
    description: str
    category: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.emoji} {self.name}" if self.emoji else self.name


@dataclass(frozen=True)
class Cluster:
    index: int
    members: Tuple[TrackAnalysis, ...]
    label: ClusterLabel

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class ClusteringResult:
    k: int
    assignments: Tuple[int, ...]
    centroids: np.ndarray
    iterations: int
    converged: bool
    clusters: Tuple[Cluster, ...]
    mode: str = "vibe"
    silhouette: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'k': self.k,
            'mode': self.mode,
            'iterations': self.iterations,
            'converged': self.converged,
            'silhouette': self.silhouette,
            'clusters': [
                {
                    'index': c.index,
                    'name': c.label.name,
                    'emoji': c.label.emoji,
                    'description': c.label.description,
                    'tracks': [
                        {
                            'id': m.track.id,
                            'name': m.track.name,
                            'artists': list(m.track.artists),
                            'vibe': m.features.vibe_category,
                            'genre': m.features.genre,
                        }
                        for m in c.members
                    ],
                }
                for c in self.clusters
            ],
        }
