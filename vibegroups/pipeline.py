"""
Vibe Pipeline
=============
Orchestrates one analysis run:

    playlist pages -> tags per track -> feature vectors -> k-means -> labels

Tracks are analyzed strictly one at a time through the tag client's rate
limiter. Playlist and authentication failures end the run; tag lookup
failures only cost the affected track its tags. Clustering failures leave
the unclustered analysis available on the raised InsufficientDataError.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config_loader import Config
from .errors import (
    AnalysisCancelled,
    AnalysisError,
    AuthExpiredError,
    FetchError,
    InsufficientDataError,
)
from .features import FeatureExtractor, raw_popularity, rescale_dimension
from .kmeans import choose_cluster_count, kmeans, silhouette
from .labeler import VibeLabeler
from .lastfm_client import LastFMTagClient
from .logging_utils import ProgressLogger, RunSummary, stage_timer
from .models import (
    Cluster,
    ClusteringResult,
    FeatureVector,
    PlaylistAnalysis,
    TagLookup,
    Track,
    TrackAnalysis,
)
from .playlist_ingestor import TrackIngestor
from .rate_limiter import CancellationToken
from .spotify_session import SpotifySession
from .vocabulary import load_vocabulary

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class PipelineResult:
    analysis: PlaylistAnalysis
    clustering: ClusteringResult


class VibePipeline:
    """Runs ingestion, feature extraction, clustering and labeling."""

    def __init__(
        self,
        ingestor: TrackIngestor,
        tag_client: LastFMTagClient,
        extractor: Optional[FeatureExtractor] = None,
        labeler: Optional[VibeLabeler] = None,
        mode: str = 'vibe',
        min_clusters: int = 2,
        max_clusters: int = 6,
        max_iterations: int = 100,
        seed: Optional[int] = None,
        popularity_scaling: str = 'absolute',
    ):
        self.ingestor = ingestor
        self.tag_client = tag_client
        self.extractor = extractor or FeatureExtractor()
        self.labeler = labeler or VibeLabeler(self.extractor.vocabulary)
        self.mode = mode
        self.min_clusters = min_clusters
        self.max_clusters = max_clusters
        self.max_iterations = max_iterations
        self.seed = seed
        self.popularity_scaling = popularity_scaling

    @classmethod
    def from_config(cls, config: Config, session: SpotifySession,
                    tag_client: Optional[LastFMTagClient] = None) -> 'VibePipeline':
        vocabulary = load_vocabulary(config.vocabulary_path)
        extractor = FeatureExtractor(vocabulary, max_tags=config.lastfm_max_tags)
        if tag_client is None:
            tag_client = LastFMTagClient(
                api_key=config.lastfm_api_key,
                min_request_interval=config.lastfm_min_request_interval,
                max_tags=config.lastfm_max_tags,
                concurrent_lookups=config.lastfm_concurrent_lookups,
                max_retries=config.lastfm_max_retries,
                timeout=config.lastfm_timeout,
            )
        return cls(
            ingestor=TrackIngestor(session),
            tag_client=tag_client,
            extractor=extractor,
            labeler=VibeLabeler(vocabulary),
            mode=config.cluster_mode,
            min_clusters=config.min_clusters,
            max_clusters=config.max_clusters,
            max_iterations=config.max_iterations,
            seed=config.cluster_seed,
            popularity_scaling=config.popularity_scaling,
        )

    @property
    def genre_driven(self) -> bool:
        return self.mode == 'genre'

    # ------------------------------------------------------------------
    # Feature extraction
    # ------------------------------------------------------------------

    def vector_for(self, artist: str, title: str,
                   cancel: Optional[CancellationToken] = None) -> Optional[FeatureVector]:
        """
        Feature vector for one (artist, title) pair.

        Returns None when Last.FM knows nothing about the track and the title
        gives the fallback heuristic nothing to work with either.
        """
        return self._vector_from_lookup(self.tag_client.lookup(artist, title, cancel), title)

    def _vector_from_lookup(self, lookup: Optional[TagLookup], title: str) -> Optional[FeatureVector]:
        if lookup is not None:
            return self.extractor.extract(lookup.tags, lookup.stats, title)
        vector = self.extractor.extract((), None, title)
        if vector == self.extractor.neutral():
            return None
        return vector

    def analyze_track(self, track: Track, cancel: Optional[CancellationToken] = None) -> TrackAnalysis:
        analysis, _ = self._analyze_track(track, cancel)
        return analysis

    def _analyze_track(self, track: Track,
                       cancel: Optional[CancellationToken]) -> Tuple[TrackAnalysis, Optional[float]]:
        lookup = self.tag_client.lookup(track.primary_artist, track.name, cancel)
        vector = self._vector_from_lookup(lookup, track.name)
        raw = raw_popularity(lookup.stats) if lookup is not None else None
        if vector is None:
            return TrackAnalysis(track=track, features=self.extractor.neutral(), tagged=False), raw
        return TrackAnalysis(track=track, features=vector, tagged=True), raw

    def analyze(
        self,
        playlist_id: str,
        cancel: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
        include_details: bool = True,
    ) -> PlaylistAnalysis:
        """
        Fetch a playlist and compute a feature vector per track.

        Raises:
            FetchError: if a playlist page could not be fetched
            AuthExpiredError: if the Spotify session expired
            AnalysisCancelled: if ``cancel`` fired
            AnalysisError: if feature extraction failed unexpectedly
        """
        with stage_timer("Playlist ingestion", logger):
            details = self.ingestor.fetch_playlist_details(playlist_id, cancel) if include_details else None
            tracks = self.ingestor.fetch_tracks(playlist_id, cancel)

        analyses: List[TrackAnalysis] = []
        raw_values: List[Optional[float]] = []
        tracker = ProgressLogger(logger, total=len(tracks), label="Vibe analysis", unit="tracks")

        with stage_timer("Tag analysis", logger):
            for index, track in enumerate(tracks, 1):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                try:
                    analysis, raw = self._analyze_track(track, cancel)
                except (AnalysisCancelled, AuthExpiredError, FetchError):
                    raise
                except Exception as e:
                    raise AnalysisError(f"Failed to analyze {track.name!r}: {e}") from e
                analyses.append(analysis)
                raw_values.append(raw)
                tracker.update(detail=f"{track.primary_artist} - {track.name}: {analysis.features.vibe_category}")
                if progress is not None:
                    progress(index, len(tracks))
            tracker.finish()

        if self.popularity_scaling == 'batch' and analyses:
            rescaled = rescale_dimension([a.features for a in analyses], raw_values, 'popularity')
            analyses = [
                TrackAnalysis(track=a.track, features=vector, tagged=a.tagged)
                for a, vector in zip(analyses, rescaled)
            ]

        return PlaylistAnalysis(details=details, analyses=tuple(analyses))

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    def choose_k(self, analysis: PlaylistAnalysis) -> int:
        labels = [
            a.features.genre if self.genre_driven else a.features.vibe_category
            for a in analysis.analyses
        ]
        return choose_cluster_count(labels, self.min_clusters, self.max_clusters)

    def feature_matrix(self, analysis: PlaylistAnalysis) -> np.ndarray:
        slots = self.extractor.vocabulary.genre_slots if self.genre_driven else None
        return np.vstack([a.features.as_array(slots) for a in analysis.analyses])

    def cluster(
        self,
        analysis: PlaylistAnalysis,
        k: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> ClusteringResult:
        """
        Partition the analyzed tracks and label each group.

        Args:
            analysis: Output of analyze()
            k: Cluster count; chosen from label diversity when omitted
            rng: Random source for centroid seeding

        Raises:
            ValueError: if an explicit k is below 2
            InsufficientDataError: if there are fewer tracks than clusters;
                ``error.analysis`` holds the unclustered analysis
        """
        if k is not None and k < 2:
            raise ValueError(f"k must be at least 2, got {k}")
        k = k if k is not None else self.choose_k(analysis)

        available = len(analysis.analyses)
        if available < k:
            error = InsufficientDataError(required=k, available=available)
            error.analysis = analysis
            raise error

        if rng is None and self.seed is not None:
            rng = np.random.default_rng(self.seed)

        with stage_timer(f"Clustering {available} tracks into {k} groups", logger):
            try:
                X = self.feature_matrix(analysis)
                result = kmeans(X, k, max_iterations=self.max_iterations, rng=rng)
                score = silhouette(X, result.assignments)
            except InsufficientDataError as e:
                e.analysis = analysis
                raise
            except Exception as e:
                raise AnalysisError(f"Clustering failed: {e}") from e

        clusters = []
        for index in range(k):
            members = tuple(
                a for a, assigned in zip(analysis.analyses, result.assignments) if assigned == index
            )
            label = self.labeler.label(index, [m.features for m in members], self.genre_driven)
            clusters.append(Cluster(index=index, members=members, label=label))

        logger.info(
            f"Built {sum(1 for c in clusters if c.size)} vibe groups "
            f"({result.iterations} iterations, converged={result.converged})"
        )
        return ClusteringResult(
            k=k,
            assignments=tuple(int(a) for a in result.assignments),
            centroids=result.centroids,
            iterations=result.iterations,
            converged=result.converged,
            clusters=tuple(clusters),
            mode=self.mode,
            silhouette=score,
        )

    def run(
        self,
        playlist_id: str,
        k: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """Analyze and cluster a playlist end to end."""
        summary = RunSummary("Vibe analysis", logger)
        analysis = self.analyze(playlist_id, cancel, progress)
        if cancel is not None:
            cancel.raise_if_cancelled()
        clustering = self.cluster(analysis, k)

        summary.add("tracks", len(analysis.analyses))
        summary.add("untagged_tracks", sum(1 for a in analysis.analyses if not a.tagged))
        summary.add("groups", sum(1 for c in clustering.clusters if c.size))
        summary.add("iterations", clustering.iterations)
        if clustering.silhouette is not None:
            summary.add("silhouette", clustering.silhouette)
        summary.add("lastfm_requests", self.tag_client.get_stats().get('requests', 0))
        summary.log()
        return PipelineResult(analysis=analysis, clustering=clustering)
