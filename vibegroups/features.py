"""
Feature Extraction
==================
Turns the free-text tags of a track into a FeatureVector.

Each scalar dimension starts at a neutral 0.5 and is pushed up or down by
keyword-bucket matches, then clamped to [0, 1]:

- energy:     high / low / medium buckets over the primary and all tags
- mood:       happy / sad / neutral buckets plus a romantic bonus
- era:        vintage / modern buckets plus an artist-reach bonus
- popularity: log-scaled play counts (track plays, artist listeners)
- mainstream: popularity plus popular / niche buckets

When no keyword touches energy or mood at all, a smaller word list is run
over the title and raw tag text so untagged tracks do not all collapse onto
the same point.

The extractor is a pure function of its inputs and the vocabulary.
"""
import logging
import math
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import MinMaxScaler

from .models import FeatureVector, PlayStats
from .vocabulary import OTHER_GENRE, TagVocabulary, load_vocabulary

logger = logging.getLogger(__name__)

NEUTRAL = 0.5
PRIMARY_TAG_COUNT = 3
MAX_TAGS = 10

# Additive weights per keyword-bucket match
ENERGY_PRIMARY_STRONG = 0.3
ENERGY_PRIMARY_MEDIUM = 0.1
ENERGY_SECONDARY = 0.1
MOOD_PRIMARY = 0.3
ROMANTIC_BONUS = 0.2
ERA_SHIFT = 0.3
ERA_REACH_BONUS = 0.1
ERA_REACH_LISTENERS = 1_000_000
MAINSTREAM_POPULARITY_SHARE = 0.6
MAINSTREAM_SHIFT = 0.3
FALLBACK_WEIGHT = 0.1

# Log10 ceilings: 1M track plays, 10M artist listeners map to 1.0
TRACK_PLAYCOUNT_LOG_CEILING = 6.0
ARTIST_LISTENERS_LOG_CEILING = 7.0

_WORD_RE = re.compile(r"[a-z0-9']+")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _matches(tag: str, keywords: Iterable[str]) -> bool:
    return any(keyword in tag for keyword in keywords)


def normalize_tags(tags: Optional[Iterable], limit: int = MAX_TAGS) -> Tuple[str, ...]:
    """Lowercase, trim, drop empties and keep the first ``limit`` tags."""
    cleaned: List[str] = []
    for tag in tags or ():
        text = str(tag).lower().strip() if tag is not None else ""
        if text:
            cleaned.append(text)
        if len(cleaned) >= limit:
            break
    return tuple(cleaned)


def _has_stats(stats: Optional[PlayStats]) -> bool:
    return stats is not None and not stats.is_empty


def raw_popularity(stats: Optional[PlayStats]) -> Optional[float]:
    """
    Mean of the log10 track play count and artist listener count, or None
    without statistics.

    A missing side counts as log10(1) = 0.
    """
    if not _has_stats(stats):
        return None
    return (math.log10(max(stats.track_playcount, 1))
            + math.log10(max(stats.artist_listeners, 1))) / 2


def popularity_from_stats(stats: Optional[PlayStats]) -> float:
    """Average of the track and artist popularity, each scaled to [0, 1]."""
    if not _has_stats(stats):
        return NEUTRAL
    track = min(math.log10(max(stats.track_playcount, 1)) / TRACK_PLAYCOUNT_LOG_CEILING, 1.0)
    artist = min(math.log10(max(stats.artist_listeners, 1)) / ARTIST_LISTENERS_LOG_CEILING, 1.0)
    return clamp((track + artist) / 2)


class FeatureExtractor:
    """Maps tag lists (plus optional play statistics) onto FeatureVectors."""

    def __init__(self, vocabulary: Optional[TagVocabulary] = None, max_tags: int = MAX_TAGS):
        self.vocabulary = vocabulary or load_vocabulary()
        self.max_tags = max_tags

    def neutral(self, title: str = "") -> FeatureVector:
        """Vector for a track with no tag data at all."""
        return self.extract((), None, title)

    def extract(
        self,
        tags: Optional[Sequence[str]],
        stats: Optional[PlayStats] = None,
        title: str = "",
    ) -> FeatureVector:
        all_tags = normalize_tags(tags, self.max_tags)
        primary = all_tags[:PRIMARY_TAG_COUNT]
        fallback_words = self._fallback_words(title, all_tags)

        energy, energy_hits = self._energy(primary, all_tags)
        if energy_hits == 0:
            energy = self._fallback(
                fallback_words,
                self.vocabulary.fallback_energy_high,
                self.vocabulary.fallback_energy_low,
            )

        mood, mood_hits = self._mood(primary)
        if mood_hits == 0:
            mood = self._fallback(
                fallback_words,
                self.vocabulary.fallback_mood_happy,
                self.vocabulary.fallback_mood_sad,
            )

        popularity = popularity_from_stats(stats)

        return FeatureVector(
            energy=energy,
            mood=mood,
            popularity=popularity,
            era=self._era(primary, stats),
            mainstream=self._mainstream(primary, popularity, _has_stats(stats)),
            vibe_category=self.vibe_category(energy, mood, primary),
            genre=self.genre(all_tags),
            primary_tags=primary,
        )

    # ------------------------------------------------------------------
    # Scalar dimensions
    # ------------------------------------------------------------------

    def _energy(self, primary: Sequence[str], all_tags: Sequence[str]) -> Tuple[float, int]:
        vocab = self.vocabulary
        score = NEUTRAL
        hits = 0
        for tag in primary:
            if _matches(tag, vocab.energy_high):
                score += ENERGY_PRIMARY_STRONG
            elif _matches(tag, vocab.energy_low):
                score -= ENERGY_PRIMARY_STRONG
            elif _matches(tag, vocab.energy_medium):
                score += ENERGY_PRIMARY_MEDIUM
            else:
                continue
            hits += 1
        for tag in all_tags:
            if _matches(tag, vocab.energy_high):
                score += ENERGY_SECONDARY
            elif _matches(tag, vocab.energy_low):
                score -= ENERGY_SECONDARY
            elif not _matches(tag, vocab.energy_medium):
                continue
            hits += 1
        return clamp(score), hits

    def _mood(self, primary: Sequence[str]) -> Tuple[float, int]:
        vocab = self.vocabulary
        score = NEUTRAL
        hits = 0
        for tag in primary:
            if _matches(tag, vocab.mood_happy):
                score += MOOD_PRIMARY
            elif _matches(tag, vocab.mood_sad):
                score -= MOOD_PRIMARY
            elif not _matches(tag, vocab.mood_neutral):
                continue
            hits += 1
        if any(_matches(tag, vocab.romantic) for tag in primary):
            score += ROMANTIC_BONUS
            hits += 1
        return clamp(score), hits

    def _era(self, primary: Sequence[str], stats: Optional[PlayStats]) -> float:
        vocab = self.vocabulary
        score = NEUTRAL
        if any(_matches(tag, vocab.era_vintage) for tag in primary):
            score -= ERA_SHIFT
        if any(_matches(tag, vocab.era_modern) for tag in primary):
            score += ERA_SHIFT
        if stats is not None and stats.artist_listeners > ERA_REACH_LISTENERS:
            score += ERA_REACH_BONUS
        return clamp(score)

    def _mainstream(self, primary: Sequence[str], popularity: float, has_stats: bool) -> float:
        vocab = self.vocabulary
        # Without statistics the keyword shifts start from neutral
        score = popularity * MAINSTREAM_POPULARITY_SHARE if has_stats else NEUTRAL
        if any(_matches(tag, vocab.mainstream_popular) for tag in primary):
            score += MAINSTREAM_SHIFT
        if any(_matches(tag, vocab.mainstream_niche) for tag in primary):
            score -= MAINSTREAM_SHIFT
        return clamp(score)

    @staticmethod
    def _fallback_words(title: str, tags: Sequence[str]) -> frozenset:
        text = " ".join([str(title or "").lower(), *tags])
        return frozenset(_WORD_RE.findall(text))

    @staticmethod
    def _fallback(words: frozenset, up: Sequence[str], down: Sequence[str]) -> float:
        score = NEUTRAL
        score += FALLBACK_WEIGHT * sum(1 for w in up if w in words)
        score -= FALLBACK_WEIGHT * sum(1 for w in down if w in words)
        return clamp(score)

    # ------------------------------------------------------------------
    # Discrete labels
    # ------------------------------------------------------------------

    def vibe_category(self, energy: float, mood: float, primary: Sequence[str]) -> str:
        """Tag rules first, then energy/mood combinations."""
        for category, keywords in self.vocabulary.vibe_tags:
            if any(_matches(tag, keywords) for tag in primary):
                return category

        if energy >= 0.7 and mood >= 0.6:
            return "party"
        if energy >= 0.8:
            return "workout"
        if energy <= 0.4 and mood >= 0.5:
            return "chill"
        if 0.3 <= energy <= 0.6 and 0.4 <= mood <= 0.7:
            return "focus"
        if mood <= 0.4:
            return "melancholy"
        if energy <= 0.6 and mood >= 0.6:
            return "romantic"
        return "chill"

    def genre(self, tags: Sequence[str]) -> str:
        """Genre family with the most overlapping tags; ties and no match give "other"."""
        best_name = OTHER_GENRE
        best_score = 0
        tied = False
        for name, keywords in self.vocabulary.genres:
            score = sum(1 for tag in tags if _matches(tag, keywords))
            if score > best_score:
                best_name, best_score, tied = name, score, False
            elif score == best_score and score > 0:
                tied = True
        if best_score == 0 or tied:
            return OTHER_GENRE
        return best_name


def rescale_dimension(
    vectors: Sequence[FeatureVector],
    raw_values: Sequence[Optional[float]],
    dimension: str,
) -> List[FeatureVector]:
    """
    Linearly rescale one dimension to [0, 1] using the batch min/max.

    Vectors whose raw value is None keep their current value. When every
    observed value is equal the rescaled dimension collapses to 0.
    """
    if len(vectors) != len(raw_values):
        raise ValueError("vectors and raw_values must have the same length")

    observed = [i for i, v in enumerate(raw_values) if v is not None]
    if not observed:
        return list(vectors)

    column = np.asarray([[raw_values[i]] for i in observed], dtype=float)
    scaled = MinMaxScaler().fit_transform(column)[:, 0]

    result = list(vectors)
    for i, value in zip(observed, scaled):
        result[i] = replace(result[i], **{dimension: clamp(float(value))})
    return result
