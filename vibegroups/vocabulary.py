"""
Tag Vocabulary
==============
Keyword tables that map free-text tags onto feature dimensions, vibe
categories and genre families.

The tables are plain data in ``data/vocabulary.yaml``. They are parsed once
into an immutable TagVocabulary; passing a different YAML file swaps the
whole vocabulary, which is how tests run against synthetic tag sets.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_VOCABULARY_PATH = Path(__file__).resolve().parent / "data" / "vocabulary.yaml"
OTHER_GENRE = "other"

Keywords = Tuple[str, ...]


@dataclass(frozen=True)
class VibeCategory:
    name: str
    emoji: str
    description: str
    energy_range: Tuple[float, float]
    mood_range: Tuple[float, float]

    def brackets(self, energy: float, mood: float) -> bool:
        return (self.energy_range[0] <= energy <= self.energy_range[1]
                and self.mood_range[0] <= mood <= self.mood_range[1])


@dataclass(frozen=True)
class TagVocabulary:
    energy_high: Keywords
    energy_low: Keywords
    energy_medium: Keywords
    mood_happy: Keywords
    mood_sad: Keywords
    mood_neutral: Keywords
    romantic: Keywords
    era_vintage: Keywords
    era_modern: Keywords
    mainstream_popular: Keywords
    mainstream_niche: Keywords
    fallback_energy_high: Keywords
    fallback_energy_low: Keywords
    fallback_mood_happy: Keywords
    fallback_mood_sad: Keywords
    vibe_tags: Tuple[Tuple[str, Keywords], ...]
    genres: Tuple[Tuple[str, Keywords], ...]
    categories: Tuple[VibeCategory, ...]

    @property
    def genre_slots(self) -> Tuple[str, ...]:
        """Genre families in table order followed by the reserved "other" slot."""
        return tuple(name for name, _ in self.genres) + (OTHER_GENRE,)

    def category(self, name: str) -> Optional[VibeCategory]:
        for cat in self.categories:
            if cat.name == name:
                return cat
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TagVocabulary':
        """Build a vocabulary from parsed YAML; raises ValueError on missing tables."""
        try:
            energy = data['energy']
            mood = data['mood']
            era = data['era']
            mainstream = data['mainstream']
            fallback = data['fallback']
            categories = data['categories']
            return cls(
                energy_high=_words(energy['high']),
                energy_low=_words(energy['low']),
                energy_medium=_words(energy['medium']),
                mood_happy=_words(mood['happy']),
                mood_sad=_words(mood['sad']),
                mood_neutral=_words(mood.get('neutral', [])),
                romantic=_words(data.get('romantic', [])),
                era_vintage=_words(era['vintage']),
                era_modern=_words(era['modern']),
                mainstream_popular=_words(mainstream['popular']),
                mainstream_niche=_words(mainstream['niche']),
                fallback_energy_high=_words(fallback['energy']['high']),
                fallback_energy_low=_words(fallback['energy']['low']),
                fallback_mood_happy=_words(fallback['mood']['happy']),
                fallback_mood_sad=_words(fallback['mood']['sad']),
                vibe_tags=tuple(
                    (rule['category'], _words(rule['keywords']))
                    for rule in data.get('vibe_tags', [])
                ),
                genres=tuple(
                    (str(name).lower(), _words(words))
                    for name, words in (data.get('genres') or {}).items()
                    if str(name).lower() != OTHER_GENRE
                ),
                categories=tuple(
                    VibeCategory(
                        name=name,
                        emoji=entry.get('emoji', ''),
                        description=entry.get('description', ''),
                        energy_range=_range(entry['energy']),
                        mood_range=_range(entry['mood']),
                    )
                    for name, entry in categories.items()
                ),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid tag vocabulary, missing or malformed table: {e}") from e


def _words(values) -> Keywords:
    return tuple(str(v).lower().strip() for v in values or [] if str(v).strip())


def _range(values) -> Tuple[float, float]:
    low, high = (float(v) for v in values)
    if low > high:
        raise ValueError(f"Range lower bound {low} exceeds upper bound {high}")
    return low, high


def load_vocabulary(path: Optional[Union[str, Path]] = None) -> TagVocabulary:
    """
    Load a tag vocabulary from YAML.

    Args:
        path: YAML file to load; the packaged vocabulary when omitted

    Returns:
        Parsed TagVocabulary (cached per path)
    """
    resolved = Path(path).resolve() if path else DEFAULT_VOCABULARY_PATH
    return _load_cached(str(resolved))


@lru_cache(maxsize=8)
def _load_cached(path: str) -> TagVocabulary:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    vocabulary = TagVocabulary.from_dict(data)
    logger.debug(
        f"Loaded tag vocabulary from {path}: "
        f"{len(vocabulary.genres)} genre families, {len(vocabulary.categories)} vibe categories"
    )
    return vocabulary
