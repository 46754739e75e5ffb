"""
Cluster naming.

A cluster is named after the first canonical vibe category whose energy and
mood ranges contain the cluster's mean energy and mood. Otherwise (or when
clustering was genre-driven) the name is composed from energy tier, mood
tier and the most common member label.
"""
import logging
from collections import Counter
from typing import Optional, Sequence

import numpy as np

from .models import ClusterLabel, FeatureVector
from .vocabulary import TagVocabulary, load_vocabulary

logger = logging.getLogger(__name__)

HIGH_THRESHOLD = 0.7
LOW_THRESHOLD = 0.3
GROUP_EMOJI = "🎵"

ENERGY_TIERS = {
    'high': ("🔥", "High Energy"),
    'medium': ("⚡", "Medium Energy"),
    'low': ("😌", "Low Energy"),
}
MOOD_TIERS = {
    'high': ("😄", "Happy"),
    'medium': ("😐", "Balanced"),
    'low': ("😔", "Melancholy"),
}


def tier(value: float) -> str:
    if value >= HIGH_THRESHOLD:
        return 'high'
    if value <= LOW_THRESHOLD:
        return 'low'
    return 'medium'


def most_common(labels: Sequence[str]) -> Optional[str]:
    """Most frequent label; ties go to the one seen first."""
    if not labels:
        return None
    counts = Counter(labels)
    best = max(counts.values())
    for label in labels:
        if counts[label] == best:
            return label
    return None


class VibeLabeler:
    """Derives display labels for clusters. Never raises."""

    def __init__(self, vocabulary: Optional[TagVocabulary] = None):
        self.vocabulary = vocabulary or load_vocabulary()

    def label(self, index: int, members: Sequence[FeatureVector], genre_driven: bool = False) -> ClusterLabel:
        try:
            return self._label(index, members, genre_driven)
        except Exception:
            logger.exception(f"Could not derive a label for group {index + 1}")
            return self.placeholder(index)

    @staticmethod
    def placeholder(index: int) -> ClusterLabel:
        return ClusterLabel(name=f"Group {index + 1}", emoji=GROUP_EMOJI, description="Mixed vibes")

    def _label(self, index: int, members: Sequence[FeatureVector], genre_driven: bool) -> ClusterLabel:
        members = [m for m in members or () if m is not None]
        if not members:
            return self.placeholder(index)

        energy = float(np.mean([m.energy for m in members]))
        mood = float(np.mean([m.mood for m in members]))

        if not genre_driven:
            for category in self.vocabulary.categories:
                if category.brackets(energy, mood):
                    return ClusterLabel(
                        name=f"{category.name.title()} Vibes",
                        emoji=category.emoji,
                        description=category.description,
                        category=category.name,
                    )

        labels = [m.genre if genre_driven else m.vibe_category for m in members]
        top = most_common(labels) or "mixed"
        energy_emoji, energy_name = ENERGY_TIERS[tier(energy)]
        mood_emoji, mood_name = MOOD_TIERS[tier(mood)]

        return ClusterLabel(
            name=f"{energy_name} {mood_emoji} {mood_name} {top.title()}",
            emoji=energy_emoji,
            description=f"Mostly {top}, energy {energy:.2f}, mood {mood:.2f}",
            category=top,
        )
