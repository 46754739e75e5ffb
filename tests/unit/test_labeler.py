import pytest

from vibegroups.labeler import GROUP_EMOJI, VibeLabeler, most_common, tier
from vibegroups.models import FeatureVector
from vibegroups.vocabulary import load_vocabulary


@pytest.fixture()
def labeler():
    return VibeLabeler(load_vocabulary())


def test_zero_members_get_placeholder(labeler):
    label = labeler.label(2, [])
    assert label.name == "Group 3"
    assert label.emoji == GROUP_EMOJI


def test_first_bracketing_category_names_cluster(labeler):
    members = [FeatureVector(energy=0.9, mood=0.8), FeatureVector(energy=0.8, mood=0.7)]
    label = labeler.label(0, members)
    assert label.name == "Party Vibes"
    assert label.emoji == "🎉"
    assert label.category == "party"
    assert label.display_name == "🎉 Party Vibes"


def test_neutral_cluster_is_focus(labeler):
    assert labeler.label(0, [FeatureVector()]).name == "Focus Vibes"


def test_fallback_composes_tiers_and_top_label(labeler):
    members = [
        FeatureVector(energy=0.95, mood=0.2, vibe_category="workout"),
        FeatureVector(energy=0.95, mood=0.2, vibe_category="workout"),
        FeatureVector(energy=0.95, mood=0.2, vibe_category="melancholy"),
    ]
    label = labeler.label(1, members)
    assert label.name == "High Energy 😔 Melancholy Workout"
    assert label.emoji == "🔥"
    assert label.category == "workout"


def test_genre_driven_uses_genre(labeler):
    members = [FeatureVector(energy=0.5, mood=0.5, genre="hip hop")] * 2
    label = labeler.label(0, members, genre_driven=True)
    assert label.name == "Medium Energy 😐 Balanced Hip Hop"
    assert label.emoji == "⚡"


def test_never_raises(labeler):
    label = labeler.label(4, [object()])
    assert label.name == "Group 5"


def test_helpers():
    assert tier(0.7) == 'high'
    assert tier(0.3) == 'low'
    assert tier(0.5) == 'medium'
    assert most_common(["b", "a", "a", "b"]) == "b"
    assert most_common([]) is None
