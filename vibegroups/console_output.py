"""
Console output formatting for vibe-groups.

All user-facing output goes through this module; everything else logs.
"""
import json
import logging
import sys
from datetime import datetime
from typing import Any, Optional

from .models import Cluster, ClusteringResult, PlaylistAnalysis

logger = logging.getLogger(__name__)

# Box-drawing characters
BOX_H = "─"
BOX_V = "│"
BOX_TL = "┌"
BOX_TR = "┐"
BOX_BL = "└"
BOX_BR = "┘"

BULLET = "•"
CROSS = "✗"

WIDTH = 70
TRACKS_SHOWN_PER_GROUP = 8


def _safe_print(text: str = "") -> None:
    """Print with UTF-8 encoding safety."""
    try:
        print(text)
    except UnicodeEncodeError:
        # Terminals without Unicode get the emoji replaced
        print(text.encode('ascii', 'replace').decode('ascii'))


def header(title: str, subtitle: str = "") -> None:
    """
    Print a major section header with box drawing.

    ┌──────────────────────────────────────────────────────────────────────┐
    │  VIBE GROUPS                                                         │
    │  Late Night Drive (42 tracks)                                        │
    └──────────────────────────────────────────────────────────────────────┘
    """
    inner_width = WIDTH - 2

    _safe_print()
    _safe_print(BOX_TL + BOX_H * inner_width + BOX_TR)
    _safe_print(f"{BOX_V}  {title:<{inner_width - 3}}{BOX_V}")
    if subtitle:
        _safe_print(f"{BOX_V}  {subtitle:<{inner_width - 3}}{BOX_V}")
    _safe_print(BOX_BL + BOX_H * inner_width + BOX_BR)


def section(title: str) -> None:
    """
    Print a section divider with title.

    ─── 🎉 Party Vibes ───────────────────────────────────────────────────
    """
    title_part = f" {title} "
    padding = WIDTH - len(title_part) - 3
    _safe_print()
    _safe_print(BOX_H * 3 + title_part + BOX_H * max(0, padding))


def divider() -> None:
    _safe_print(BOX_H * WIDTH)


def blank() -> None:
    _safe_print()


def info(label: str, value: Any, indent: int = 0) -> None:
    """
    Print a labeled value.

      Tracks:        42
      Groups:        4
    """
    prefix = "  " * indent
    _safe_print(f"{prefix}  {label + ':':<14} {value}")


def bullet(text: str, indent: int = 0) -> None:
    prefix = "  " * indent
    _safe_print(f"{prefix}  {BULLET} {text}")


def track_line(index: int, artist: str, title: str, marker: str = "") -> None:
    """
    Print a formatted track line.

    01. Daft Punk - One More Time [party]
    """
    track_str = f"{index:02d}. {artist} - {title}"
    if marker:
        track_str = f"{track_str} [{marker}]"
    _safe_print(f"    {track_str}")


def error(message: str) -> None:
    _safe_print(f"\n  {CROSS} {message}")


def progress(current: int, total: int, label: str = "") -> None:
    """
    Print an in-place progress bar.

    [████████████░░░░░░░░░░░░░░░░░░]  40% Analyzing tracks
    """
    bar_width = 30
    filled = int(bar_width * current / total) if total > 0 else 0
    bar = "█" * filled + "░" * (bar_width - filled)
    pct = (current / total * 100) if total > 0 else 0

    status = f"[{bar}] {pct:3.0f}%"
    if label:
        status = f"{status} {label}"

    sys.stdout.write(f"\r  {status}")
    sys.stdout.flush()
    if current >= total:
        _safe_print()


class VibeReport:
    """
    Console report for one analyzed playlist.

    Groups are listed largest first; empty groups are not shown.
    """

    def __init__(self, analysis: PlaylistAnalysis, clustering: Optional[ClusteringResult] = None):
        self.analysis = analysis
        self.clustering = clustering
        self.start_time: datetime = datetime.now()

    @property
    def playlist_name(self) -> str:
        details = self.analysis.details
        return details.name if details and details.name else "Playlist"

    def groups(self):
        if self.clustering is None:
            return []
        return sorted(
            (c for c in self.clustering.clusters if c.size),
            key=lambda c: (-c.size, c.index),
        )

    def print_header(self) -> None:
        header("VIBE GROUPS", f"{self.playlist_name} ({len(self.analysis.analyses)} tracks)")

    def print_overview(self) -> None:
        section("OVERVIEW")
        analyses = self.analysis.analyses
        untagged = sum(1 for a in analyses if not a.tagged)
        info("Tracks", len(analyses))
        if untagged:
            info("Untagged", f"{untagged} (neutral features)")
        if self.clustering is None:
            return
        info("Mode", self.clustering.mode)
        info("Groups", len(self.groups()))
        info("Iterations", f"{self.clustering.iterations}"
                           f"{'' if self.clustering.converged else ' (cap reached)'}")
        if self.clustering.silhouette is not None:
            info("Silhouette", f"{self.clustering.silhouette:.3f}")

    def print_group(self, cluster: Cluster, show_all: bool = False) -> None:
        section(f"{cluster.label.display_name} ({cluster.size})")
        _safe_print(f"  {cluster.label.description}")
        members = cluster.members if show_all else cluster.members[:TRACKS_SHOWN_PER_GROUP]
        for i, member in enumerate(members, 1):
            track = member.track
            track_line(i, ", ".join(track.artists) or "Unknown", track.name or "Unknown",
                       marker=member.features.vibe_category)
        hidden = cluster.size - len(members)
        if hidden > 0:
            _safe_print(f"    ... ({hidden} more tracks) ...")

    def print_categories(self) -> None:
        """Vibe category histogram for runs that could not be clustered."""
        section("VIBES")
        counts = {}
        for a in self.analysis.analyses:
            counts[a.features.vibe_category] = counts.get(a.features.vibe_category, 0) + 1
        for category, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            bullet(f"{category}: {count}")

    def print_footer(self) -> None:
        elapsed = (datetime.now() - self.start_time).total_seconds()

        blank()
        divider()
        _safe_print(f"  Rendered in {elapsed:.1f}s at {datetime.now().strftime('%H:%M:%S')}")
        divider()
        blank()

    def print_full(self, show_all_tracks: bool = False) -> None:
        self.print_header()
        self.print_overview()
        if self.clustering is None:
            self.print_categories()
        else:
            for cluster in self.groups():
                self.print_group(cluster, show_all=show_all_tracks)
        self.print_footer()


def emit_json(payload: Any) -> None:
    """Print a machine-readable result on stdout."""
    _safe_print(json.dumps(payload, indent=2, ensure_ascii=False))
