"""
Command-line entry point.

    vibe-groups analyze https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M
    vibe-groups analyze spotify:playlist:37i9dQZF1DXcBWIGoYBM5M -k 4 --json
"""
import argparse
import logging
import signal
import sys
from typing import List, Optional

from . import console_output as out
from .config_loader import CLUSTER_MODES, Config
from .errors import (
    AnalysisCancelled,
    AnalysisError,
    AuthExpiredError,
    FetchError,
    InsufficientDataError,
    VibeGroupsError,
)
from .logging_utils import add_logging_args, configure_logging, resolve_log_level
from .pipeline import VibePipeline
from .playlist_ingestor import extract_playlist_id
from .rate_limiter import CancellationToken
from .spotify_session import SpotifySession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_FETCH = 2
EXIT_AUTH = 3
EXIT_INSUFFICIENT = 4
EXIT_ANALYSIS = 5
EXIT_CANCELLED = 130

# Most specific first
EXIT_CODES = (
    (AnalysisCancelled, EXIT_CANCELLED),
    (AuthExpiredError, EXIT_AUTH),
    (FetchError, EXIT_FETCH),
    (InsufficientDataError, EXIT_INSUFFICIENT),
    (AnalysisError, EXIT_ANALYSIS),
)


def exit_code_for(error: VibeGroupsError) -> int:
    for error_type, code in EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EXIT_ANALYSIS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibe-groups",
        description="Group a Spotify playlist into vibes using Last.FM tags",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze and group a playlist")
    analyze.add_argument("playlist", help="Playlist URL, URI or id")
    analyze.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration (default: config.yaml)",
    )
    analyze.add_argument(
        "-k", "--clusters",
        type=int,
        dest="k",
        help="Number of groups (default: chosen from tag diversity)",
    )
    analyze.add_argument(
        "--mode",
        choices=CLUSTER_MODES,
        help="Cluster on vibe dimensions or add genre (default from config clustering.mode)",
    )
    analyze.add_argument("--seed", type=int, help="Seed for centroid initialization")
    analyze.add_argument("--json", action="store_true", help="Print the groups as JSON")
    analyze.add_argument("--all-tracks", action="store_true", help="List every track of every group")
    add_logging_args(analyze)
    return parser


def load_config(args) -> Config:
    config = Config(args.config)
    if args.mode or args.seed is not None:
        config = config.with_overrides('clustering', mode=args.mode, seed=args.seed)
    return config


def install_interrupt_handler(cancel: CancellationToken):
    """
    Make Ctrl-C request cancellation instead of killing in-flight requests.

    Returns the previous SIGINT handler.
    """
    def _handler(signum, frame):
        logger.warning("Interrupt received, cancelling analysis")
        cancel.cancel()

    return signal.signal(signal.SIGINT, _handler)


def run_analyze(args) -> int:
    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        out.error(f"Configuration Error: {e}")
        return EXIT_CONFIG

    # JSON output owns stdout; logs only go to the log file then
    configure_logging(
        level=resolve_log_level(args, default=config.log_level),
        log_file=args.log_file or config.log_file,
        console=not args.json,
    )
    logger.debug(f"Loaded {config!r}")

    if not config.spotify_access_token:
        out.error("Configuration Error: set spotify.access_token (or SPOTIFY_ACCESS_TOKEN)")
        return EXIT_CONFIG

    try:
        playlist_id = extract_playlist_id(args.playlist)
    except ValueError as e:
        out.error(f"Playlist Error: {e}")
        return EXIT_FETCH

    session = SpotifySession(
        config.spotify_access_token,
        api_base=config.spotify_api_base,
        timeout=config.spotify_timeout,
    )
    pipeline = VibePipeline.from_config(config, session)
    cancel = CancellationToken()
    previous_handler = install_interrupt_handler(cancel)

    show_progress = not args.json and sys.stdout.isatty()
    progress = (lambda done, total: out.progress(done, total, "Analyzing tracks")) if show_progress else None

    try:
        result = pipeline.run(playlist_id, k=args.k, cancel=cancel, progress=progress)
    except InsufficientDataError as e:
        if e.analysis is not None and not args.json:
            out.VibeReport(e.analysis).print_full()
        out.error(e.user_message())
        return EXIT_INSUFFICIENT
    except VibeGroupsError as e:
        out.error(e.user_message())
        return exit_code_for(e)
    except ValueError as e:
        out.error(f"Analysis Error: {e}")
        return EXIT_ANALYSIS
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        payload = result.clustering.to_dict()
        details = result.analysis.details
        payload['playlist'] = {'id': playlist_id, 'name': details.name if details else None}
        out.emit_json(payload)
    else:
        out.VibeReport(result.analysis, result.clustering).print_full(show_all_tracks=args.all_tracks)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "analyze":
        return run_analyze(args)
    parser.error(f"unknown command {args.command}")
    return EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
