#!/usr/bin/env python3
"""Session driver: search -> label -> train -> score -> extract -> draft -> export."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
import traceback
from dataclasses import asdict, dataclass, field
from datetime import date

from config import (
    DEFAULT_CLASSIFIER_THRESHOLD,
    DEFAULT_EXTRACTION_INSTRUCTION,
    DEFAULT_PLATFORM,
    DEFAULT_POST_PROMPT,
    DEFAULT_VERSIONS,
    MAX_SELECTION,
    MAX_VERSIONS,
    OUTPUT_DIR,
    SMART_FILTER_THRESHOLD,
    SNAPSHOT_DIR,
    validate_config,
)
from src.errors import PipelineError

logger = logging.getLogger(__name__)


class JsonFormatter(logging.Formatter):
    """Machine-readable log lines for pipeline runs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "stage"):
            payload["stage"] = getattr(record, "stage")
        return json.dumps(payload, ensure_ascii=False)


@dataclass
class StageFailure:
    """Failure recorded for one stage of the session."""
    stage: str          # e.g. "search", "train", "draft"
    error_type: str     # exception class name
    message: str


@dataclass
class PipelineResult:
    """Counts and outcome of one session run."""
    run_id: str
    date: str
    strict: bool
    success: bool = False
    exit_reason: str = ""
    phase: str = ""
    duration_seconds: float = 0.0
    retrieved_count: int = 0
    candidate_count: int = 0
    relevant_count: int = 0
    selected_count: int = 0
    excerpt_count: int = 0
    draft_count: int = 0
    dataset_path: str = ""
    review_path: str = ""
    post_path: str = ""
    failures: list[StageFailure] = field(default_factory=list)


def configure_logging(log_format: str) -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Curate news into labelled data, filter with a classifier and draft social posts"
    )
    parser.add_argument(
        "--keywords",
        default="",
        help='Comma separated search terms for the training feed, e.g. "screen time, kids AND smartphones"',
    )
    parser.add_argument(
        "--dataset",
        default="",
        help="Labelled dataset export to train on instead of running the training search",
    )
    parser.add_argument(
        "--review-only",
        action="store_true",
        help="Export the training feed (dataset + review list) for offline labelling and stop",
    )
    parser.add_argument(
        "--candidate-keywords",
        default="",
        help="Search terms for the fresh candidate pool (default: same as --keywords)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_CLASSIFIER_THRESHOLD,
        help=f"Classifier threshold for candidate scoring (default: {DEFAULT_CLASSIFIER_THRESHOLD})",
    )
    parser.add_argument(
        "--smart-filter",
        action="store_true",
        help="Re-score the candidate pool with the lower smart-filter threshold",
    )
    parser.add_argument(
        "--smart-threshold",
        type=float,
        default=SMART_FILTER_THRESHOLD,
        help=f"Threshold used by --smart-filter (default: {SMART_FILTER_THRESHOLD})",
    )
    parser.add_argument(
        "--select",
        type=int,
        default=MAX_SELECTION,
        help=f"Keep the first N relevant candidates for extraction (1-{MAX_SELECTION})",
    )
    parser.add_argument(
        "--instruction",
        default=DEFAULT_EXTRACTION_INSTRUCTION,
        help="Custom instruction for excerpt extraction",
    )
    parser.add_argument(
        "--prompt",
        default=DEFAULT_POST_PROMPT,
        help="Operator prompt for the post",
    )
    parser.add_argument(
        "--platform",
        choices=["linkedin", "twitter"],
        default=DEFAULT_PLATFORM,
        help="Post format: long-form (linkedin) or numbered thread (twitter)",
    )
    parser.add_argument(
        "--versions",
        type=int,
        default=DEFAULT_VERSIONS,
        help=f"Number of draft versions to generate (1-{MAX_VERSIONS})",
    )
    parser.add_argument(
        "--choose",
        type=int,
        default=0,
        help="Index of the draft to keep (default: 0)",
    )
    parser.add_argument(
        "--output-dir",
        default=OUTPUT_DIR,
        help=f"Artifact output directory (default: {OUTPUT_DIR})",
    )
    parser.add_argument(
        "--snapshot-dir",
        default=SNAPSHOT_DIR,
        help="Directory for extraction snapshots; empty string disables them",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the drafts to stdout instead of writing the post file",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Return a non-zero exit code for soft stops (not enough data, no relevant articles)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log format (text|json)",
    )
    return parser.parse_args(argv)


def _append_failure(result: PipelineResult, stage: str, exc: Exception) -> None:
    result.failures.append(StageFailure(stage=stage, error_type=type(exc).__name__, message=str(exc)))


def _finish(result: PipelineResult, session, started: float, reason: str, success: bool = False) -> PipelineResult:
    result.success = success
    result.exit_reason = reason
    result.phase = session.phase.value if session is not None else ""
    result.duration_seconds = round(time.perf_counter() - started, 3)
    return result


def _write_json(path: str, data: dict) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, ensure_ascii=False, indent=2)


def _emit_summary(result: PipelineResult, output_dir: str) -> None:
    os.makedirs(output_dir, exist_ok=True)
    summary_path = os.path.join(output_dir, f"run-summary-{result.run_id}.json")
    _write_json(summary_path, asdict(result))
    logger.info("[SUMMARY] Wrote run summary: %s", summary_path)


def run_pipeline(args: argparse.Namespace) -> PipelineResult:
    """
    Run one curation session end-to-end.

    Steps:
    1. Validate config
    2. Training feed (search or labelled dataset)
    3. Train classifier
    4. Candidate search + scoring (+ smart filter)
    5. Generation entry, excerpt extraction
    6. Drafts, choice, export
    """
    from src.analyzers.draft_generator import render_excerpts
    from src.delivery.exporter import load_dataset, save_post_markdown, save_review_markdown
    from src.filters.keywords import review_terms
    from src.models import Platform
    from src.pipeline.phases import PipelinePhase
    from src.pipeline.session import CurationSession

    os.makedirs(args.output_dir, exist_ok=True)
    today = date.today().strftime("%Y-%m-%d")
    run_id = f"{today}-{int(time.time())}"
    started = time.perf_counter()
    result = PipelineResult(run_id=run_id, date=today, strict=args.strict)

    logger.info("=" * 60)
    logger.info("Press Room session | date=%s run_id=%s", today, run_id)
    logger.info(
        "options dataset=%s review_only=%s platform=%s versions=%s select=%s smart_filter=%s dry_run=%s",
        bool(args.dataset),
        args.review_only,
        args.platform,
        args.versions,
        args.select,
        args.smart_filter,
        args.dry_run,
    )

    # 1. Config
    valid, config_errors = validate_config()
    if not valid:
        for item in config_errors:
            result.failures.append(StageFailure(stage="config", error_type="CONFIG", message=item))
        return _finish(result, None, started, "configuration validation failed")

    session = CurationSession(snapshot_dir=args.snapshot_dir or None)
    candidate_query = args.candidate_keywords or args.keywords

    # 2. Training feed
    try:
        if args.dataset:
            records = session.load_dataset(load_dataset(args.dataset), keyword_query=args.keywords)
        else:
            records = session.search(args.keywords)
    except (PipelineError, OSError, ValueError) as exc:
        _append_failure(result, "search", exc)
        return _finish(result, session, started, "training feed failed")
    result.retrieved_count = len(records)

    if args.review_only:
        result.dataset_path = session.export_dataset(args.output_dir)
        result.review_path = save_review_markdown(
            session.articles, review_terms(args.keywords), f"Training feed: {args.keywords}", args.output_dir
        )
        return _finish(result, session, started, "exported for labelling", success=True)

    if session.phase is PipelinePhase.KEYWORD_ENTRY:
        reason = f"not enough articles to train ({len(records)}/{session.volume_threshold})"
        return _finish(result, session, started, reason, success=not args.strict)

    # 3. Train
    try:
        session.train()
    except PipelineError as exc:
        _append_failure(result, "train", exc)
        return _finish(result, session, started, "classifier training failed")

    # 4. Candidates
    try:
        session.search_candidates(candidate_query, threshold=args.threshold)
        if args.smart_filter:
            session.smart_filter(args.smart_threshold)
    except PipelineError as exc:
        _append_failure(result, "score", exc)
        return _finish(result, session, started, "candidate scoring failed")
    result.candidate_count = len(session.candidate_pool)
    relevant = session.selected_articles()
    result.relevant_count = len(relevant)
    if not relevant:
        return _finish(result, session, started, "no relevant candidates", success=not args.strict)

    # 5. Select, extract
    keep = max(args.select, 0)
    for index, article in enumerate(session.articles):
        if article.label == 1:
            if keep > 0:
                keep -= 1
            else:
                session.set_label(index, 0)
    try:
        selected = session.enter_generation()
        result.selected_count = len(selected)
        excerpts = session.extract_excerpts(args.instruction)
    except PipelineError as exc:
        _append_failure(result, "extract", exc)
        return _finish(result, session, started, "excerpt extraction failed")
    result.excerpt_count = len(excerpts)
    logger.info("[EXTRACT] Excerpts:\n%s", render_excerpts(excerpts))

    # 6. Drafts
    platform = Platform.from_string(args.platform)
    try:
        drafts = session.generate_drafts(args.prompt, platform, args.versions)
        result.draft_count = len(drafts)
        final_text = session.choose_draft(args.choose)
    except (PipelineError, IndexError) as exc:
        _append_failure(result, "draft", exc)
        return _finish(result, session, started, "draft generation failed")

    if args.dry_run:
        for idx, draft in enumerate(drafts):
            marker = " (chosen)" if idx == args.choose else ""
            print(f"\n===== Draft {idx}{marker} =====\n{draft}")
        logger.info("[DELIVERY] Dry run output printed")
    else:
        result.post_path = save_post_markdown(final_text, platform, session.excerpts, args.output_dir)
        result.dataset_path = session.export_dataset(args.output_dir)

    return _finish(result, session, started, "completed", success=True)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_format)

    if not args.keywords and not args.dataset:
        logger.error("Either --keywords or --dataset is required")
        return 2

    try:
        result = run_pipeline(args)
    except Exception as exc:
        logger.critical("Session failed unexpectedly: %s", exc)
        traceback.print_exc()
        today = date.today().strftime("%Y-%m-%d")
        crash_result = PipelineResult(
            run_id=f"{today}-{int(time.time())}",
            date=today,
            strict=args.strict,
            success=False,
            exit_reason="unhandled exception",
        )
        _append_failure(crash_result, "runtime", exc)
        _emit_summary(crash_result, args.output_dir)
        return 1

    _emit_summary(result, args.output_dir)
    if result.success:
        logger.info(
            "Session complete | retrieved=%s candidates=%s relevant=%s excerpts=%s drafts=%s reason=%s duration=%.2fs",
            result.retrieved_count,
            result.candidate_count,
            result.relevant_count,
            result.excerpt_count,
            result.draft_count,
            result.exit_reason,
            result.duration_seconds,
        )
        return 0

    logger.error(
        "Session ended with issues | reason=%s phase=%s failures=%s",
        result.exit_reason,
        result.phase,
        len(result.failures),
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
