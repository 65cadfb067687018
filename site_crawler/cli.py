"""CLI entrypoint for crawl jobs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from tqdm import tqdm

from .config import CrawlConfig, default_output_dir, load_config, validate_formats
from .formatters import available_formats
from .jobs import CrawlJobManager, InvalidCrawlRequest, JobAlreadyActive, NOT_FOUND_STATUS
from .pipeline import CrawlPipeline
from .types import CrawlStatus


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Root output directory (default: $OUTPUT_DIR or ./output).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )


def _add_crawl_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None, help="Path to JSON/YAML crawl config.")
    parser.add_argument("--seed_url", type=str, default=None, help="Seed URL to crawl from.")
    parser.add_argument("--label", type=str, default=None, help="Human-readable job label (site name).")
    parser.add_argument(
        "--formats",
        type=str,
        default=None,
        help=f"Comma-separated output formats: {', '.join(available_formats())}.",
    )

    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--requests_per_minute", type=int, default=None)
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--retry_backoff_seconds", type=float, default=None)
    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument(
        "--backend",
        type=str,
        choices=["requests", "selenium"],
        default=None,
        help="Page rendering backend.",
    )
    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--no_single_file",
        action="store_true",
        help="Skip the consolidated {label}.md document.",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a website from a seed URL and write per-page content reports.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser("crawl", help="Run a crawl in the foreground.")
    _add_common_args(crawl_parser)
    _add_crawl_args(crawl_parser)
    crawl_parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )

    start_parser = subparsers.add_parser(
        "start",
        help="Start a crawl job and poll its progress record until it finishes.",
    )
    _add_common_args(start_parser)
    start_parser.add_argument("--seed_url", type=str, required=True)
    start_parser.add_argument("--label", type=str, required=True)
    start_parser.add_argument("--formats", type=str, default=None)
    start_parser.add_argument(
        "--poll_seconds",
        type=float,
        default=1.0,
        help="Seconds between progress polls.",
    )

    status_parser = subparsers.add_parser("status", help="Print the progress record of a job.")
    _add_common_args(status_parser)
    status_parser.add_argument("job_id", type=str)

    formats_parser = subparsers.add_parser("formats", help="List supported output formats.")
    formats_parser.add_argument("--verbose", action="store_true", help=argparse.SUPPRESS)
    formats_parser.set_defaults(output_dir=None)

    return parser.parse_args(argv)


def _split_formats(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload: dict[str, Any] = load_config(args.config).to_dict()
    else:
        payload = {}

    overrides = {
        "seed_url": args.seed_url,
        "label": args.label,
        "output_formats": _split_formats(args.formats),
        "output_dir": args.output_dir,
        "max_concurrency": args.concurrency,
        "max_requests_per_minute": args.requests_per_minute,
        "request_timeout_seconds": args.timeout_seconds,
        "max_request_retries": args.retries,
        "retry_backoff_seconds": args.retry_backoff_seconds,
        "max_pages": args.max_pages,
        "backend": args.backend,
        "user_agent": args.user_agent,
    }
    payload.update({key: value for key, value in overrides.items() if value is not None})
    if args.no_single_file:
        payload["write_single_file"] = False

    if payload.get("output_formats"):
        formats, unknown = validate_formats(payload["output_formats"])
        if unknown:
            logging.warning("Ignoring unknown output formats: %s", ", ".join(unknown))
        if formats:
            payload["output_formats"] = [fmt.value for fmt in formats]
        else:
            payload.pop("output_formats")

    if not payload.get("seed_url") or not payload.get("label"):
        raise ValueError("A seed URL and label are required. Use --config or --seed_url/--label.")

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Browser and connection-pool chatter is not actionable at INFO.
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(result: dict[str, Any], *, print_stats_json: bool) -> None:
    paths = result.get("paths", {})
    stats = result.get("stats", {})

    print("\n=== Crawl Complete ===")
    print(f"job_id: {result.get('job_id')}")
    print(f"job_dir: {paths.get('job_dir')}")
    if paths.get("single_file"):
        print(f"single_file: {paths.get('single_file')}")
    if paths.get("links_json"):
        print(f"links: {paths.get('links_json')}")
    print(f"errors: {paths.get('errors')}")
    print(f"stats: {paths.get('crawl_stats')}")

    print("\n--- Core Stats ---")
    for key in [
        "pages_processed",
        "total_enqueued",
        "files_saved",
        "requests_finished",
        "requests_failed",
        "requests_retried",
    ]:
        if key in result:
            print(f"{key}: {result[key]}")
    if "duration_seconds" in stats:
        print(f"duration_seconds: {stats['duration_seconds']:.1f}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def poll_job(manager: CrawlJobManager, job_id: str, *, poll_seconds: float) -> dict[str, Any]:
    """Poll a job's progress record with a progress bar until it is terminal."""

    bar = tqdm(total=0, desc=f"Crawling {job_id}", unit="page")
    try:
        while True:
            record = manager.status(job_id)
            bar.total = max(int(record.get("totalEnqueued") or 0), bar.total or 0)
            bar.n = int(record.get("pagesProcessed") or 0)
            current = record.get("currentUrl") or ""
            if current:
                bar.set_postfix_str(current, refresh=False)
            bar.refresh()

            status = record.get("status")
            if status in {CrawlStatus.COMPLETED.value, CrawlStatus.FAILED.value}:
                return record
            if status == NOT_FOUND_STATUS and not manager.is_active(job_id):
                return record
            time.sleep(poll_seconds)
    finally:
        bar.close()


def _run_crawl(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    try:
        result = CrawlPipeline(config).run()
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl failed")
        return 1

    print_summary(result, print_stats_json=args.print_stats_json)
    return 0


def _run_start(args: argparse.Namespace, output_dir: Path) -> int:
    manager = CrawlJobManager(output_dir=output_dir)
    try:
        job_id = manager.start(args.seed_url, args.label, _split_formats(args.formats))
    except (InvalidCrawlRequest, JobAlreadyActive) as exc:
        logging.error("Could not start crawl: %s", exc)
        return 2

    print(f"Started crawl job: {job_id}")
    try:
        record = poll_job(manager, job_id, poll_seconds=args.poll_seconds)
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130

    manager.wait(job_id, timeout=10.0)
    print(json.dumps(record, indent=2))
    return 0 if record.get("status") == CrawlStatus.COMPLETED.value else 1


def _run_status(args: argparse.Namespace, output_dir: Path) -> int:
    manager = CrawlJobManager(output_dir=output_dir)
    try:
        record = manager.status(args.job_id)
    except InvalidCrawlRequest as exc:
        logging.error("%s", exc)
        return 2

    print(json.dumps(record, indent=2))
    return 1 if record.get("status") == NOT_FOUND_STATUS else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.command == "formats":
        for name in available_formats():
            print(name)
        return 0

    output_dir = args.output_dir or default_output_dir()
    setup_logging(output_dir, verbose=args.verbose)

    if args.command == "crawl":
        return _run_crawl(args)
    if args.command == "start":
        return _run_start(args, output_dir)
    return _run_status(args, output_dir)


if __name__ == "__main__":
    raise SystemExit(main())
