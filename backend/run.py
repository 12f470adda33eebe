"""
Serve the admin API and, unless disabled, the issue pipeline.

Usage:
    python run.py
    python run.py --reload              # Auto-reload while developing
    python run.py --no-pipeline         # API only, no change streams
    python run.py --sweep-interval 0    # Pipeline without the periodic sweep

Always runs a single process: a second worker would open its own change
streams and process every issue event twice.
"""
import argparse
import os

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Civic issue routing and deduplication pipeline")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument(
        "--no-pipeline",
        action="store_true",
        help="Serve the HTTP endpoints without watching civic_issues"
    )
    parser.add_argument(
        "--sweep-interval",
        type=int,
        help="Seconds between bulk auto-assign sweeps (0 disables)"
    )
    parser.add_argument("--log-level", help="Root log level, e.g. DEBUG")
    return parser


def apply_overrides(args: argparse.Namespace) -> None:
    """Hand CLI overrides to Settings through the environment, so reloads see them too"""
    if args.no_pipeline:
        os.environ["PIPELINE_ENABLED"] = "false"
    if args.sweep_interval is not None:
        os.environ["BULK_SWEEP_INTERVAL_SECONDS"] = str(args.sweep_interval)
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level


def main():
    args = build_parser().parse_args()
    apply_overrides(args)

    print(f"Civic issue pipeline on http://{args.host}:{args.port}")
    print(f"  Pipeline: {'off' if args.no_pipeline else 'on'}")
    if args.reload:
        print("  Reload: on")

    uvicorn.run(
        "civic_pipeline.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1,
    )


if __name__ == "__main__":
    main()
