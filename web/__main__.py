"""
Serve the EduPortal data API with uvicorn.

Usage:
    python -m web [--data-dir DIR] [--port 8000] [--host 127.0.0.1]
                  [--log-level LEVEL] [--reload]

``--data-dir`` and ``--log-level`` are exported as ``EDUPORTAL_DATA_DIR`` and
``EDUPORTAL_LOG_LEVEL`` so the app (and reload workers) pick them up.
"""

import argparse
import logging
import os

import uvicorn

from eduportal.config import DATA_DIR_ENV, LOG_LEVEL_ENV, get_data_dir, get_log_level


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eduportal-web",
        description="Serve the EduPortal video catalog and account API",
    )
    parser.add_argument("--data-dir", help="Directory holding the store files "
                                           "(default: $EDUPORTAL_DATA_DIR or ~/.eduportal)")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--log-level", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log level (default: $EDUPORTAL_LOG_LEVEL or INFO)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    return parser


def apply_overrides(args) -> None:
    """Export command-line overrides to the environment the app reads."""
    if args.data_dir:
        os.environ[DATA_DIR_ENV] = str(args.data_dir)
    if args.log_level:
        os.environ[LOG_LEVEL_ENV] = args.log_level


def main(argv=None):
    args = build_parser().parse_args(argv)
    apply_overrides(args)
    level = get_log_level()
    logging.basicConfig(level=level)

    print(f"\n  EduPortal data API on http://{args.host}:{args.port}/api")
    print(f"  Stores in {get_data_dir()}\n")

    uvicorn.run(
        "web.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
