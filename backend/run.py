#!/usr/bin/env python3
"""
Image optimizer server runner.

Usage:
    python run.py
    python run.py --reload
    python run.py --port 3000 --cache-backend redis
    python run.py --cache-dir /var/cache/img-optimizer --workers 4

Command-line overrides are exported as environment variables before the
settings are loaded, so every uvicorn worker process sees the same values.
"""

import argparse
import os

import uvicorn

from img_optimizer.config import get_settings

# flag -> environment variable read by Settings
ENV_OVERRIDES = {
    "cache_backend": "CACHE_BACKEND",
    "cache_dir": "CACHE_DIR",
    "log_level": "LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Image optimizer proxy")
    parser.add_argument("--host", default=None, help="Bind address (default: from settings)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: from settings)")
    parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes; use the redis backend to share the cache between them",
    )
    parser.add_argument("--cache-backend", choices=["disk", "memory", "redis"], default=None)
    parser.add_argument("--cache-dir", default=None, help="Directory for the disk backend")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
    )
    return parser


def main():
    """Run the FastAPI application."""
    args = build_parser().parse_args()

    for option, env_name in ENV_OVERRIDES.items():
        value = getattr(args, option)
        if value is not None:
            os.environ[env_name] = value

    get_settings.cache_clear()
    settings = get_settings()

    host = args.host or settings.host
    port = args.port or settings.port
    workers = 1 if args.reload else args.workers

    print(f"Starting {settings.app_name} on {host}:{port} ({workers} worker(s))")
    print(f"Cache backend: {settings.cache_backend} (TTL {settings.cache_ttl_seconds}s)")
    if settings.cache_backend == "disk":
        print(f"Cache directory: {os.path.abspath(settings.cache_dir)}")
    elif settings.cache_backend == "redis":
        print(f"Redis URL: {settings.redis_url}")
    if workers > 1 and settings.cache_backend == "memory":
        print("Warning: the memory backend is per-process; workers will not share cached images")

    uvicorn.run(
        "img_optimizer.main:app",
        host=host,
        port=port,
        reload=args.reload,
        workers=workers,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
