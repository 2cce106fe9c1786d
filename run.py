#!/usr/bin/env python3
"""
Start the trip sync server, or run one of the configuration utilities.

The server always runs as a single process: each owner's coordinator and the
shared enrichment guard are in-memory state.
"""

import argparse
import sys

from tripsync.config.loader import ConfigLoader, load_config_for_environment
from tripsync.config.settings import Environment, Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trip Sync Coordinator Server")
    parser.add_argument(
        "--env",
        choices=[env.value for env in Environment],
        default=None,
        help="Environment to run (default: from ENVIRONMENT env var or development)"
    )
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")

    utilities = parser.add_mutually_exclusive_group()
    utilities.add_argument(
        "--validate-env",
        metavar="ENV",
        help="Check that an environment's .env file loads, then exit"
    )
    utilities.add_argument(
        "--create-sample",
        metavar="ENV",
        help="Write a sample .env file for an environment, then exit"
    )
    return parser


def run_utility(args) -> bool:
    """Handle --validate-env / --create-sample. Returns True when one ran."""
    if args.validate_env:
        if not ConfigLoader.validate_environment_config(args.validate_env):
            print(f"✗ Environment '{args.validate_env}' configuration is invalid or missing")
            sys.exit(1)
        print(f"✓ Environment '{args.validate_env}' configuration is valid")
        return True

    if args.create_sample:
        try:
            sample_file = ConfigLoader.create_sample_env_file(args.create_sample)
        except OSError as e:
            print(f"✗ Failed to create sample configuration: {e}")
            sys.exit(1)
        print(f"✓ Sample configuration created: {sample_file}")
        return True

    return False


def load_settings(args) -> Settings:
    try:
        settings = load_config_for_environment(args.env)
    except ValueError as e:
        print(f"✗ Failed to load configuration: {e}")
        sys.exit(1)

    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.reload:
        settings.reload = True
    return settings


def main():
    args = build_parser().parse_args()
    if run_utility(args):
        return

    settings = load_settings(args)
    settings.get_local_cache_path().mkdir(parents=True, exist_ok=True)

    print(f"🚀 Starting {settings.app_name} v{settings.app_version} ({settings.environment.value})")
    print(f"   Listening on {settings.host}:{settings.port}")
    print(f"   Remote store: {'configured' if settings.supabase.is_configured else 'offline only'}")
    print(f"   Local snapshots: {settings.local_cache.backend.value}")
    print(f"   Image provider: {'configured' if settings.pexels.api_key else 'disabled'}")

    import uvicorn

    uvicorn.run(
        "tripsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=1,
        log_level=settings.log_level.value.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
