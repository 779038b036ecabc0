#!/usr/bin/env python3
"""
LinkHub Agent Gateway CLI

Usage:
    linkhub-gateway serve [--host HOST] [--port PORT] [--reload]
    linkhub-gateway keys create USERNAME --name NAME [--permission P ...] [--rate-limit N]
    linkhub-gateway keys list USERNAME
    linkhub-gateway keys revoke USERNAME KEY_ID
    linkhub-gateway keys delete USERNAME KEY_ID
    linkhub-gateway seed-demo USERNAME
    linkhub-gateway discovery

Environment Variables:
    LINKHUB_DB_PATH     Path to SQLite database (default: linkhub_gateway.db)
    LINKHUB_BASE_URL    Public base URL used in discovery and profile links
    LINKHUB_LOG_LEVEL   Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys

from .api_keys import ApiKeyManager
from .config import GatewayConfig
from .demo import demo_profile, demo_services
from .discovery import build_discovery_document
from .errors import ApiKeyError
from .keys import PERMISSIONS, RATE_LIMIT_TIERS
from .store import GatewayStore

logger = logging.getLogger("linkhub_gateway")


def setup_logging(verbose: bool = False):
    """Configure logging for CLI usage."""
    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, (os.getenv("LINKHUB_LOG_LEVEL", "INFO") or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    logger.setLevel(level)


def _store(args) -> GatewayStore:
    return GatewayStore(args.db or GatewayConfig.from_env().db_path)


def _profile_id_or_exit(store: GatewayStore, username: str) -> str:
    profile_id = store.get_profile_id(username)
    if profile_id is None:
        print(f"ERROR: profile not found: {username}", file=sys.stderr)
        sys.exit(2)
    return profile_id


def cmd_serve(args):
    """Run the gateway under uvicorn."""
    import uvicorn

    from .server import AgentGateway, create_app

    config = GatewayConfig.from_env()
    if args.db:
        config = dataclasses.replace(config, db_path=args.db)

    print(f"Starting LinkHub Agent Gateway on {args.host}:{args.port}")
    print("  Endpoints:")
    print("    POST /api/mcp/{username}   - MCP JSON-RPC endpoint")
    print("    GET  /.well-known/mcp.json - Discovery document")
    print("    GET  /v1/health            - Health check")
    print()

    if args.reload:
        # uvicorn needs an import string to reload.
        os.environ["LINKHUB_DB_PATH"] = config.db_path
        uvicorn.run("linkhub_gateway.server:create_app", factory=True, host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(create_app(AgentGateway.build(config)), host=args.host, port=args.port)
    return 0


def cmd_keys_create(args):
    store = _store(args)
    profile_id = _profile_id_or_exit(store, args.username)
    try:
        created = ApiKeyManager(store).create(
            profile_id, args.name, permissions=args.permission or None, rate_limit=args.rate_limit
        )
    except ApiKeyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(created.as_dict(), indent=2))
    print("\nStore this key now; it will not be shown again.", file=sys.stderr)


def cmd_keys_list(args):
    store = _store(args)
    profile_id = _profile_id_or_exit(store, args.username)
    print(json.dumps(ApiKeyManager(store).list(profile_id), indent=2))


def cmd_keys_revoke(args):
    store = _store(args)
    profile_id = _profile_id_or_exit(store, args.username)
    try:
        view = ApiKeyManager(store).revoke(profile_id, args.key_id)
    except ApiKeyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(view, indent=2))


def cmd_keys_delete(args):
    store = _store(args)
    profile_id = _profile_id_or_exit(store, args.username)
    try:
        ApiKeyManager(store).delete(profile_id, args.key_id)
    except ApiKeyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Deleted {args.key_id}")


def seed_demo_profile(store: GatewayStore, username: str) -> str:
    """Copy the demo profile into `store` as `username`; returns the profile id."""
    profile_id = f"profile-{username}"
    profile = demo_profile()
    profile.id = profile_id
    profile.username = username
    for link in profile.links:
        link.id = f"{username}-{link.id}"
    for social in profile.social_embeds:
        social.id = f"{username}-{social.id}"
    store.save_profile(profile)
    for service in demo_services():
        store.save_service(dataclasses.replace(service, id=f"{username}-{service.id}", profile_id=profile_id))
    return profile_id


def cmd_seed_demo(args):
    store = _store(args)
    profile_id = seed_demo_profile(store, args.username)
    logger.info("seeded demo data as %s (%s)", args.username, profile_id)
    print(f"Seeded profile @{args.username} ({profile_id})")


def cmd_discovery(args):
    print(json.dumps(build_discovery_document(GatewayConfig.from_env().base_url), indent=2))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="LinkHub Agent Gateway CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--db", default=None, help="Path to gateway database (default: env LINKHUB_DB_PATH)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP gateway")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    serve_parser.set_defaults(func=cmd_serve)

    # keys commands
    keys_parser = subparsers.add_parser("keys", help="Manage API keys for a profile")
    keys_sub = keys_parser.add_subparsers(dest="keys_command")

    create_parser = keys_sub.add_parser("create", help="Create a key (prints the secret once)")
    create_parser.add_argument("username")
    create_parser.add_argument("--name", required=True, help="Label for the key")
    create_parser.add_argument("--permission", action="append", choices=PERMISSIONS,
                               help="Permission to grant (repeatable, default: read)")
    create_parser.add_argument("--rate-limit", type=int, choices=RATE_LIMIT_TIERS, default=None,
                               help="Requests per window")
    create_parser.set_defaults(func=cmd_keys_create)

    list_parser = keys_sub.add_parser("list", help="List keys (never shows secrets)")
    list_parser.add_argument("username")
    list_parser.set_defaults(func=cmd_keys_list)

    revoke_parser = keys_sub.add_parser("revoke", help="Deactivate a key")
    revoke_parser.add_argument("username")
    revoke_parser.add_argument("key_id")
    revoke_parser.set_defaults(func=cmd_keys_revoke)

    delete_parser = keys_sub.add_parser("delete", help="Delete a key")
    delete_parser.add_argument("username")
    delete_parser.add_argument("key_id")
    delete_parser.set_defaults(func=cmd_keys_delete)

    # seed-demo command
    seed_parser = subparsers.add_parser("seed-demo", help="Copy the demo profile into the store")
    seed_parser.add_argument("username")
    seed_parser.set_defaults(func=cmd_seed_demo)

    # discovery command
    discovery_parser = subparsers.add_parser("discovery", help="Print the discovery document")
    discovery_parser.set_defaults(func=cmd_discovery)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
