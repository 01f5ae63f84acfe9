#!/usr/bin/env python3
"""
Token Registry - command line runner

Usage:
    python run.py query total_supply
    python run.py query tokens_for_owner --params '{"account_id": "alice.near", "limit": 10}'
    python run.py add-types --caller registry.near --caps '{"A": 2}' --unlocked
    python run.py mint t1 --owner alice.near --creator alice.near --type A
    python run.py transfer t1 --sender alice.near --receiver bob.near
    python run.py check

State persists between invocations only with the sqlite backend
(storage.backend in config, or --db PATH).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent))

from src.config import load_config, get_validated_config, set_config_value
from src.registry import RegistryError, RegistryQueryHandler, TokenRegistry


def _json_arg(raw: str | None, name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--{name} is not valid JSON: {e}")


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Operate a token registry"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config file (default: $REGISTRY_CONFIG, then config/config.yaml)",
    )
    parser.add_argument("--db", help="Use the sqlite backend at this path")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    sub = parser.add_subparsers(dest="command", required=True)

    query = sub.add_parser("query", help="Run a read-only query")
    query.add_argument("query_type")
    query.add_argument("--params", default="{}", help="JSON object of query params")

    mint = sub.add_parser("mint", help="Create a token")
    mint.add_argument("token_id")
    mint.add_argument("--owner", required=True)
    mint.add_argument("--creator", required=True)
    mint.add_argument("--type", dest="token_type")
    mint.add_argument("--metadata", help="JSON object of token metadata")
    mint.add_argument("--royalties", help="JSON object of account -> basis points")

    transfer = sub.add_parser("transfer", help="Move a token to a new owner")
    transfer.add_argument("token_id")
    transfer.add_argument("--sender", required=True)
    transfer.add_argument("--receiver", required=True)
    transfer.add_argument("--memo")

    add_types = sub.add_parser("add-types", help="Declare types or raise caps")
    add_types.add_argument("--caller", required=True)
    add_types.add_argument("--caps", required=True, help="JSON object of type -> cap")
    add_types.add_argument("--unlocked", action="store_true")

    for name, help_text in (("lock-types", "Lock types for creation"),
                            ("unlock-types", "Unlock types for creation")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--caller", required=True)
        p.add_argument("token_types", nargs="+")

    royalty = sub.add_parser("set-royalty", help="Set the operator royalty")
    royalty.add_argument("--caller", required=True)
    royalty.add_argument("basis_points", type=int)

    backfill = sub.add_parser("backfill", help="Add a royalty entry to every token")
    backfill.add_argument("--caller", required=True)
    backfill.add_argument("--account", required=True)
    backfill.add_argument("basis_points", type=int)

    sub.add_parser("check", help="Verify store/index consistency")
    return parser


def dispatch(registry: TokenRegistry, args: argparse.Namespace) -> Any:
    """Run one subcommand and return its JSON-serializable result."""
    if args.command == "query":
        params = _json_arg(args.params, "params") or {}
        return RegistryQueryHandler(registry).execute(args.query_type, params)
    if args.command == "mint":
        token = registry.nft_mint(
            args.token_id,
            _json_arg(args.metadata, "metadata"),
            owner_id=args.owner,
            creator_id=args.creator,
            token_type=args.token_type,
            perpetual_royalties=_json_arg(args.royalties, "royalties"),
        )
        return {"success": True, "data": token.to_dict()}
    if args.command == "transfer":
        registry.nft_transfer(args.token_id, args.sender, args.receiver, args.memo)
        return {"success": True, "data": None}
    if args.command == "add-types":
        caps = _json_arg(args.caps, "caps")
        declared = registry.add_token_types(args.caller, caps, unlocked=args.unlocked or None)
        return {"success": True, "data": declared}
    if args.command == "lock-types":
        return {"success": True, "data": registry.lock_token_types(args.caller, args.token_types)}
    if args.command == "unlock-types":
        return {"success": True, "data": registry.unlock_token_types(args.caller, args.token_types)}
    if args.command == "set-royalty":
        registry.set_contract_royalty(args.caller, args.basis_points)
        return {"success": True, "data": args.basis_points}
    if args.command == "backfill":
        updated = registry.backfill_royalty(args.caller, args.account, args.basis_points)
        return {"success": True, "data": updated}
    if args.command == "check":
        return {"success": True, "data": registry.check_consistency()}
    raise SystemExit(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args: argparse.Namespace = build_parser().parse_args(argv)

    load_config(args.config)
    if args.db:
        set_config_value("storage.backend", "sqlite")
        set_config_value("storage.path", args.db)
    config = get_validated_config()

    logging.basicConfig(
        level=logging.WARNING if args.quiet else config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    registry = TokenRegistry.from_config(config)
    try:
        result = dispatch(registry, args)
    except RegistryError as e:
        _emit(e.to_dict())
        return 1

    _emit(result)
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
