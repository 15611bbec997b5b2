"""
Deadswitch command line.

    deadswitch address <key-or-address> [--network testnet] [--all]
    deadswitch remaining --last-active N --interval N [--now N]
    deadswitch config --testnet|--mainnet --output PATH
    deadswitch demo [--network testnet]
"""

from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from deadswitch import __version__
from deadswitch.app.config import ClientConfig, LogConfig, setup_logging
from deadswitch.app.client import ProtocolClient
from deadswitch.constants import DEFAULT_HEARTBEAT_INTERVAL_SEC, DEFAULT_NETWORK, NETWORK_MAINNET, NETWORK_TESTNET
from deadswitch.core.types import Identity, View
from deadswitch.crypto.address import AddressCodec, classify_custody_key
from deadswitch.errors import AddressDerivationError, DeadSwitchError
from deadswitch.liveness.clock import FixedTimeSource, LivenessClock, evaluate_liveness, format_remaining
from deadswitch.registry.backend import MockRegistry

logger = logging.getLogger(__name__)


def cmd_address(args: argparse.Namespace) -> int:
    codec = AddressCodec(args.network)
    try:
        key = classify_custody_key(args.key)
        if key.is_address:
            print(f"{key.value}  (already an address, {key.network})")
            return 0
        if args.all:
            for kind, address in codec.derive_all(key.value).to_dict().items():
                if kind != "network":
                    print(f"{kind:8s} {address or '-'}")
        else:
            print(codec.resolve(key))
    except AddressDerivationError as e:
        print(f"raw: {args.key}", file=sys.stderr)
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    return 0


def cmd_remaining(args: argparse.Namespace) -> int:
    now = args.now
    if now is None:
        now = LivenessClock().now()
    verdict = evaluate_liveness(args.last_active, args.interval, now)
    print(f"remaining: {verdict.remaining}")
    print(f"formatted: {format_remaining(verdict.remaining)}")
    print(f"status:    {verdict.status.value}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    config = ClientConfig.default_mainnet() if args.mainnet else ClientConfig.default_testnet()
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"invalid config: {error}", file=sys.stderr)
        return 1
    config.save(args.output)
    print(f"Wrote {config.network} config to {args.output}")
    return 0


async def _demo(network: str) -> None:
    time_source = FixedTimeSource(1_700_000_000)
    registry = MockRegistry(time_source=time_source)
    config = ClientConfig(network=network)
    client = ProtocolClient(registry, config=config, clock=LivenessClock(time_source))

    # Alice names Bob; Bob logs in after Alice goes silent
    await client.login(Identity("alice"))
    await client.register_will("bob", "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx", 3600, b"sealed")
    client.navigate(View.MONITOR)
    await client.drain()
    print(f"alice: {client.view.value}, custody {client.service.address}, "
          f"remaining {format_remaining(client.verdict().remaining)}")
    await client.logout()

    time_source.advance(3600)
    transition = await client.login(Identity("bob"))
    await client.drain()
    print(f"bob: {transition.target.value}, claims {[c.to_dict() for c in client.service.claims]}")
    secret = await client.claim("alice")
    print(f"bob claimed {len(secret)} secret bytes")
    await client.shutdown()


def cmd_demo(args: argparse.Namespace) -> int:
    asyncio.run(_demo(args.network))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deadswitch", description="Dead-man's-switch liveness client")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Log level")
    sub = parser.add_subparsers(dest="command", required=True)

    networks = (NETWORK_MAINNET, NETWORK_TESTNET)

    p = sub.add_parser("address", help="Derive the custody address of a public key")
    p.add_argument("key", help="Public key hex (33 or 65 bytes) or an encoded address")
    p.add_argument("--network", choices=networks, default=DEFAULT_NETWORK)
    p.add_argument("--all", action="store_true", help="Print every address form")
    p.set_defaults(func=cmd_address)

    p = sub.add_parser("remaining", help="Time remaining before a will expires")
    p.add_argument("--last-active", type=int, required=True, help="Last heartbeat (epoch seconds)")
    p.add_argument("--interval", type=int, default=DEFAULT_HEARTBEAT_INTERVAL_SEC,
                   help="Heartbeat interval in seconds (default: 90 days)")
    p.add_argument("--now", type=int, help="Evaluation time (default: wall clock)")
    p.set_defaults(func=cmd_remaining)

    p = sub.add_parser("config", help="Write a default configuration file")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--testnet", action="store_true")
    group.add_argument("--mainnet", action="store_true")
    p.add_argument("--output", "-o", required=True, help="Destination JSON path")
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("demo", help="Scripted session against the in-process registry")
    p.add_argument("--network", choices=networks, default=DEFAULT_NETWORK)
    p.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(LogConfig(level=args.log_level))

    try:
        return args.func(args)
    except DeadSwitchError as e:
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
