#!/usr/bin/env python3
"""Pyth Dashboard CLI.

Shows live Pyth prices, pushes price updates on-chain with the pull-oracle
flow, requests Entropy randomness and talks to the Pyth assistant.

Configure via CLI options or environment variables (CLI args take precedence).
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.AppState import AppState
from .src.ChatClient import ChatClient
from .src.ContractUtility import (
    DEFAULT_ENTROPY_ADDRESS,
    DEFAULT_ENTROPY_PROVIDER,
    DEFAULT_PYTH_ADDRESS,
    NETWORKS,
    ContractUtility,
)
from .src.Dashboard import Dashboard
from .src.OracleUpdater import OracleUpdater
from .src.PriceClient import DEFAULT_HERMES_URL, PriceClient
from .src.PriceFeedRegistry import PRICE_FEEDS, get_feed
from .src.PriceQuote import format_price
from .src.RandomnessClient import FortunaClient, RandomnessClient, scale_to_range
from .src.SigningConnection import Web3SigningConnection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    :returns: Configured parser with one subcommand per dashboard action.
    """
    parser = argparse.ArgumentParser(
        description="Pyth Dashboard: price feeds, pull-oracle updates and Entropy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Known price feeds:
  {', '.join(f.symbol for f in PRICE_FEEDS)}

Examples:
  # Latest BTC/USD price from Hermes
  python -m pythdash.main price --feed btc/usd

  # Push ETH/USD on-chain and read it back
  PRIVATE_KEY=0x... python -m pythdash.main --network sepolia update --feed eth/usd

  # Request a random number between 1 and 6
  PRIVATE_KEY=0x... python -m pythdash.main --network blast-sepolia random --max 6

Environment variables (CLI args take precedence):
  NETWORK, RPC_URL, PRIVATE_KEY, PYTH_ADDRESS, ENTROPY_ADDRESS,
  ENTROPY_PROVIDER, HERMES_URL, FORTUNA_URL, FORTUNA_CHAIN,
  DEEPSEEK_API_KEY, POLL_INTERVAL
""",
    )

    parser.add_argument(
        "--network",
        type=str,
        help=f"Network to connect to ({', '.join(NETWORKS)}) or an RPC URL",
        default=os.environ.get("NETWORK") or "sepolia",
    )

    parser.add_argument(
        "--pyth-address",
        dest="pyth_address",
        type=str,
        help="Address of the Pyth price contract",
        default=os.environ.get("PYTH_ADDRESS"),
    )

    parser.add_argument(
        "--entropy-address",
        dest="entropy_address",
        type=str,
        help="Address of the Pyth Entropy contract",
        default=os.environ.get("ENTROPY_ADDRESS"),
    )

    parser.add_argument(
        "--entropy-provider",
        dest="entropy_provider",
        type=str,
        help="Entropy randomness provider address",
        default=os.environ.get("ENTROPY_PROVIDER") or DEFAULT_ENTROPY_PROVIDER,
    )

    parser.add_argument(
        "--hermes-url",
        dest="hermes_url",
        type=str,
        help=f"Hermes price service URL (default: {DEFAULT_HERMES_URL})",
        default=os.environ.get("HERMES_URL") or DEFAULT_HERMES_URL,
    )

    parser.add_argument(
        "--fortuna-url",
        dest="fortuna_url",
        type=str,
        help="Fortuna revelation service URL (enables the on-chain reveal)",
        default=os.environ.get("FORTUNA_URL"),
    )

    parser.add_argument(
        "--fortuna-chain",
        dest="fortuna_chain",
        type=str,
        help="Chain identifier used by Fortuna (default: the network name)",
        default=os.environ.get("FORTUNA_CHAIN"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("feeds", help="List known price feeds")

    price = subparsers.add_parser("price", help="Show the latest Hermes price")
    price.add_argument("--feed", default="btc/usd", help="Feed symbol or id")

    watch = subparsers.add_parser("watch", help="Poll Hermes and print the price history")
    watch.add_argument("--feed", default="btc/usd", help="Feed symbol or id")
    watch.add_argument(
        "--interval",
        type=float,
        help="Seconds between fetches (minimum: 1, default: 10)",
        default=float(os.environ.get("POLL_INTERVAL") or "10"),
    )
    watch.add_argument("--count", type=int, default=6, help="Number of refreshes to print")

    update = subparsers.add_parser("update", help="Push the latest price on-chain")
    update.add_argument("--feed", default="btc/usd", help="Feed symbol or id")

    read = subparsers.add_parser("read", help="Read the settled on-chain price")
    read.add_argument("--feed", default="btc/usd", help="Feed symbol or id")
    read.add_argument(
        "--max-age",
        dest="max_age",
        type=int,
        default=60,
        help="Reject on-chain prices older than this many seconds (default: 60)",
    )

    random = subparsers.add_parser("random", help="Request an Entropy random number")
    random.add_argument("--max", dest="max_value", type=int, default=100,
                        help="Also print the value scaled to [1, max] (default: 100)")
    random.add_argument("--attempts", type=int, default=10,
                        help="Maximum fulfilment polls (default: 10)")
    random.add_argument("--interval", type=float, default=5.0,
                        help="Seconds between polls (default: 5)")

    chat = subparsers.add_parser("chat", help="Ask the Pyth assistant")
    chat.add_argument("message", nargs="+", help="Message text")

    return parser


def build_dashboard(args: argparse.Namespace) -> tuple[Dashboard, Web3SigningConnection | None]:
    """Create the dashboard and, if a key is configured, a signing connection.

    :param args: Parsed CLI arguments.
    :returns: Tuple of (dashboard, connection or None).
    """
    api_key = os.environ.get("DEEPSEEK_API_KEY", "")
    state = AppState(api_key=api_key)
    price_client = PriceClient(args.hermes_url)

    pyth_address = args.pyth_address or DEFAULT_PYTH_ADDRESS.get(args.network)
    entropy_address = args.entropy_address or DEFAULT_ENTROPY_ADDRESS.get(args.network)

    updater = OracleUpdater(price_client, pyth_address) if pyth_address else None

    randomness = None
    if entropy_address:
        fortuna = None
        if args.fortuna_url:
            fortuna = FortunaClient(args.fortuna_url, args.fortuna_chain or args.network)
        randomness = RandomnessClient(
            entropy_address,
            provider=args.entropy_provider,
            fortuna=fortuna,
        )

    attempts = getattr(args, "attempts", 10)
    interval = getattr(args, "interval", 5.0)
    dashboard = Dashboard(
        state,
        price_client,
        ChatClient(),
        updater=updater,
        randomness=randomness,
        poll_interval=interval if args.command == "watch" else 10.0,
        random_max_attempts=attempts,
        random_poll_interval=interval if args.command == "random" else 5.0,
    )

    connection = None
    private_key = os.environ.get("PRIVATE_KEY")
    if private_key:
        connection = Web3SigningConnection(ContractUtility(args.network, private_key))
    return dashboard, connection


async def run_command(args: argparse.Namespace) -> int:
    """Run one CLI command.

    :param args: Parsed CLI arguments.
    :returns: Process exit code.
    """
    if args.command == "feeds":
        for feed in PRICE_FEEDS:
            print(f"{feed.symbol:<10} {feed.name:<12} 0x{feed.id}")
        return 0

    dashboard, connection = build_dashboard(args)
    state = dashboard.state
    try:
        await dashboard.start(poll=False)
        if hasattr(args, "feed"):
            await dashboard.select_feed(args.feed)
        if args.command in ("update", "read", "random"):
            if connection is None:
                logger.error("PRIVATE_KEY is required for on-chain commands")
                return 1
            if await dashboard.connect_wallet(connection) is None:
                return 1

        if args.command == "price":
            quote = await dashboard.refresh_price()
            if quote is None:
                return 1
            print(f"{get_feed(state.selected_feed).symbol}: {format_price(quote.display_value)} "
                  f"(± {format_price(quote.display_confidence)}, publish_time={quote.publish_time})")

        elif args.command == "watch":
            dashboard.poller.start()
            for _ in range(max(1, args.count)):
                await asyncio.sleep(dashboard.poller.interval)
                history = ", ".join(format_price(p.value) for p in state.price_history)
                print(f"[{len(state.price_history)}] {history}")

        elif args.command == "update":
            if await dashboard.update_on_chain() is None:
                return 1

        elif args.command == "read":
            quote = await dashboard.read_on_chain(args.max_age)
            if quote is None:
                return 1
            print(format_price(quote.display_value))

        elif args.command == "random":
            request = await dashboard.request_random()
            if request is None:
                return 1
            result = await dashboard.random_task
            if result is None:
                return 1
            print(f"Random number: {result.value}")
            if not result.revealed:
                print("Warning: placeholder value, not verifiable randomness")
            print(f"Scaled to [1, {args.max_value}]: {scale_to_range(result.value, args.max_value)}")

        elif args.command == "chat":
            if not state.has_api_key:
                logger.info("Running in demo mode. Set DEEPSEEK_API_KEY for full AI capabilities")
            print(await dashboard.send_chat(" ".join(args.message)))

        return 0
    finally:
        await dashboard.close()


def main() -> None:
    """Main entry point for the Pyth Dashboard CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if getattr(args, "max_value", 1) < 1:
        parser.error("--max must be at least 1")
    if getattr(args, "attempts", 1) < 1:
        parser.error("--attempts must be at least 1")

    if args.command != "feeds":
        logger.info("=" * 60)
        logger.info("Pyth Dashboard")
        logger.info("=" * 60)
        logger.info(f"Network:           {args.network}")
        logger.info(f"Hermes:            {args.hermes_url}")
        logger.info(f"Pyth Contract:     {args.pyth_address or DEFAULT_PYTH_ADDRESS.get(args.network)}")
        logger.info(f"Entropy Contract:  {args.entropy_address or DEFAULT_ENTROPY_ADDRESS.get(args.network)}")
        logger.info(f"Entropy Provider:  {args.entropy_provider}")
        logger.info(f"Reveal:            {'fortuna' if args.fortuna_url else 'placeholder'}")
        logger.info("=" * 60)

    try:
        exit_code = asyncio.run(run_command(args))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        exit_code = 0
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
