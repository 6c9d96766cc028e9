"""Pledge CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from pledge import __version__
from pledge.bets.exceptions import BetError
from pledge.bets.lifecycle import BetLifecycleService
from pledge.config import Settings, get_settings
from pledge.scheduler import start_scheduler
from pledge.services.payments import create_stripe_client
from pledge.sweep import run_sweep_once

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Pledge Configuration
# Operational parameters for the commitment-bet service.
# API keys and secrets belong in .env, not here.

betting:
  allowed_durations: [7, 30, 90]
  on_track_threshold_pct: 75

leaderboard:
  scoring: stake          # stake | flat
  stake_multiplier: 1
  flat_points: 100

payments:
  paper_mode: true
  currency: usd
  timeout_seconds: 10
  max_retries: 3

data_provider:
  base_url: http://localhost:8100/api/v1
  timeout_seconds: 10
  max_retries: 3

scheduler:
  resolve_interval_minutes: 60

api:
  host: 0.0.0.0
  port: 8000
  allowed_origins:
    - http://localhost:3000
"""


def _init_logfire(app=None) -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from pledge.observability import initialize_logfire

        initialize_logfire(get_settings(), app=app)
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _apply_log_level(settings: Settings) -> None:
    logging.getLogger().setLevel(settings.log_level.upper())


def _run_with_service(
    settings: Settings,
    action: Callable[[BetLifecycleService], Awaitable[Any]],
) -> Any:
    """Open the payment client, build the service and run ``action``."""

    async def run() -> Any:
        async with create_stripe_client(settings) as gateway:
            service = BetLifecycleService.from_settings(settings, gateway)
            return await action(service)

    return asyncio.run(run())


def _print_bet(service: BetLifecycleService, bet) -> None:
    view = service.describe(bet)
    print(f"  {bet.id}  [{view.label.upper()}] {bet.title}")
    print(
        f"    {bet.category}: {bet.current_value}/{bet.target_value} "
        f"({view.progress_percent:.1f}%), stake ${bet.stake_amount}, "
        f"{view.days_remaining} days left"
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory structure and configuration file."""
    data_dir = Path("data").resolve()

    try:
        for subdir in ["bets", "settlements"]:
            (data_dir / subdir).mkdir(parents=True, exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Copy .env.example to .env and add your API keys")
        print("2. Review and customize data/config.yaml if needed")
        print("3. Run 'python -m pledge config' to verify configuration")
        print("4. Run 'python -m pledge serve' to start the API\n")

        return 0

    except OSError as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Pledge Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Betting:")
        print(f"  Allowed Durations: {settings.betting.allowed_durations} days")
        print(f"  On-Track Threshold: {settings.betting.on_track_threshold_pct}%\n")

        print("Leaderboard:")
        print(f"  Scoring: {settings.leaderboard.scoring}")
        if settings.leaderboard.scoring == "flat":
            print(f"  Points per Win: {settings.leaderboard.flat_points}\n")
        else:
            print(f"  Stake Multiplier: {settings.leaderboard.stake_multiplier}\n")

        print("Payments:")
        print(f"  Mode: {'PAPER' if settings.paper_mode else 'LIVE'}")
        print(f"  Currency: {settings.payments.currency}")
        print(f"  Timeout: {settings.payments.timeout_seconds}s\n")

        print("Data Provider:")
        print(f"  Base URL: {settings.data_provider.base_url}")
        print(f"  Timeout: {settings.data_provider.timeout_seconds}s\n")

        print("Scheduler (minutes):")
        print(f"  Settlement Sweep: {settings.scheduler.resolve_interval_minutes}\n")

        print("API:")
        print(f"  Listen: {settings.api.host}:{settings.api.port}")
        print(f"  Allowed Origins: {', '.join(settings.api.allowed_origins)}\n")

        print("API Keys:")
        print(f"  Stripe: {'✓ Set' if settings.stripe_secret_key else '✗ Not set'}")
        print(f"  Finance Data: {'✓ Set' if settings.finance_api_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1


def cmd_list(args: argparse.Namespace) -> int:
    """List stored bets."""
    settings = get_settings()

    async def action(service: BetLifecycleService) -> int:
        bets = service.list_bets(owner_id=args.owner, phase=args.phase)
        print(f"\n=== Bets ({len(bets)}) ===\n")
        for bet in bets:
            _print_bet(service, bet)
        if not bets:
            print("  (None)")
        print()
        return 0

    return _run_with_service(settings, action)


def cmd_create(args: argparse.Namespace) -> int:
    """Create a draft bet."""
    settings = get_settings()
    charity = {"name": args.charity} if args.charity else None

    async def action(service: BetLifecycleService) -> int:
        bet = await service.create_draft(
            owner_id=args.owner,
            title=args.title,
            description=args.description,
            category=args.category,
            target_value=args.target,
            stake_amount=args.stake,
            duration_days=args.days,
            charity=charity,
        )
        print(f"\n✓ Created draft bet {bet.id}")
        print(f"  Ends: {bet.end_date:%Y-%m-%d %H:%M} UTC")
        print(f"  Next: python -m pledge pay {bet.id}\n")
        return 0

    try:
        return _run_with_service(settings, action)
    except BetError as e:
        print(f"\n❌ {e.message}\n")
        return 1


def cmd_pay(args: argparse.Namespace) -> int:
    """Request a payment intent for a draft bet's stake."""
    settings = get_settings()

    async def action(service: BetLifecycleService) -> int:
        ref = await service.request_payment(args.bet_id)
        print(f"\n✓ Payment intent {ref.intent_id} for ${ref.amount} {ref.currency.upper()}")
        if ref.client_secret:
            print(f"  Client secret: {ref.client_secret}")
        print()
        return 0

    try:
        return _run_with_service(settings, action)
    except BetError as e:
        print(f"\n❌ {e.message}\n")
        return 1


def cmd_activate(args: argparse.Namespace) -> int:
    """Confirm a stake payment and start the bet."""
    settings = get_settings()

    async def action(service: BetLifecycleService) -> int:
        bet = await service.activate(args.bet_id, args.intent, args.amount)
        print(f"\n✓ Bet {bet.id} is active until {bet.end_date:%Y-%m-%d %H:%M} UTC\n")
        return 0

    try:
        return _run_with_service(settings, action)
    except BetError as e:
        print(f"\n❌ {e.message}\n")
        return 1


def cmd_abandon(args: argparse.Namespace) -> int:
    """Delete an unpaid draft bet."""
    settings = get_settings()

    async def action(service: BetLifecycleService) -> int:
        await service.abandon(args.bet_id)
        print(f"\n✓ Abandoned bet {args.bet_id}\n")
        return 0

    try:
        return _run_with_service(settings, action)
    except BetError as e:
        print(f"\n❌ {e.message}\n")
        return 1


def cmd_leaderboard(args: argparse.Namespace) -> int:
    """Display current standings."""
    settings = get_settings()

    async def action(service: BetLifecycleService) -> int:
        entries = service.leaderboard()
        print("\n=== Leaderboard ===\n")
        for entry in entries[: args.limit]:
            print(
                f"  {entry.rank:>3}. {entry.player_id:<24} "
                f"{entry.points:>10} pts  {entry.wins} wins"
            )
        if not entries:
            print("  (No settled wins yet)")
        print()
        return 0

    return _run_with_service(settings, action)


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run one settlement sweep."""
    _init_logfire()

    try:
        print("\n=== Settlement Sweep ===\n")

        settings = get_settings()
        _apply_log_level(settings)
        result = asyncio.run(run_sweep_once(settings))

        print("✓ Sweep complete\n")
        print(f"Inspected: {result.inspected}")
        print(f"Won: {result.won}")
        print(f"Lost: {result.lost}")
        print(f"Still Active: {result.still_active}")
        print(f"Redelivered Settlements: {result.redelivered}\n")

        if result.errors:
            print("Errors:")
            for error in result.errors:
                print(f"  • {error}")
            print()

        return 0

    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        print(f"\n❌ Sweep failed: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Start the settlement scheduler."""
    try:
        _init_logfire()

        settings = get_settings()
        _apply_log_level(settings)
        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        print("\n=== Pledge Settlement Scheduler ===\n")
        print(f"Version: {__version__}")
        print(f"Payments: {'PAPER' if settings.paper_mode else 'LIVE'}")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Starting scheduler...\n")
        start_scheduler(settings)

        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API server."""
    import uvicorn

    from pledge.api import create_app

    settings = get_settings()
    _apply_log_level(settings)
    app = create_app(settings)
    _init_logfire(app)

    uvicorn.run(
        app,
        host=args.host or settings.api.host,
        port=args.port or settings.api.port,
    )
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Pledge: commitment bets on personal financial goals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Pledge {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration file",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_list = subparsers.add_parser("list", help="List bets")
    parser_list.add_argument("--owner", help="Only bets of this owner")
    parser_list.add_argument(
        "--phase",
        choices=["draft", "pending_payment", "active", "settled"],
        help="Only bets in this phase",
    )
    parser_list.set_defaults(func=cmd_list)

    parser_create = subparsers.add_parser("create", help="Create a draft bet")
    parser_create.add_argument("--owner", required=True, help="Owner id")
    parser_create.add_argument("--title", required=True, help="Goal title")
    parser_create.add_argument("--description", default="", help="Goal description")
    parser_create.add_argument("--category", required=True, help="Goal category")
    parser_create.add_argument("--target", required=True, help="Target value")
    parser_create.add_argument("--stake", required=True, help="Stake in dollars")
    parser_create.add_argument("--days", type=int, required=True, help="Duration in days")
    parser_create.add_argument("--charity", help="Charity receiving a forfeited stake")
    parser_create.set_defaults(func=cmd_create)

    parser_pay = subparsers.add_parser("pay", help="Request a payment intent for a draft")
    parser_pay.add_argument("bet_id")
    parser_pay.set_defaults(func=cmd_pay)

    parser_activate = subparsers.add_parser("activate", help="Confirm payment and start a bet")
    parser_activate.add_argument("bet_id")
    parser_activate.add_argument("--intent", required=True, help="Payment intent id")
    parser_activate.add_argument("--amount", required=True, help="Amount paid in dollars")
    parser_activate.set_defaults(func=cmd_activate)

    parser_abandon = subparsers.add_parser("abandon", help="Delete an unpaid draft")
    parser_abandon.add_argument("bet_id")
    parser_abandon.set_defaults(func=cmd_abandon)

    parser_leaderboard = subparsers.add_parser("leaderboard", help="Display standings")
    parser_leaderboard.add_argument("--limit", type=int, default=20)
    parser_leaderboard.set_defaults(func=cmd_leaderboard)

    parser_sweep = subparsers.add_parser("sweep", help="Run one settlement sweep")
    parser_sweep.set_defaults(func=cmd_sweep)

    parser_run = subparsers.add_parser(
        "run",
        help="Start the settlement scheduler",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_serve = subparsers.add_parser("serve", help="Start the HTTP API server")
    parser_serve.add_argument("--host", help="Bind address (default from config)")
    parser_serve.add_argument("--port", type=int, help="Port (default from config)")
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
