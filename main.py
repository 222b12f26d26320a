# main.py
"""Main entry point for the copy-trading engine."""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from copytrade.capital import CapitalAllocator, CapitalSettings, validate_allocation_options
from copytrade.config.settings import Settings
from copytrade.exceptions import ConfigurationError, CopyTradeError
from copytrade.execution import CcxtFuturesClient, MarginType, TradeExecutor
from copytrade.ledger import OrderHistoryStore
from copytrade.notifications import AlertFormatter, TelegramNotifier
from copytrade.orchestrator import CopyTradingOrchestrator, CycleStatus
from copytrade.reconciliation import PositionReconciler
from copytrade.refollow import AutoRefollowController
from copytrade.risk import RiskManager
from copytrade.signals import SignalSourceClient


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("config/settings.yaml")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Copy an AI agent's futures positions onto your own exchange account."
    )
    parser.add_argument("agent", help="Agent id to follow (e.g. deepseek-chat-v3.1)")
    parser.add_argument("--interval", type=int, help="Seconds between polls")

    capital = parser.add_mutually_exclusive_group()
    capital.add_argument(
        "--total-margin", type=float, help="Total margin (USDT) split proportionally"
    )
    capital.add_argument(
        "--fixed-amount-per-coin", type=float, help="Fixed margin (USDT) per symbol"
    )
    parser.add_argument(
        "--max-total-margin", type=float, help="Cap on total margin for fixed allocation"
    )

    parser.add_argument(
        "--profit", type=float, help="Profit target as return on margin (%%)"
    )
    parser.add_argument(
        "--auto-refollow",
        action="store_true",
        help="Follow a symbol again after a profit exit or manual close",
    )
    parser.add_argument(
        "--price-tolerance", type=float, help="Max adverse price drift before skipping (%%)"
    )
    parser.add_argument(
        "--margin-type", choices=[m.value for m in MarginType], help="Futures margin mode"
    )
    parser.add_argument("--exchange", choices=["binance", "okx"], help="Exchange to trade on")
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG, help="Path to settings YAML"
    )
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--dry-run", action="store_true", help="Evaluate signals without placing orders"
    )
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Overlay command line options on the loaded settings.

    Raises:
        ConfigurationError: If the resulting options conflict.
    """
    valid, error = validate_allocation_options(args.total_margin, args.fixed_amount_per_coin)
    if not valid:
        raise ConfigurationError(error)

    capital = settings.capital.model_dump()
    if args.total_margin is not None:
        capital.update(total_margin=args.total_margin, fixed_amount_per_coin=None)
    if args.fixed_amount_per_coin is not None:
        capital.update(fixed_amount_per_coin=args.fixed_amount_per_coin, total_margin=None)
    if args.max_total_margin is not None:
        capital["max_total_margin"] = args.max_total_margin

    orchestrator = {"agent_id": args.agent}
    if args.interval is not None:
        orchestrator["poll_interval_seconds"] = args.interval
    if args.profit is not None:
        orchestrator["profit_target_pct"] = args.profit
    if args.auto_refollow:
        orchestrator["auto_refollow"] = True

    risk = {}
    if args.price_tolerance is not None:
        risk["price_tolerance_pct"] = args.price_tolerance

    execution = {}
    if args.margin_type is not None:
        execution["margin_type"] = MarginType(args.margin_type)
    if args.exchange is not None:
        execution["exchange"] = args.exchange
    if args.dry_run:
        execution["dry_run"] = True

    try:
        return settings.model_copy(
            update={
                "capital": CapitalSettings(**capital),
                "orchestrator": settings.orchestrator.model_validate(
                    {**settings.orchestrator.model_dump(), **orchestrator}
                ),
                "risk": settings.risk.model_validate({**settings.risk.model_dump(), **risk}),
                "execution": settings.execution.model_validate(
                    {**settings.execution.model_dump(), **execution}
                ),
            }
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def load_and_validate_config(args: argparse.Namespace) -> Settings:
    """Load and validate configuration.

    Returns:
        Settings object loaded from YAML and overridden by CLI options.

    Raises:
        SystemExit: If the config is unreadable or options conflict.
    """
    load_dotenv()
    logger.info("✓ Loaded environment variables")

    try:
        if args.config.exists():
            settings = Settings.from_yaml(args.config)
            logger.info(f"✓ Settings loaded from {args.config}")
        else:
            logger.warning(f"{args.config} not found, using defaults")
            settings = Settings.from_dict()
        settings = apply_cli_overrides(settings, args)
    except (ConfigurationError, ValidationError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    return settings


def print_startup_banner(settings: Settings) -> None:
    """Print system startup banner."""
    capital = settings.capital
    if capital.fixed_amount_per_coin is not None:
        policy = f"fixed {capital.fixed_amount_per_coin} USDT per coin"
        if capital.max_total_margin is not None:
            policy += f" (max {capital.max_total_margin} USDT)"
    else:
        policy = f"proportional {capital.total_margin or capital.default_total_margin} USDT"

    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name} v{settings.system.version}")
    logger.info(f"Agent: {settings.orchestrator.agent_id}")
    logger.info(f"Exchange: {settings.execution.exchange} (testnet: {settings.execution.testnet})")
    logger.info(f"Capital: {policy}")
    if settings.orchestrator.profit_target_pct is not None:
        logger.info(f"Profit target: {settings.orchestrator.profit_target_pct}%")
    logger.info(f"Auto-refollow: {settings.orchestrator.auto_refollow}")
    if settings.execution.dry_run:
        logger.info("DRY RUN: no orders will be placed")
    logger.info("=" * 60)


async def initialize_exchange(settings: Settings) -> CcxtFuturesClient:
    """Connect to the configured exchange.

    Raises:
        SystemExit: If connection fails.
    """
    try:
        client = CcxtFuturesClient(
            exchange=settings.execution.exchange,
            **settings.exchange_credentials(),
        )
        await client.connect()
        account = await client.get_account_info()
        logger.info(
            f"✓ {settings.execution.exchange} connected "
            f"(available: ${account.available_balance:,.2f})"
        )
    except (CopyTradeError, ValueError) as e:
        logger.error(f"Failed to connect to {settings.execution.exchange}: {e}")
        logger.error("Check the exchange API credentials in .env")
        sys.exit(1)
    return client


def build_orchestrator(
    settings: Settings,
    exchange: CcxtFuturesClient,
    notifier: TelegramNotifier,
) -> CopyTradingOrchestrator:
    """Wire all components into the orchestrator."""
    signal_client = SignalSourceClient(
        base_url=settings.signals.base_url,
        positions_path=settings.signals.positions_path,
        timeout_sec=settings.signals.timeout_seconds,
    )
    store = OrderHistoryStore(Path(settings.ledger.path))
    logger.info(f"✓ Order history at {store.path}")

    reconciler = PositionReconciler(
        exchange_client=exchange,
        detect_manual_close=settings.orchestrator.detect_manual_close,
    )
    allocator = CapitalAllocator(default_total_margin=settings.capital.default_total_margin)
    risk_manager = RiskManager(
        default_tolerance_pct=settings.risk.price_tolerance_pct,
        symbol_tolerances=settings.risk.symbol_tolerances,
    )
    executor = TradeExecutor(exchange_client=exchange, margin_type=settings.execution.margin_type)
    controller = AutoRefollowController(
        auto_refollow=settings.orchestrator.auto_refollow,
        profit_target_pct=settings.orchestrator.profit_target_pct,
    )

    orchestrator = CopyTradingOrchestrator(
        settings=settings.orchestrator,
        signal_client=signal_client,
        exchange_client=exchange,
        store=store,
        reconciler=reconciler,
        allocator=allocator,
        capital_settings=settings.capital,
        risk_manager=risk_manager,
        trade_executor=executor,
        refollow_controller=controller,
        notifier=notifier,
        save_after_each_event=settings.ledger.save_after_each_event,
        dry_run=settings.execution.dry_run,
    )
    logger.info("✓ CopyTradingOrchestrator initialized")
    return orchestrator


async def run(settings: Settings, once: bool) -> int:
    """Run the engine until interrupted.

    Returns:
        Process exit code.
    """
    exchange = await initialize_exchange(settings)

    notifier = TelegramNotifier(settings=settings.notifications, formatter=AlertFormatter())
    await notifier.start()
    await notifier.send_system(f"🚀 Copy trading started for {settings.orchestrator.agent_id}")

    orchestrator = build_orchestrator(settings, exchange, notifier)
    exit_code = 0
    try:
        if once:
            result = await orchestrator.run_cycle()
            exit_code = 0 if result.status == CycleStatus.OK else 1
        else:
            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop_event.set)

            await orchestrator.start()
            await stop_event.wait()
            logger.info("Shutdown requested")
            await orchestrator.stop()
    finally:
        await notifier.send_system("🛑 Copy trading stopped")
        await notifier.stop()
        await exchange.close()

    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_and_validate_config(args)
    print_startup_banner(settings)
    return asyncio.run(run(settings, args.once))


if __name__ == "__main__":
    sys.exit(main())
