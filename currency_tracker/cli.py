"""
CLI commands for the currency tracker.
"""

import argparse
import asyncio
import logging
from datetime import date
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from currency_tracker.app import TrackerApp
from currency_tracker.config import AppConfig, load_config
from currency_tracker.data.aggregator import PairRates
from currency_tracker.database.models import DailyAlertConfig
from currency_tracker.exceptions import CurrencyTrackerError
from currency_tracker.notifiers.scheduler import NotificationScheduler

DIRECTION_SYMBOLS = {"up": "🔺", "down": "🔻", "flat": "➖"}


def parse_time(value: str) -> tuple[int, int]:
    """Parse "HH:MM" into hour and minute."""
    try:
        hour_str, minute_str = value.split(":")
        return int(hour_str), int(minute_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected HH:MM, got {value!r}")


def format_pair_rates(key: str, rates: PairRates) -> str:
    """Render one favorites row."""
    symbol = DIRECTION_SYMBOLS[rates.direction]
    return (
        f"{key.replace('_', ' -> ')}\n"
        f"  Latest ({rates.latest.as_of}): {rates.latest.rate:.4f}\n"
        f"  Previous ({rates.previous.as_of}): {rates.previous.rate:.4f}\n"
        f"  Change: {symbol} {abs(rates.change):.5f}"
    )


async def show_favorite_rates(app: TrackerApp) -> list[str]:
    """Refresh favorites and render each pair that has both rates."""
    view = await app.refresh_favorites()
    lines = []
    for pair in app.favorites.list_all():
        rates = view.get(pair.key)
        if rates is not None:
            lines.append(format_pair_rates(pair.key, rates))
    return lines


async def check_alert(app: TrackerApp, base: str, target: str, threshold: str) -> str:
    """Save a rate-drop rule and check it now."""
    result = await app.evaluator.evaluate(base, target, threshold)
    rule = result.rule
    if result.current_rate is None:
        return f"Saved {rule.base}/{rule.target} < {rule.threshold}; rate unavailable"
    status = "TRIGGERED" if result.fired else "not triggered"
    return (
        f"Saved {rule.base}/{rule.target} < {rule.threshold}; "
        f"current {result.current_rate.rate:.4f} ({status})"
    )


async def set_daily_alert(
    app: TrackerApp, base: str, target: str, hour: int, minute: int
) -> str:
    """Enable the daily alert with new settings."""
    config = DailyAlertConfig(base=base, target=target, hour=hour, minute=minute, enabled=True)
    await app.daily_scheduler.apply(config)
    if app.daily_scheduler.next_fire_at is None:
        return "Daily alert saved but not scheduled (rate unavailable)"
    return (
        f"🗓️ Daily alert set at {hour:02d}:{minute:02d} for "
        f"{config.base} → {config.target}"
    )


async def disable_daily_alert(app: TrackerApp) -> str:
    config = app.daily_scheduler.config
    config.enabled = False
    await app.daily_scheduler.apply(config)
    return "Daily alert disabled"


async def add_log(
    app: TrackerApp,
    base: str,
    target: str,
    amount: str,
    on_date: Optional[date] = None,
    note: str = "",
) -> str:
    entry = await app.conversions.log(base, target, amount, on_date=on_date, note=note)
    return (
        f"{entry.amount:.2f} {entry.base} → {entry.converted_amount:.2f} "
        f"{entry.target} @ {entry.rate:.4f}"
    )


def list_logs(app: TrackerApp) -> list[str]:
    lines = []
    for entry in app.conversions.history():
        line = (
            f"{entry.timestamp:%Y-%m-%d %H:%M}  {entry.amount:.2f} {entry.base} → "
            f"{entry.converted_amount:.2f} {entry.target} @ {entry.rate:.4f}"
        )
        if entry.note:
            line += f'  "{entry.note}"'
        lines.append(line)
    return lines


async def dispatch(app: TrackerApp, args: argparse.Namespace) -> list[str]:
    """Run one command and return the lines to print."""
    if args.command == "favorites":
        if args.action == "add":
            app.favorites.add(args.base, args.target)
            return await show_favorite_rates(app)
        elif args.action == "remove":
            if not app.favorites.remove(args.base, args.target):
                return [f"{args.base}/{args.target} is not a favorite"]
            return [f"Removed {args.base.upper()}/{args.target.upper()}"]
        elif args.action == "list":
            return [f"{p.base} -> {p.target}" for p in app.favorites.list_all()]
        elif args.action == "rates":
            lines = await show_favorite_rates(app)
            return lines or ["Let’s set up your favorite currency exchange!"]

    elif args.command == "alerts":
        if args.action == "check":
            return [await check_alert(app, args.base, args.target, args.threshold)]
        elif args.action == "remove":
            removed = app.evaluator.delete(args.base, args.target, args.threshold)
            return ["Removed" if removed else "No such alert"]
        elif args.action == "list":
            return [
                f"{r.base}/{r.target} < {r.threshold}" for r in app.alert_rules.list_all()
            ]
        elif args.action == "recheck":
            results = await app.evaluator.check_all()
            return [
                f"{r.rule.base}/{r.rule.target} < {r.rule.threshold}: "
                f"{'TRIGGERED' if r.fired else 'ok'}"
                for r in results
            ]

    elif args.command == "daily":
        if args.action == "set":
            hour, minute = args.time
            return [await set_daily_alert(app, args.base, args.target, hour, minute)]
        elif args.action == "disable":
            return [await disable_daily_alert(app)]
        elif args.action == "show":
            c = app.daily_scheduler.config
            state = "enabled" if c.enabled else "disabled"
            return [f"{c.base} → {c.target} at {c.hour:02d}:{c.minute:02d} ({state})"]

    elif args.command == "logs":
        if args.action == "add":
            return [
                await add_log(app, args.base, args.target, args.amount, args.date, args.note)
            ]
        elif args.action == "list":
            return list_logs(app)

    elif args.command == "history":
        samples = await app.history(args.base, args.target)
        return [f"{s.as_of}  {s.rate:.4f}" for s in samples]

    elif args.command == "convert":
        sample, converted = await app.convert(args.base, args.target, args.amount)
        return [
            f"1 {args.base.upper()} = {sample.rate:.2f} {args.target.upper()}",
            f"{args.amount} {args.base.upper()} = {converted:.2f} {args.target.upper()}",
        ]

    return []


def _add_pair_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--base", required=True, help="Base currency")
    parser.add_argument("--target", required=True, help="Target currency")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Currency Tracker CLI")
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument("--db", help="Database path (overrides config)")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Favorites commands
    favorites_parser = subparsers.add_parser("favorites", help="Favorite pairs")
    favorites_subparsers = favorites_parser.add_subparsers(dest="action")
    _add_pair_args(favorites_subparsers.add_parser("add", help="Add favorite"))
    _add_pair_args(favorites_subparsers.add_parser("remove", help="Remove favorite"))
    favorites_subparsers.add_parser("list", help="List favorites")
    favorites_subparsers.add_parser("rates", help="Show latest vs previous rates")

    # Alert commands
    alerts_parser = subparsers.add_parser("alerts", help="Rate drop alerts")
    alerts_subparsers = alerts_parser.add_subparsers(dest="action")
    check_parser = alerts_subparsers.add_parser("check", help="Save & check now")
    _add_pair_args(check_parser)
    check_parser.add_argument("--threshold", required=True, help="Alert below this rate")
    remove_alert_parser = alerts_subparsers.add_parser("remove", help="Remove alert")
    _add_pair_args(remove_alert_parser)
    remove_alert_parser.add_argument("--threshold", required=True)
    alerts_subparsers.add_parser("list", help="List alerts")
    alerts_subparsers.add_parser("recheck", help="Check all saved alerts")

    # Daily alert commands
    daily_parser = subparsers.add_parser("daily", help="Daily rate notification")
    daily_subparsers = daily_parser.add_subparsers(dest="action")
    daily_set_parser = daily_subparsers.add_parser("set", help="Schedule daily alert")
    _add_pair_args(daily_set_parser)
    daily_set_parser.add_argument("--time", type=parse_time, required=True, help="HH:MM")
    daily_subparsers.add_parser("disable", help="Disable daily alert")
    daily_subparsers.add_parser("show", help="Show daily alert")

    # Log commands
    logs_parser = subparsers.add_parser("logs", help="Conversion log")
    logs_subparsers = logs_parser.add_subparsers(dest="action")
    add_log_parser = logs_subparsers.add_parser("add", help="Log an exchange")
    _add_pair_args(add_log_parser)
    add_log_parser.add_argument("--amount", required=True)
    add_log_parser.add_argument("--date", type=date.fromisoformat, help="YYYY-MM-DD")
    add_log_parser.add_argument("--note", default="")
    logs_subparsers.add_parser("list", help="Show log history")

    history_parser = subparsers.add_parser("history", help="Recent daily rates")
    _add_pair_args(history_parser)

    convert_parser = subparsers.add_parser("convert", help="Convert at latest rate")
    _add_pair_args(convert_parser)
    convert_parser.add_argument("--amount", default="1")

    return parser


async def _run(app: TrackerApp, args: argparse.Namespace) -> list[str]:
    try:
        lines = await dispatch(app, args)
        # Let triggered alerts go out before exiting
        if isinstance(app.sink, NotificationScheduler):
            await app.sink.drain()
        return lines
    finally:
        await app.close()


def main():
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config) if args.config else AppConfig()
    if args.db:
        config.database.path = args.db

    if not args.command:
        parser.print_help()
        return

    app = TrackerApp.from_config(config)
    try:
        for line in asyncio.run(_run(app, args)):
            print(line)
    except CurrencyTrackerError as e:
        print(f"Error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
