"""Command line entry point for pwrzv."""

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import TextIO

import yaml

from pwrzv.engine import PowerReserveMeter
from pwrzv.errors import NoMetricsAvailable, PwrzvError
from pwrzv.log import setup_logging
from pwrzv.models import DetailedResult
from pwrzv.params import OverridePolicy, env_float
from pwrzv.source import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

TIMEOUT_ENV = "PWRZV_COLLECT_TIMEOUT"
DEFAULT_INTERVAL = 3.0
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pwrzv",
        description="Estimate how much headroom the system has left, on a 0-5 scale.",
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Print the level once and exit.")
    mode.add_argument(
        "--detailed",
        nargs="?",
        const="text",
        choices=("text", "json", "yaml"),
        help="Print the full breakdown once (text by default).",
    )
    mode.add_argument("--watch", action="store_true", help="Open the live dashboard.")
    p.add_argument(
        "-t",
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL,
        help="Seconds between evaluations in continuous and watch mode.",
    )
    p.add_argument(
        "--strict-config",
        action="store_true",
        help="Abort on an invalid PWRZV_* override instead of using the default.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More log output on stderr (-v info, -vv debug).",
    )
    return p


def collect_timeout() -> float:
    """Collection deadline from ``PWRZV_COLLECT_TIMEOUT``, or the default."""
    value, warning = env_float(TIMEOUT_ENV)
    if warning is not None:
        logger.warning("%s, using %.1fs", warning, DEFAULT_TIMEOUT)
    return DEFAULT_TIMEOUT if value is None else value


def _stamp(now: datetime) -> str:
    return now.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def render_text(result: DetailedResult, now: datetime) -> str:
    """Human readable breakdown, worst component first."""
    tier = result.level
    lines = [
        f"Platform: {result.platform.value}",
        f"Power Reserve: {result.overall_score} ({result.level_description})",
        f"Timestamp: {_stamp(now)}",
        "",
        "Components:",
    ]
    ordered = sorted(result.component_scores, key=lambda c: (c.score, c.metric.rank))
    width = max((len(c.name) for c in ordered), default=0)
    for c in ordered:
        lines.append(
            f"  {c.name:<{width}}  pressure {c.raw_value:.3f}  score {c.score:.3f}  level {c.level}"
        )
    lines.append("")
    lines.append(f"Bottleneck: {', '.join(result.bottleneck) or 'None'}")
    if result.skipped:
        lines.append(f"Unavailable: {', '.join(result.skipped)}")
    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {w}" for w in result.warnings)
    lines.append(f"Advice: {tier.advice}")
    return "\n".join(lines)


def _payload(result: DetailedResult, now: datetime) -> dict:
    payload = result.to_dict()
    payload["timestamp"] = now.astimezone(timezone.utc).isoformat()
    return payload


def render_json(result: DetailedResult, now: datetime) -> str:
    return json.dumps(_payload(result, now), indent=2)


def render_yaml(result: DetailedResult, now: datetime) -> str:
    return yaml.safe_dump(_payload(result, now), sort_keys=False).rstrip("\n")


RENDERERS = {"text": render_text, "json": render_json, "yaml": render_yaml}


def run_continuous(meter: PowerReserveMeter, interval: float, out: TextIO) -> None:
    """
    Print ``<timestamp> Power Reserve: <n>`` every ``interval`` seconds.

    A poll with no usable metric is reported and the loop keeps going; other
    errors end it.
    """
    interval = max(0.0, interval)
    while True:
        t0 = time.monotonic()
        try:
            level = meter.level()
        except NoMetricsAvailable as e:
            print(f"Error: {e}", file=sys.stderr)
        else:
            print(f"{_stamp(datetime.now(timezone.utc))} Power Reserve: {level}", file=out, flush=True)

        elapsed = time.monotonic() - t0
        time.sleep(max(0.0, interval - elapsed))


def run_watch(meter: PowerReserveMeter, interval: float) -> None:
    # Imported here so the plain CLI does not pay for loading Textual.
    from pwrzv.app import PwrzvApp

    meter.check_platform()
    meter.resolve()
    PwrzvApp(meter=meter, poll_rate=interval).run()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    policy = OverridePolicy.STRICT if args.strict_config else OverridePolicy.WARN
    out = sys.stdout

    try:
        meter = PowerReserveMeter(policy=policy, timeout=collect_timeout())
        if args.watch:
            run_watch(meter, args.interval)
        elif args.detailed:
            result = meter.evaluate()
            now = datetime.now(timezone.utc)
            print(RENDERERS[args.detailed](result, now), file=out)
        elif args.once:
            print(meter.level(), file=out)
        else:
            meter.check_platform()
            run_continuous(meter, args.interval, out)
    except PwrzvError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    sys.exit(main())
