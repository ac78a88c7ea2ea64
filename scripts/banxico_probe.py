# flake8: noqa E402
# Run via uv to load project deps, e.g.:
# uv run scripts/banxico_probe.py --date 2024-01-08
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import date, datetime, timezone
from pathlib import Path

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from services.banxico_client import BanxicoClient


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch the Banxico FIX MXN/USD observation for a single day.")
    parser.add_argument(
        "--date",
        default=None,
        help="Observation date (YYYY-MM-DD). Defaults to current UTC date.",
    )
    parser.add_argument("--series", default="SF43718", help="SIE series id (default: SF43718, FIX).")
    return parser.parse_args()


def parse_date(raw: str | None) -> date:
    if not raw:
        return datetime.now(timezone.utc).date()
    return date.fromisoformat(raw)


def main() -> None:
    args = parse_args()
    settings = config()
    if not settings.banxico_api_token:
        raise SystemExit("BANXICO_API_TOKEN is not set")

    target_date = parse_date(args.date)
    client = BanxicoClient(token=settings.banxico_api_token, timeout=settings.http_timeout_seconds)
    observation = client.get_observation(target_date=target_date, series_id=args.series)
    if observation is None:
        print(f"No observation for {target_date.isoformat()} (weekend or bank holiday?)")
        return

    print(json.dumps(asdict(observation), indent=2, default=str))


if __name__ == "__main__":
    main()
