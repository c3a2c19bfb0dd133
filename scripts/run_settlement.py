"""
Run one settlement sweep from the command line.

Pays answerers for every accepted/answered question whose settlement window
has elapsed. Useful for cron deployments that do not run the API's background
sweep (set SETTLEMENT_ENABLED=false there) and for manual catch-up.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path so we can import from services
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.time import parse_utc_datetime, utc_now
from services.config import get_settings
from services.factory import build_escrow_service, build_scheduler


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Release escrowed funds for questions past their settlement window",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Settle everything due right now
  python run_settlement.py

  # Evaluate the window as of a specific instant (UTC)
  python run_settlement.py --now 2025-01-02T12:00:00Z
        """
    )

    parser.add_argument(
        "--now",
        help="ISO-8601 timestamp to evaluate the settlement window against (default: current time)"
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.storage_backend != "supabase":
        print("STORAGE_BACKEND is not 'supabase'; nothing persistent to settle.", file=sys.stderr)
        return 1

    try:
        now = parse_utc_datetime(args.now) if args.now else utc_now()
    except ValueError as e:
        print(f"Invalid --now value: {e}", file=sys.stderr)
        return 2

    service = build_escrow_service(settings)
    result = build_scheduler(service, settings).run_once(now)

    if result.aborted:
        print("Sweep aborted: question store unavailable", file=sys.stderr)
        return 1

    print(f"Scanned:  {result.scanned}")
    print(f"Settled:  {len(result.settled)}")
    print(f"Not due:  {result.not_due}")
    print(f"Failed:   {len(result.failed)}")
    for question_id in result.failed:
        print(f"  - {question_id}")

    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
