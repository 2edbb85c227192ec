import argparse
import logging
from datetime import date

from suntimes.core.app import SunTimesApp, setup_basic_logging
from suntimes.sun_times.errors import SunTimesError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Sun times service')
    parser.add_argument('--config', default="config.yaml",
                        help='Path to config file (default: ./config.yaml, created if missing)')
    subparsers = parser.add_subparsers(dest='command')

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--watch-config', action='store_true',
                       help='Reload config (log level) when the file changes')

    fetch = subparsers.add_parser('fetch', help='Reconcile one location/date range and print it')
    fetch.add_argument('location')
    fetch.add_argument('start_date', type=date.fromisoformat, help='YYYY-MM-DD')
    fetch.add_argument('end_date', type=date.fromisoformat, help='YYYY-MM-DD')
    return parser


def run_fetch(app: SunTimesApp, location: str, start_date: date, end_date: date) -> int:
    try:
        records = app.reconciler.reconcile(location, start_date, end_date)
    except SunTimesError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1
    for r in records:
        print(f"{r.formatted_date}  sunrise {r.sunrise or '-':>12}  sunset {r.sunset or '-':>12}  day {r.day_length or '-'}"
              f"{'  (polar)' if r.is_polar_region else ''}")
    return 0


def main(argv=None) -> int:
    setup_basic_logging()

    args = build_parser().parse_args(argv)
    command = args.command or 'serve'

    app = SunTimesApp(config_path=args.config, watch_config=getattr(args, 'watch_config', False))
    try:
        if command == 'fetch':
            return run_fetch(app, args.location, args.start_date, args.end_date)

        from suntimes.api import run_api_server
        run_api_server(app)
        return 0
    finally:
        app.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
