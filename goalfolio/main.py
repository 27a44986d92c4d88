"""Goalfolio command-line entry point.

Subcommands:
    serve            Run the REST API with uvicorn.
    refresh-nav      Download AMFI NAVs and revalue portfolios.
    refresh-nps-nav  Refresh the NAV of every NPS fund.
    prefetch-prices  Refresh the stock price cache.
    simulate         Project a step-up SIP (prints JSON).
    required-sip     Plan the SIP needed for a target (prints JSON).

Results are written to stdout as JSON. Errors are written to stderr
and the process exits with status 1.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import numpy as np

from goalfolio.config import Settings
from goalfolio.log_config import setup as setup_logging

logger = logging.getLogger(__name__)


class _NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles NumPy and date types."""

    def default(self, o: Any) -> Any:
        """Convert NumPy and date types to JSON-serializable Python types."""
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if hasattr(o, "isoformat"):
            return o.isoformat()
        return super().default(o)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goalfolio",
        description="Goal-based personal finance tracker",
    )
    parser.add_argument("--db-path", default=None, help="DuckDB database file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    refresh = sub.add_parser("refresh-nav", help="Download NAVs and revalue portfolios")
    refresh.add_argument("--user-id", default=None, help="Revalue only this user")

    sub.add_parser("refresh-nps-nav", help="Refresh NPS fund NAVs")
    sub.add_parser("prefetch-prices", help="Refresh the stock price cache")

    simulate = sub.add_parser("simulate", help="Project a step-up SIP")
    simulate.add_argument("--sip", type=float, required=True, help="Monthly SIP")
    simulate.add_argument("--xirr", type=float, required=True, help="Annual return in percent")
    simulate.add_argument(
        "--step-up", type=float, default=0.0, help="Annual SIP increase in percent"
    )
    simulate.add_argument("--months", type=int, default=None)
    simulate.add_argument("--target", type=float, default=None, help="Target corpus")
    simulate.add_argument("--existing", type=float, default=0.0, help="Existing corpus")

    required = sub.add_parser("required-sip", help="Plan the SIP needed for a target")
    required.add_argument("--target", type=float, required=True, help="Target corpus")
    required.add_argument("--months", type=int, required=True)
    required.add_argument("--xirr", type=float, required=True, help="Annual return in percent")
    required.add_argument("--existing", type=float, default=0.0, help="Existing corpus")
    required.add_argument(
        "--step-up", type=float, default=0.0, help="Annual SIP increase in percent"
    )
    required.add_argument("--no-scenarios", action="store_true", help="Skip step-up scenarios")

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides: dict[str, Any] = {}
    if args.db_path:
        overrides["db_path"] = Path(args.db_path).expanduser()
    if args.verbose:
        overrides["verbose"] = True
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return replace(settings, **overrides) if overrides else settings


def _serve(settings: Settings) -> None:
    import uvicorn

    from goalfolio.api.app import create_app

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


def _run_job(command: str, args: argparse.Namespace, settings: Settings) -> Any:
    from goalfolio.db.connection import init_db
    from goalfolio.jobs.nav_refresh import refresh_nps_nav, update_nav_data
    from goalfolio.market.prices import prefetch_stock_prices

    conn = init_db(settings.db_path)
    try:
        if command == "refresh-nav":
            return update_nav_data(
                conn,
                user_id=args.user_id,
                url=settings.amfi_nav_url,
                timeout=settings.http_timeout,
            )
        if command == "refresh-nps-nav":
            return refresh_nps_nav(
                conn, url_template=settings.nps_nav_url, timeout=settings.http_timeout
            )
        return prefetch_stock_prices(
            conn,
            batch_size=settings.prefetch_batch_size,
            fx_fallback_url=settings.fx_fallback_url,
        )
    finally:
        conn.close()


def dispatch(args: argparse.Namespace, settings: Settings) -> Any:
    """Run the selected subcommand and return its JSON-able result.

    Raises:
        ValueError: If the command is not recognized.

    """
    command = args.command
    if command == "simulate":
        from goalfolio.simulation.goal_simulator import project_goal

        return project_goal(
            args.sip,
            args.xirr,
            step_up_pct=args.step_up,
            target_amount=args.target,
            months=args.months,
            existing_corpus=args.existing,
            inflation_pct=settings.inflation_rate,
        )
    if command == "required-sip":
        from goalfolio.simulation.planner import plan_goal

        return plan_goal(
            args.target,
            args.months,
            args.xirr,
            existing_corpus=args.existing,
            step_up_pct=args.step_up,
            include_scenarios=not args.no_scenarios,
        )
    if command in {"refresh-nav", "refresh-nps-nav", "prefetch-prices"}:
        return _run_job(command, args, settings)

    msg = f"Unknown command: {command}"
    raise ValueError(msg)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit status.

    """
    args = _build_parser().parse_args(argv)
    settings = _settings_for(args)
    setup_logging(verbose=settings.verbose)

    if args.command == "serve":
        _serve(settings)
        return 0

    try:
        result = dispatch(args, settings)
    except (ValueError, LookupError, RuntimeError, ImportError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        sys.stderr.write(f"error: {exc}\n")
        return 1

    sys.stdout.write(json.dumps(result, cls=_NumpyEncoder, indent=2) + "\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
