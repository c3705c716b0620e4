"""
Switchboard entry point.

This file handles startup concerns (arg-parsing, logging) and launches the requested interface
(the API server alone, or the API plus the terminal client).
"""

import argparse
import logging
import sys

from switchboard.api.app import run_api
from switchboard.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Agent calls would otherwise log every request line
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Switchboard application.

    Sets up the command-line interface, initializes logging, and starts the orchestrator in
    either API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the Switchboard LLM orchestrator")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API, or the API plus an interactive shell (default: api)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.API_PORT,
        help="Port for the REST API (default from env: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Command-line values win over the environment
    settings.LOG_LEVEL = args.log_level
    settings.API_PORT = args.port

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Switchboard [%s mode]", args.mode)
    logger.debug("Planner: %s, agent timeout: %.0fs", settings.PLANNER, settings.AGENT_TIMEOUT)

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    import threading  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "0.0.0.0",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    from switchboard.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli()


if __name__ == "__main__":
    main()
