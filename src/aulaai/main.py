"""
aula-ai entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the appropriate
interface (API, CLI, or configuration check).
"""

import argparse
import logging
import sys

from aulaai.config import settings

logger = logging.getLogger(__name__)

_SECRETS = {"OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_SEARCH_API_KEY", "AULA_PASSWORD"}


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
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the aula-ai application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in API, CLI, or check mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the Aula AI agent backend")
    parser.add_argument(
        "--mode",
        choices=["api", "cli", "check"],
        type=str.lower,
        default="api",
        help="Launch the REST API, an interactive CLI, or a configuration check (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument("--agent", default="research_agent", help="Agent type for cli/check")
    parser.add_argument("--model", default=None, help="Model identifier for cli/check")
    parser.add_argument("--query", default=None, help="Sample query to run in check mode")
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Aula AI [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude=_SECRETS))

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from aulaai.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)

    elif args.mode == "check":
        from aulaai.client.check import run_check  # pylint: disable=import-outside-toplevel

        ok = run_check(settings, query=args.query, agent_type=args.agent, model=args.model)
        sys.exit(0 if ok else 1)

    else:
        # Lazy import to avoid web dependencies if not needed
        import threading  # pylint: disable=import-outside-toplevel

        from aulaai.api.app import run_api  # pylint: disable=import-outside-toplevel
        from aulaai.client.cli import run_cli  # pylint: disable=import-outside-toplevel

        # Start API server in a separate thread
        api_thread = threading.Thread(
            target=run_api,
            kwargs={
                "host": "127.0.0.1",
                "port": settings.API_PORT,
                "reload": False,  # Reload doesn't work well with threading
                "log_level": "warning",
            },
            daemon=True,
        )
        api_thread.start()

        # Run CLI in main thread
        run_cli(agent=args.agent, model=args.model)


if __name__ == "__main__":
    main()
