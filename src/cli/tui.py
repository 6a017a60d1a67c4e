"""CLI entry point for the dnet cluster dashboard."""

import asyncio
import signal
import sys
from argparse import ArgumentParser
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from dnet_tui.app import App
from dnet_tui.config import Config
from dnet_tui.ui import DashboardUI
from dnet_tui.utils.logger import logger


async def run(config: Config) -> None:
    loop = asyncio.get_running_loop()
    app = App(config)

    def _signal_handler(*_: object) -> None:
        logger.warning("Received termination signal. Exiting dashboard.")
        app.quit()

    loop.add_signal_handler(signal.SIGINT, _signal_handler)
    loop.add_signal_handler(signal.SIGTERM, _signal_handler)

    ui = DashboardUI(app)
    try:
        await ui.run()
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_signal_handler(signal.SIGTERM)


def main() -> None:
    ap = ArgumentParser(description="dnet cluster dashboard")
    ap.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to a dnet.json config file "
        "(default: ./dnet.json, then ~/.dria/dnet/dnet.json)",
    )
    args = ap.parse_args()

    if not sys.stdin.isatty():
        ap.error("dnet-tui needs an interactive terminal")

    path: Optional[Path] = Path(args.config) if args.config else None
    try:
        config = Config.load(path)
    except (OSError, ValueError, ValidationError) as e:
        ap.error(f"Could not load config: {e}")

    logger.info("Starting dashboard against %s", config.api_url())
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
