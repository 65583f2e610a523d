"""Entry point: panewatch / python -m panewatch"""

import logging
import sys

from .cli import parse_args
from .config import AppConfig
from .exceptions import ConfigError

LOG_FILENAME = "panewatch.log"


def main() -> None:
    args = parse_args()
    try:
        config = AppConfig.load()
        config.merge_cli(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # The TUI owns the terminal, so logs only ever go to a file
    config.logs_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(config.logs_dir / LOG_FILENAME),
        level=getattr(logging, (config.log_level or "warning").upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("panewatch")
    logger.info("%s", config)

    from .app import PanewatchApp

    try:
        app = PanewatchApp(config, initial_command=args.exec)
        app.run()
    except Exception:
        logger.exception("panewatch crashed")
        raise


if __name__ == "__main__":
    main()
