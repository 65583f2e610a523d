"""panewatch command-line arguments."""

import argparse

from . import __version__
from .display import DisplayType


def _display_type(value: str) -> DisplayType:
    try:
        return DisplayType.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="panewatch",
        description="Run shell commands on an interval in splittable terminal panes.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-n", "--interval",
        metavar="SECONDS",
        help="Interval to wait between executions (e.g. 2, 0.5, 5s)",
    )
    parser.add_argument(
        "-b", "--beep",
        action="store_true",
        help="Beep if a command exits with a non-zero status",
    )
    parser.add_argument(
        "-e", "--err-exit",
        action="store_true",
        help="Exit if a command exits with a non-zero status",
    )
    parser.add_argument(
        "-g", "--chg-exit",
        action="store_true",
        help="Exit when a command's output changes",
    )
    parser.add_argument(
        "-m", "--max-history",
        type=int,
        metavar="COUNT",
        help="Number of outputs to keep per pane",
    )
    parser.add_argument(
        "-w", "--no-wrap",
        action="store_true",
        help="Disable line wrapping",
    )
    parser.add_argument(
        "-z", "--zen",
        action="store_true",
        help="Zen mode: hide pane titles and the footer",
    )
    parser.add_argument(
        "-d", "--display",
        type=_display_type,
        metavar="TYPE",
        help="Initial display type: " + ", ".join(d.value for d in DisplayType),
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable)",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run in the first pane",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    args.exec = " ".join(args.command).strip() or None
    return args
