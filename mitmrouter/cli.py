import argparse
import logging
import sys
from typing import Callable, List, Optional

from mitmrouter.core.config import load_config, save_config
from mitmrouter.core.editor import edit_config
from mitmrouter.core.errors import MitmRouterError
from mitmrouter.core.logs import setup_logging
from mitmrouter.core.settings import RuntimeSettings
from mitmrouter.system.lifecycle import Lifecycle

log = logging.getLogger("mitmrouter.cli")

VERBS = ("up", "down", "config")
USAGE = "Usage: mitmrouter <up|down|config>"
# Usage goes to stderr with the other diagnostics; stdout carries progress only.
USAGE_EXIT = 1
ABORT_EXIT = 130


class UsageError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def _parser() -> argparse.ArgumentParser:
    p = _Parser(prog="mitmrouter", add_help=False, usage="mitmrouter <up|down|config>")
    p.add_argument("verb", choices=VERBS)
    return p


def main(argv: Optional[List[str]] = None, runner=None, ask: Callable[[str], str] = input) -> int:
    args_in = sys.argv[1:] if argv is None else list(argv)
    try:
        args = _parser().parse_args(args_in)
    except UsageError:
        print("Error: Missing or incorrect argument.", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return USAGE_EXIT

    try:
        settings = RuntimeSettings.from_env()
        setup_logging(settings.log_level, settings.log_format)
        cfg = load_config(settings.config_path)

        if args.verb == "config":
            try:
                edited = edit_config(cfg, ask=ask)
            except (EOFError, KeyboardInterrupt):
                print("\nAborted, nothing saved.", file=sys.stderr)
                return ABORT_EXIT
            save_config(edited, settings.config_path)
            return 0

        lifecycle = Lifecycle.from_settings(cfg, settings, runner=runner)
        if args.verb == "down":
            lifecycle.down()
        else:
            lifecycle.up()
        return 0
    except MitmRouterError as e:
        log.error("Error: %s", e)
        return e.exit_code


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
