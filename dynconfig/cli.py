"""
Command line entry point: show, get, details, watch, version.

Sources come from --source arguments, or from the settings file (--settings,
DYNCONFIG_FILE, ./dynconfig.yaml) and DYNCONFIG_* environment overrides.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Mapping

import structlog
from pydantic import ValidationError

from dynconfig import __version__
from dynconfig.config.loader import load_init_params
from dynconfig.config.schemas import InitParams, PollFrequency, Strategy
from dynconfig.engine.dispatcher import ChangeHandler
from dynconfig.engine.manager import DynamicConfig
from dynconfig.errors import DynamicConfigError

logger = structlog.get_logger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _params(args: argparse.Namespace, **overrides) -> InitParams:
    """Settings file + env, then command line flags on top."""
    base = load_init_params(args.settings)
    data = base.model_dump()
    if args.source:
        data["sources"] = args.source
    if args.include_env:
        data["include_sys_env_props"] = True
    if args.strategy:
        data["strategy"] = args.strategy
    if args.frequency:
        data["frequency"] = args.frequency
    data.update(overrides)
    return InitParams.model_validate(data)


def _build(args: argparse.Namespace, **overrides) -> DynamicConfig:
    config = DynamicConfig()
    config.build(_params(args, **overrides))
    return config


def cmd_version(_: argparse.Namespace) -> int:
    """Print version."""
    print(__version__)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print the merged configuration as JSON."""
    config = _build(args)
    print(json.dumps(dict(config.get_config_as_map()), indent=2, sort_keys=True))
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Print one value; exit 1 when absent and no default is given."""
    config = _build(args)
    value = config.get_value(args.key)
    if value is None:
        if args.default is None:
            print(f"{args.key}: not defined", file=sys.stderr)
            return 1
        value = args.default
    print(value)
    return 0


def cmd_details(args: argparse.Namespace) -> int:
    """Print initialization details."""
    config = _build(args)
    print(config.get_init_details())
    return 0


class PrintChangedKeys(ChangeHandler):
    """
    Prints which keys changed relative to the previous map, then records the new one.

    A new instance is built for every reload, so the instance itself keeps nothing.
    The previous map lives in the dict that cmd_watch's factory closure passes in;
    that dict is the only state carried between reloads.
    """

    def __init__(self, previous: dict[str, str]):
        self.previous = previous

    def execute(self, config_map: Mapping[str, str]) -> None:
        changed = sorted(k for k in set(self.previous) | set(config_map) if self.previous.get(k) != config_map.get(k))
        self.previous.clear()
        self.previous.update(config_map)
        print(json.dumps({"changed": changed, "keys": len(config_map)}), flush=True)


def cmd_watch(args: argparse.Namespace) -> int:
    """Build with a dedicated executor and report changes until interrupted."""
    stop = threading.Event()
    previous: dict[str, str] = {}
    config = _build(args, use_custom_executor=True, run_as_daemon=True, handlers=(lambda: PrintChangedKeys(previous),))
    previous.update(config.get_config_as_map())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    logger.info("watch_started", details=config.get_init_details())
    try:
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        config.terminate()
    return 0


def _add_build_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--settings", default=None, help="Settings YAML (default: DYNCONFIG_FILE or ./dynconfig.yaml)")
    p.add_argument("--source", action="append", default=None, help="Config file or directory; repeat, highest precedence first")
    p.add_argument("--include-env", action="store_true", help="Merge environment variables at lowest precedence")
    p.add_argument("--strategy", choices=[s.value for s in Strategy], default=None, help="Change detection strategy")
    p.add_argument("--frequency", choices=[f.value for f in PollFrequency], default=None, help="Poll frequency (POLL only)")


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="dynconfig",
        description="Dynamic config: show, get, details, watch, version.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_version = sub.add_parser("version", help="Print version")
    p_version.set_defaults(func=cmd_version)

    p_show = sub.add_parser("show", help="Print merged configuration as JSON")
    _add_build_args(p_show)
    p_show.set_defaults(func=cmd_show)

    p_get = sub.add_parser("get", help="Print one configuration value")
    p_get.add_argument("key", help="Property key")
    p_get.add_argument("--default", default=None, help="Printed when the key is not defined")
    _add_build_args(p_get)
    p_get.set_defaults(func=cmd_get)

    p_details = sub.add_parser("details", help="Print initialization details")
    _add_build_args(p_details)
    p_details.set_defaults(func=cmd_details)

    p_watch = sub.add_parser("watch", help="Report configuration changes until interrupted")
    _add_build_args(p_watch)
    p_watch.set_defaults(func=cmd_watch)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    try:
        return args.func(args)
    except (DynamicConfigError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
