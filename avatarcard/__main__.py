"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


import argparse
import logging
import sys
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Any, Generator, Optional, Tuple

import yaml
from aiohttp import web

from . import __version__
from .config import Settings
from .errors import ConfigError
from .server import create_app


_LOG: logging.Logger = logging.getLogger("avatarcard")


@contextmanager
def _setup_logging(*, log_filename: Optional[str] = None) -> Generator[None, None, None]:
    root_logger = logging.getLogger()

    try:
        stream_handler = logging.StreamHandler()

        formatter = logging.Formatter(
            fmt="[{asctime}] [{levelname:<8}] {name}: {message}",
            datefmt="%Y-%m-%d %H:%M:%S",
            style="{",
        )

        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

        root_logger.setLevel(logging.INFO)

        if log_filename is not None:
            from os import makedirs, path

            # Avoids an error when we try to write to a file with a
            # non-existant parent directory.
            log_parent = path.dirname(log_filename)
            if log_parent and not path.isdir(log_parent):
                makedirs(log_parent, exist_ok=True)

            file_handler = RotatingFileHandler(
                filename=log_filename,
                mode="w",
                maxBytes=33_554_432,  # 32 MiB
                backupCount=5,
                encoding="utf-8",
            )

            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        yield
    finally:
        for handler in root_logger.handlers[:]:
            handler.close()
            root_logger.removeHandler(handler)


def _load_settings(parser: argparse.ArgumentParser, filename: str) -> Settings:
    try:
        with open(filename) as f:
            data: Any = yaml.safe_load(f)
    except FileNotFoundError:
        # Everything has a default, so the file is optional.
        data = None
    except (OSError, yaml.YAMLError):
        parser.error(f'Failed to read config file "{filename}".')

    try:
        return Settings.from_mapping(data)
    except ConfigError as exc:
        parser.error(str(exc))


def _start_server(settings: Settings) -> None:
    try:
        app = create_app(settings)
    except (ConfigError, OSError) as exc:
        _LOG.critical("%s", exc)
        sys.exit(1)

    _LOG.info(
        "avatarcard %s starting on %s:%s (%s output, %s background).",
        __version__,
        settings.host,
        settings.port,
        settings.output_mode.value,
        settings.background_mode.value,
    )

    try:
        web.run_app(app, host=settings.host, port=settings.port, print=None)
    except OSError as exc:
        _LOG.critical("Failed to start server: %s", exc)
        sys.exit(1)


def _parse_args() -> Tuple[argparse.ArgumentParser, argparse.Namespace]:
    parser = argparse.ArgumentParser(prog="avatarcard")

    parser.add_argument(
        "config_filename",
        default="config.yaml",
        help="the config file to load (default: config.yaml)",
        nargs="?",
    )
    parser.add_argument(
        "--log-filename", "-lfn", help="the file to write logging messages to"
    )
    parser.set_defaults(func=_run)

    return parser, parser.parse_args()


def _run(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    settings = _load_settings(parser, args.config_filename)

    try:
        with _setup_logging(log_filename=args.log_filename):
            # Don't bother checking for uvloop on Windows since it's unsupported.
            # See: https://github.com/MagicStack/uvloop/issues/14
            if sys.platform not in ("win32", "cygwin", "cli"):
                try:
                    import uvloop  # type: ignore
                except ModuleNotFoundError:
                    logging.info("uvloop not found, skipping installation.")
                else:
                    uvloop.install()
                    logging.info("uvloop installed successfully.")

            _start_server(settings)
    except OSError:
        parser.error(f'Failed to write to log file "{args.log_filename}".')


def main() -> None:
    parser, args = _parse_args()
    args.func(parser, args)


if __name__ == "__main__":
    main()
