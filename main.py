# main.py

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI

from config import DEFAULT_CONFIG_PATH, Config, load_config
from dependencies import require_allowed_ip
from dispatcher import drain
from exceptions import ConfigError
from logging_config import setup_logging

# Routers
from routers.health import router as health_router
from routers.webhook import build_router

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def create_app(config: Config) -> FastAPI:
    """
    Build the application serving every hook in `config`.

    Raises:
        ConfigError: a hook has not had its templates compiled.
    """
    uncompiled = [hook.url for hook in config.hooks if not hook.compiled]
    if uncompiled:
        raise ConfigError(f"Hooks without compiled templates: {', '.join(uncompiled)}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving {len(config.hooks)} hook(s).")
        yield
        await drain()

    app = FastAPI(
        title="hookrunner",
        description="Runs configured commands when webhook events arrive",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
        dependencies=[Depends(require_allowed_ip)],
    )
    app.state.config = config

    app.include_router(health_router)
    app.include_router(build_router(config.hooks))
    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="hookrunner",
        description="Run commands when webhook events arrive.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="main config file (unless HOOKRUNNER_CONFIG is set) followed by hook files or directories",
    )
    parser.add_argument("-v", "--verbosity", type=int, default=None, help="log verbosity level")
    parser.add_argument("--log-dir", default=None, help="directory for log files")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(verbosity=args.verbosity or 0)

    hook_paths = list(args.paths)
    config_path = os.getenv("HOOKRUNNER_CONFIG")
    if not config_path:
        config_path = hook_paths.pop(0) if hook_paths else DEFAULT_CONFIG_PATH

    logger.info("Starting hookrunner...")
    try:
        config = load_config(config_path, hook_paths)
        if args.verbosity is not None:
            config.verbosity = args.verbosity
        if args.log_dir is not None:
            config.log_dir = args.log_dir
        setup_logging(config.log_dir, config.verbosity)
        host, port = config.listen_host_port()
        app = create_app(config)
    except ConfigError as e:
        logger.error(f"Failed to start: {e}")
        return 1

    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
