# config.py

import ipaddress
import logging
import os
import sys
from typing import List, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from exceptions import ConfigError, TemplateCompileError
from models.hook import Hook

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "hookrunner.yaml"
DEFAULT_LISTEN_ADDRESS = ":80"
DEFAULT_COMMAND_TIMEOUT = 5

# A hook secret of "none" disables the server-wide secret for that hook.
NO_SECRET = "none"

# Environment variables that override keys of the main config file
ENV_OVERRIDES = {
    "listen_address": "HOOKRUNNER_LISTEN_ADDRESS",
    "log_dir": "HOOKRUNNER_LOG_DIR",
    "command_timeout": "HOOKRUNNER_COMMAND_TIMEOUT",
    "secret": "HOOKRUNNER_SECRET",
    "verbosity": "HOOKRUNNER_VERBOSITY",
}


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    listen_address: str = DEFAULT_LISTEN_ADDRESS
    log_dir: str = ""
    # The maximum amount of time to wait for a command to finish.
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    # Accept requests only from these addresses or networks; empty accepts all.
    accept_ips: List[str] = []
    # Default secret for hooks that don't set their own.
    secret: str = ""
    # Files or directories to read additional hooks from.
    hook_paths: List[str] = []
    verbosity: int = 0
    hooks: List[Hook] = []

    @field_validator("command_timeout")
    @classmethod
    def timeout_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Invalid command_timeout: {value} (must be positive)")
        return value

    @field_validator("accept_ips")
    @classmethod
    def ips_valid(cls, value: List[str]) -> List[str]:
        for ip in value:
            ipaddress.ip_network(ip, strict=False)
        return value

    @property
    def accept_networks(self):
        return [ipaddress.ip_network(ip, strict=False) for ip in self.accept_ips]

    def listen_host_port(self) -> Tuple[str, int]:
        """Split listen_address ("host:port" or ":port") for uvicorn."""
        host, _, port = self.listen_address.rpartition(":")
        host = host.strip("[]") or "0.0.0.0"
        try:
            return host, int(port)
        except ValueError:
            raise ConfigError(f"Invalid listen_address '{self.listen_address}'")

    def merge_hooks(self, hooks: List[Hook]):
        self.hooks.extend(hooks)

    def add_hook_file(self, path: str):
        name = "stdin" if path == "-" else path
        logger.info(f"Reading hooks from {name}")

        data = _read_yaml(path)
        if isinstance(data, dict):
            data = data.get("hooks", [])
        if not isinstance(data, list):
            raise ConfigError(f"Error loading {name}: expected a list of hooks")

        try:
            hooks = [Hook(**item) for item in data]
        except (TypeError, ValidationError) as e:
            logger.error(f"Error loading {name}: {e}")
            raise ConfigError(f"Error loading {name}: {e}") from e
        self.merge_hooks(hooks)

    def add_hook_path(self, path: str):
        """Add a hook file, or every file below a hook directory in sorted order."""
        if path != "-" and not os.path.exists(path):
            logger.error(f"Error loading {path}: no such file or directory")
            raise ConfigError(f"Error loading {path}: no such file or directory")

        if not os.path.isdir(path):
            self.add_hook_file(path)
            return

        for root, dirs, files in os.walk(path):
            dirs.sort()
            for file_name in sorted(files):
                self.add_hook_file(os.path.join(root, file_name))

    def finalize_hooks(self):
        """
        Apply server-wide defaults to every hook and compile its templates.

        Raises:
            ConfigError: a hook failed to compile or two hooks share a url.
        """
        failed = False
        seen = set()
        for hook in self.hooks:
            logger.info(f"Loading hook {hook.url}")

            if hook.url in seen:
                logger.error(f"Duplicate hook url {hook.url}")
                failed = True
            seen.add(hook.url)

            if hook.timeout == 0:
                hook.timeout = self.command_timeout

            if hook.secret == NO_SECRET:
                hook.secret = ""
            elif not hook.secret:
                hook.secret = self.secret

            try:
                hook.create_templates()
            except TemplateCompileError as e:
                logger.error(f"Failed parsing template {hook.url}: {e}")
                failed = True

        if failed:
            raise ConfigError("One or more hooks could not be loaded")


def _read_yaml(path: str):
    name = "stdin" if path == "-" else path
    try:
        if path == "-":
            return yaml.safe_load(sys.stdin) or {}
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file '{name}': {e}")
        raise ConfigError(f"Error parsing YAML file '{name}': {e}") from e
    except OSError as e:
        logger.error(f"Error loading {name}: {e}")
        raise ConfigError(f"Error loading {name}: {e}") from e


def load_config(path: str = DEFAULT_CONFIG_PATH, extra_hook_paths: List[str] = ()) -> Config:
    """
    Load the main config, read every hook path and compile all hooks.

    Returns:
        Config: ready to serve.

    Raises:
        ConfigError: anything failed; the service must not start.
    """
    data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping")

    for key, var in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value is not None:
            data[key] = value

    try:
        config = Config(**data)
    except ValidationError as e:
        logger.error(f"Invalid configuration in '{path}': {e}")
        raise ConfigError(f"Invalid configuration in '{path}': {e}") from e

    logger.info(f"Configuration loaded successfully from '{'stdin' if path == '-' else path}'.")

    for hook_path in list(config.hook_paths) + list(extra_hook_paths):
        config.add_hook_path(hook_path)

    config.finalize_hooks()
    return config
