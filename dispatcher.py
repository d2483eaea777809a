# dispatcher.py

import asyncio
import json
import logging
import traceback
from collections import ChainMap
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from config import DEFAULT_COMMAND_TIMEOUT
from exceptions import HookRunnerError, TemplateRenderError
from executor import resolve_executable, run_command
from logging_config import verbose
from models.event import Event
from models.hook import Hook
from templating import render_template

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "refs/heads/"

# Dispatches started by schedule(), held until they finish so shutdown can wait for them.
running_tasks = set()


@dataclass
class PreparedUnit:
    """Rendered directory, environment and commands for one unit of work."""

    dir: str = ""
    env: Optional[Dict[str, str]] = None
    commands: List[List[str]] = field(default_factory=list)


def create_templates(hook: Hook):
    """Compile a hook's templates. Must succeed before the hook may serve events."""
    hook.create_templates()


def filter_event(event: Event, hook: Hook) -> bool:
    """
    Check the event against the hook's allow-lists.

    Event type mismatches are warnings. Pipeline status and branch mismatches
    are routine traffic (hosts can't be told to send only some branches), so
    they are logged at info.
    """
    if hook.allow_event:
        event_type, ok = event.expect_str("type")
        if not ok:
            logger.warning(
                f"Hook {hook.url} received non-string event type {type(event_type).__name__}: {event_type!r}"
            )
            return False
        if event_type not in hook.allow_event:
            logger.warning(f"Hook {hook.url} got disallowed event type {event_type}")
            return False

    if hook.allow_pipeline_status:
        status, ok = event.expect_str("status")
        if not ok:
            logger.warning(
                f"Hook {hook.url} received non-string pipeline status {type(status).__name__}: {status!r}"
            )
            return False
        if status not in hook.allow_pipeline_status:
            logger.info(f"Hook {hook.url} called for incorrect pipeline status {status}")
            return False

    if hook.allow_branches:
        ref, ok = event.expect_str("ref")
        if not ok:
            logger.warning(f"Hook {hook.url} received non-string ref {type(ref).__name__}: {ref!r}")
            return False
        if ref.startswith(BRANCH_PREFIX):
            ref = ref[len(BRANCH_PREFIX):]
        if ref not in hook.allow_branches:
            logger.info(f"Hook {hook.url} called for ignored branch {ref}")
            return False

    return True


def render_unit(hook: Hook, data: Mapping) -> PreparedUnit:
    """
    Render directory, environment and command templates, in that order.

    Raises:
        TemplateRenderError: on the first template that fails; nothing
            rendered so far is returned.
    """
    if not hook.compiled:
        raise TemplateRenderError(f"Templates for hook {hook.url} have not been compiled")

    unit = PreparedUnit()
    if hook.dir_template is not None:
        unit.dir = render_template(hook.dir_template, data)

    if hook.env_templates:
        env = {}
        for template in hook.env_templates:
            entry = render_template(template, data)
            key, sep, value = entry.partition("=")
            if not sep or not key:
                raise TemplateRenderError(f"Environment entry {entry!r} is not of the form KEY=VALUE")
            env[key] = value
        unit.env = env

    unit.commands = [
        [render_template(template, data) for template in templates]
        for templates in hook.cmd_templates
    ]
    return unit


def prepare_unit(hook: Hook, data: Mapping) -> PreparedUnit:
    """Render the unit and resolve every program before any of them runs."""
    unit = render_unit(hook, data)
    unit.commands = [[resolve_executable(command, unit.dir)] + command[1:] for command in unit.commands]
    return unit


def process_event(hook: Hook, data: Mapping):
    """
    Run one unit of work: prepare it, then run its commands in order.

    The first failing command stops the rest of the unit. Commands that
    already ran are not undone.
    """
    unit = prepare_unit(hook, data)
    timeout = hook.timeout or DEFAULT_COMMAND_TIMEOUT
    for command in unit.commands:
        run_command(command, unit.env, unit.dir, timeout)


def _run_unit(hook: Hook, data: Mapping):
    try:
        process_event(hook, data)
    except HookRunnerError as e:
        logger.error(f"Error processing {hook.url}: {e}")
        if verbose(1):
            logger.info(f"Event for {hook.url}: {json.dumps(dict(data), default=str)}")


def execute(event: Mapping, hook: Hook):
    """
    Filter the event and run the hook's commands for it.

    Per-commit hooks run once per commit with the commit available to the
    templates as `commit`; a failed commit does not stop the following ones.
    Errors are logged, never raised.
    """
    if not isinstance(event, Event):
        event = Event(event)

    if not filter_event(event, hook):
        return

    if not hook.per_commit:
        _run_unit(hook, event)
        return

    for commit in event.commits():
        if not isinstance(commit, dict):
            logger.error(f"Hook {hook.url}: commit had type {type(commit).__name__}, skipping")
            continue
        _run_unit(hook, ChainMap({"commit": commit}, event))


async def run_hook(event: Event, hook: Hook):
    """
    Runs execute() in an executor thread to avoid blocking the event loop.
    """
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, execute, event, hook)
    except asyncio.CancelledError:
        logger.info(f"Dispatch for {hook.url} was cancelled.")
        raise
    except Exception as e:
        error_trace = traceback.format_exc()
        logger.error(f"Dispatch for {hook.url} failed: {str(e)}\n{error_trace}")


def schedule(event: Event, hook: Hook) -> asyncio.Task:
    """Start a background dispatch and return without waiting for it."""
    task = asyncio.create_task(run_hook(event, hook))
    running_tasks.add(task)
    task.add_done_callback(running_tasks.discard)
    return task


async def drain():
    """Wait for every scheduled dispatch to finish."""
    if not running_tasks:
        return
    logger.info(f"Waiting for {len(running_tasks)} running dispatch(es) to finish.")
    await asyncio.gather(*list(running_tasks), return_exceptions=True)
