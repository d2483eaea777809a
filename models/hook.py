# models/hook.py

from typing import List, Optional

from jinja2 import Template
from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

from templating import EnvLookup, compile_template


class Hook(BaseModel):
    """
    A configured rule: which events to accept at `url` and which commands to run.

    Empty allow-lists accept everything. `env` entries take the form
    KEY=VALUE; an empty list inherits the server's environment. A `timeout`
    of 0 is replaced by the server-wide command timeout when the config is
    loaded.
    """

    model_config = ConfigDict(extra="forbid")

    url: str
    dir: str = ""
    env: List[str] = []
    per_commit: bool = False
    allow_event: List[str] = []
    allow_pipeline_status: List[str] = []
    allow_branches: List[str] = []
    commands: List[List[str]] = []
    timeout: int = 0
    secret: str = ""

    _cmd_templates: Optional[List[List[Template]]] = PrivateAttr(default=None)
    _env_templates: Optional[List[Template]] = PrivateAttr(default=None)
    _dir_template: Optional[Template] = PrivateAttr(default=None)

    @field_validator("url")
    @classmethod
    def url_is_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Hook url must start with '/': {value!r}")
        return value

    @field_validator("commands")
    @classmethod
    def commands_have_program(cls, value: List[List[str]]) -> List[List[str]]:
        for i, command in enumerate(value):
            if not command:
                raise ValueError(f"Command {i} is empty")
        return value

    @field_validator("timeout")
    @classmethod
    def timeout_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Invalid timeout: {value} (must not be negative)")
        return value

    def create_templates(self, lookup: Optional[EnvLookup] = None):
        """
        Compile the command, environment and directory templates.

        Either every template compiles and the hook becomes usable, or the
        first TemplateCompileError propagates and no compiled state is kept.
        """
        self._cmd_templates = None
        self._env_templates = None
        self._dir_template = None

        cmd_templates = [
            [compile_template(arg, lookup) for arg in command]
            for command in self.commands
        ]
        env_templates = [compile_template(entry, lookup) for entry in self.env]
        dir_template = compile_template(self.dir, lookup) if self.dir else None

        self._cmd_templates = cmd_templates
        self._env_templates = env_templates
        self._dir_template = dir_template

    @property
    def compiled(self) -> bool:
        return self._cmd_templates is not None

    @property
    def cmd_templates(self) -> List[List[Template]]:
        return self._cmd_templates or []

    @property
    def env_templates(self) -> List[Template]:
        return self._env_templates or []

    @property
    def dir_template(self) -> Optional[Template]:
        return self._dir_template
