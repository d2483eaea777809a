"""Unit tests for the Hook model and template compilation."""

import pytest
from pydantic import ValidationError

from dispatcher import create_templates
from exceptions import TemplateCompileError
from models.hook import Hook


def test_create_templates_matches_sources():
    hook = Hook(
        url="/deploy",
        dir="/srv/{{ repository.name }}",
        env=["REF={{ ref }}", "STATIC=1"],
        commands=[["git", "pull"], ["echo", "{{ ref }}", "done"]],
    )
    hook.create_templates()

    assert hook.compiled
    assert [len(c) for c in hook.cmd_templates] == [2, 3]
    assert len(hook.env_templates) == 2
    assert hook.dir_template is not None


def test_empty_dir_has_no_template():
    hook = Hook(url="/deploy", commands=[["true"]])
    hook.create_templates()
    assert hook.dir_template is None
    assert hook.env_templates == []


def test_not_compiled_until_create_templates():
    hook = Hook(url="/deploy", commands=[["true"]])
    assert not hook.compiled


@pytest.mark.parametrize(
    "field,value",
    [
        ("dir", "{{ broken"),
        ("env", ["A={{ broken"]),
        ("commands", [["echo", "ok"], ["echo", "{% if %}"]]),
    ],
)
def test_invalid_template_leaves_no_compiled_state(field, value):
    kwargs = {"url": "/deploy", "commands": [["true"]], field: value}
    hook = Hook(**kwargs)
    with pytest.raises(TemplateCompileError):
        create_templates(hook)

    assert not hook.compiled
    assert hook.cmd_templates == []
    assert hook.env_templates == []
    assert hook.dir_template is None


def test_failed_recompile_discards_previous_templates():
    hook = Hook(url="/deploy", commands=[["echo", "{{ ref }}"]])
    hook.create_templates()
    hook.commands = [["echo", "{{ ref"]]
    with pytest.raises(TemplateCompileError):
        hook.create_templates()
    assert not hook.compiled


def test_create_templates_uses_injected_lookup():
    hook = Hook(url="/deploy", dir="$ROOT", commands=[["true"]])
    hook.create_templates(lookup={"ROOT": "/srv"}.get)
    assert hook.dir_template.render() == "/srv"


def test_defaults_accept_everything():
    hook = Hook(url="/deploy")
    assert hook.allow_event == []
    assert hook.allow_pipeline_status == []
    assert hook.allow_branches == []
    assert hook.per_commit is False


def test_empty_command_is_rejected():
    with pytest.raises(ValidationError):
        Hook(url="/deploy", commands=[[]])


def test_url_must_be_a_path():
    with pytest.raises(ValidationError):
        Hook(url="deploy")


def test_negative_timeout_is_rejected():
    with pytest.raises(ValidationError):
        Hook(url="/deploy", timeout=-1)


def test_unknown_field_is_rejected():
    with pytest.raises(ValidationError):
        Hook(url="/deploy", allow_branch=["main"])
