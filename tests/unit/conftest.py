"""
Shared fixtures: a fake ansible-playbook and settings wired to it.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from ansible_template_ui.engine.profiles import Profile
from ansible_template_ui.settings import Settings


# Stands in for ansible-playbook: renders the "Print Template" debug task with
# Jinja2 native types and prints the JSON stdout callback structure.
FAKE_ANSIBLE_PLAYBOOK = textwrap.dedent('''
    import json
    import os
    import sys
    import time

    import yaml
    from jinja2 import StrictUndefined
    from jinja2.nativetypes import NativeEnvironment

    args = sys.argv[1:]
    playbook_path = args[0]
    mode = os.environ.get("FAKE_MODE", "")

    record = os.environ.get("FAKE_RECORD")
    if record:
        with open(record, "w") as f:
            json.dump({
                "args": args,
                "callback": os.environ.get("ANSIBLE_STDOUT_CALLBACK"),
                "gathering": os.environ.get("ANSIBLE_GATHERING"),
                "retry": os.environ.get("ANSIBLE_RETRY_FILES_ENABLED"),
                "playbook": open(playbook_path).read(),
            }, f)

    if mode == "sleep":
        print("partial", flush=True)
        time.sleep(30)

    if mode == "garbage":
        print("this is not json")
        sys.exit(0)

    with open(playbook_path) as f:
        play = yaml.safe_load(f)[0]
    host = play["hosts"]

    variables = {}
    if "--extra-vars" in args:
        with open(args[args.index("--extra-vars") + 1][1:]) as f:
            variables = yaml.safe_load(f) or {}

    hosts = [h for h in os.environ.get("FAKE_HOSTS", "").split(",") if h]
    context = {"inventory_hostname": host, "groups": {"all": hosts}}
    context.update(variables)
    context["vars"] = dict(context)

    env = NativeEnvironment(undefined=StrictUndefined)
    tasks = []
    failed = False
    for task in play["tasks"]:
        if "ansible.builtin.setup" in task:
            if task.get("when"):
                tasks.append({
                    "task": {"name": "ansible.builtin.setup"},
                    "hosts": {host: {"ansible_facts": {}, "changed": False}},
                })
            continue
        template = task["ansible.builtin.debug"]["msg"]
        try:
            msg = env.from_string(template).render(context)
            if not isinstance(msg, (str, dict, list, int, float, bool, type(None))):
                msg = list(msg)
            entry = {"msg": msg, "changed": False}
        except Exception as e:
            failed = True
            entry = {"msg": "undefined variable: %s" % e, "failed": True, "changed": False}
        tasks.append({"task": {"name": task["name"]}, "hosts": {host: entry}})
        if mode == "duplicate":
            tasks.append({"task": {"name": task["name"]}, "hosts": {host: dict(entry)}})

    if mode == "noise":
        print("[DEPRECATION WARNING]: something old")
    print(json.dumps({"plays": [{"play": {"name": play["name"]}, "tasks": tasks}], "stats": {}}))
    sys.exit(2 if failed else 0)
''')


@pytest.fixture
def fake_ansible(tmp_path: Path) -> Path:
    """Write the fake ansible-playbook script and return its path."""
    script = tmp_path / "fake_ansible_playbook.py"
    script.write_text(FAKE_ANSIBLE_PLAYBOOK)
    return script


@pytest.fixture
def record_file(tmp_path: Path) -> Path:
    """File the fake engine writes its arguments and environment to."""
    return tmp_path / "record.json"


@pytest.fixture
def make_settings(fake_ansible: Path, record_file: Path, tmp_path: Path):
    """Factory for settings whose "fake" profile runs the fake engine."""

    def factory(env: dict = None, **kwargs) -> Settings:
        profile_env = {"FAKE_RECORD": str(record_file)}
        profile_env.update(env or {})
        profile = Profile(
            args=(str(fake_ansible),),
            cmd_playbook=sys.executable,
            env=profile_env,
        )
        kwargs.setdefault("workspace", str(tmp_path))
        return Settings(profiles={"fake": profile}, **kwargs)

    return factory
