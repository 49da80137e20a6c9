# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Playbook Builder

Builds the throwaway playbooks used to render a template or probe the
inventory. Only tasks tagged with the whitelist tag run: the invocation asks
for ``--tags whitelist --skip-tags always,blacklist`` and an imported role is
tagged with the blacklist tag, so its own tasks never execute.
"""

from typing import Any, Dict, List, Optional, Sequence

import yaml

from ansible_template_ui.engine.errors import VariablesMalformedError
from ansible_template_ui.engine.profiles import Profile


PLAYBOOK_TITLE = "Print Template"
TAGS_WHITELIST = "tag_whitelist_tasks"
TAGS_BLACKLIST = "tag_blacklist_tasks"
LOCALHOST = "localhost"

TEMPLATE_HOSTLIST = "{{ groups.all | default([]) | sort | unique }}"
TEMPLATE_HOSTVARS = "{{ vars.keys() }}"
TEMPLATE_ROLE_DIRS = (
    "{{ _res.results | map(attribute='files') | flatten"
    " | map(attribute='path') | map('basename') | unique | sort }}"
)


def parse_variables(variables: str) -> Optional[Dict[str, Any]]:
    """
    Decode the user's variables string.

    JSON is a subset of YAML, so a single YAML load accepts both.

    Returns:
        None for a blank string, otherwise the decoded mapping

    Raises:
        VariablesMalformedError: if the text does not decode to a mapping
    """
    if not variables.strip():
        return None
    try:
        data = yaml.safe_load(variables)
    except (yaml.YAMLError, RecursionError) as e:
        raise VariablesMalformedError(str(e) or type(e).__name__) from e
    if not isinstance(data, dict):
        raise VariablesMalformedError(f"decoded to {type(data).__name__}, not a mapping")
    return data


class PlaybookBuilder:
    """
    Assembles probe playbooks.

    Every playbook is a single play named ``PLAYBOOK_TITLE`` whose result
    task is also named ``PLAYBOOK_TITLE``; the result extractor relies on it.
    """

    def __init__(self, collection_references: Sequence[str] = ()):
        self.collection_references = list(collection_references)

    def build_play(
        self,
        host: str,
        tasks: List[Dict[str, Any]],
        gather_facts: bool = False,
        role: str = "",
    ) -> List[Dict[str, Any]]:
        """
        Wrap ``tasks`` into a playbook targeting ``host``.

        Args:
            host: Inventory host or ``localhost``
            tasks: Tasks to run, already tagged
            gather_facts: Value of the play's ``gather_facts``
            role: Role to import with the blacklist tag; empty for none
        """
        roles = [] if not role else [{"role": role, "tags": [TAGS_BLACKLIST]}]
        return [
            {
                "name": PLAYBOOK_TITLE,
                "hosts": host,
                "gather_facts": gather_facts,
                "collections": list(self.collection_references),
                "roles": roles,
                "tasks": tasks,
            },
        ]

    def build_render(
        self,
        host: str,
        template: str,
        role: str = "",
        gather_facts: bool = False,
    ) -> List[Dict[str, Any]]:
        """Playbook that prints ``template`` for ``host``."""
        tasks = [
            {
                "ansible.builtin.setup": {},
                "when": gather_facts,
                "tags": [TAGS_WHITELIST],
            },
            self._debug_task(template),
        ]
        return self.build_play(host, tasks, gather_facts=gather_facts, role=role)

    def build_role_scan(self) -> List[Dict[str, Any]]:
        """Playbook that prints the directory names found in the roles path."""
        tasks = [
            {
                "ansible.builtin.find": {
                    "paths": "{{ item }}",
                    "recurse": False,
                    "file_type": "directory",
                },
                "loop": "{{ lookup('ansible.builtin.config', 'DEFAULT_ROLES_PATH') }}",
                "tags": [TAGS_WHITELIST],
                "register": "_res",
            },
            self._debug_task(TEMPLATE_ROLE_DIRS),
        ]
        return self.build_play(LOCALHOST, tasks)

    @staticmethod
    def _debug_task(template: str) -> Dict[str, Any]:
        return {
            "name": PLAYBOOK_TITLE,
            "ansible.builtin.debug": {"msg": template},
            "tags": [TAGS_WHITELIST],
        }

    @staticmethod
    def dump(playbook: List[Dict[str, Any]]) -> str:
        """Serialize a playbook to YAML."""
        return yaml.safe_dump(
            playbook,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )

    @staticmethod
    def command_args(
        profile: Profile,
        playbook_path: str,
        variables_path: Optional[str] = None,
    ) -> List[str]:
        """
        Build the ansible-playbook argument list.

        ``--extra-vars`` is only passed when a variables file is given; blank
        variables mean "no variables", not "an empty mapping".
        """
        args = list(profile.args)
        args.extend([
            playbook_path,
            "--tags", TAGS_WHITELIST,
            "--skip-tags", f"always,{TAGS_BLACKLIST}",
        ])
        if variables_path:
            args.extend(["--extra-vars", f"@{variables_path}"])
        return args
