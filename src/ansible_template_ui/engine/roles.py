# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Role Discovery

Two interchangeable ways to list the roles a template can be rendered with:
asking ``ansible-galaxy role list``, or scanning the configured roles path
through a probe playbook.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from ansible_template_ui.engine.errors import RoleDiscoveryError, TemplateUiError
from ansible_template_ui.engine.messages import RenderRequest
from ansible_template_ui.engine.playbook import LOCALHOST
from ansible_template_ui.engine.results import ResultType
from ansible_template_ui.engine.runner import TemplateRunner
from ansible_template_ui.settings import RoleDetectionMode


logger = logging.getLogger(__name__)

# One role per line: "- rolename, 1.0.0"
GALAXY_ROLE_PATTERN = re.compile(r'^- (?P<role_name>[\w-]+), .+$')


@dataclass(frozen=True)
class RoleListing:
    """Result of a role discovery. ``roles`` starts with the "no role" entry."""
    successful: bool
    roles: List[str] = field(default_factory=list)


def finalize_roles(roles: List[str]) -> List[str]:
    """Sort case-insensitively and prepend the empty "no role selected" entry."""
    return [""] + sorted(roles, key=lambda r: (r.casefold(), r))


class RoleDiscovery(ABC):
    """
    Base class for role discovery strategies.

    Subclasses implement ``discover`` and raise RoleDiscoveryError on failure;
    ``lookup`` turns that into an unsuccessful listing.
    """

    name: str = ""

    def __init__(self, runner: TemplateRunner):
        self.runner = runner

    @abstractmethod
    async def discover(self, profile_key: str) -> List[str]:
        """Return the raw role names for a profile."""
        pass

    async def lookup(self, profile_key: str) -> RoleListing:
        try:
            roles = await self.discover(profile_key)
        except TemplateUiError as e:
            logger.warning("%s", e)
            return RoleListing(successful=False, roles=finalize_roles([]))
        return RoleListing(successful=True, roles=finalize_roles(roles))


class GalaxyRoleDiscovery(RoleDiscovery):
    """Lists roles with ``<cmdGalaxy> role list``."""

    name = RoleDetectionMode.ANSIBLE_GALAXY.value

    async def discover(self, profile_key: str) -> List[str]:
        profile = self.runner.resolver.resolve(profile_key)
        result = await self.runner.run_tool(profile, profile.cmd_galaxy, ["role", "list"])
        if not result.successful:
            raise RoleDiscoveryError(self.name, result.stderr.strip() or "command failed")
        return parse_galaxy_role_list(result.stdout)


def parse_galaxy_role_list(stdout: str) -> List[str]:
    """Extract role names from ``ansible-galaxy role list`` output."""
    roles = []
    for line in stdout.splitlines():
        match = GALAXY_ROLE_PATTERN.match(line)
        if match:
            roles.append(match.group("role_name"))
    return roles


class DirectoryRoleDiscovery(RoleDiscovery):
    """Lists the directories found in Ansible's DEFAULT_ROLES_PATH."""

    name = RoleDetectionMode.DIRECTORY_LOOKUP.value

    async def discover(self, profile_key: str) -> List[str]:
        request = RenderRequest(profile=profile_key, host=LOCALHOST)
        playbook = self.runner.builder.build_role_scan()
        result = await self.runner.render(request, playbook=playbook)
        if not result.successful:
            raise RoleDiscoveryError(self.name, result.result)
        if result.type is not ResultType.STRUCTURE:
            raise RoleDiscoveryError(self.name, f"expected a list, got {result.type.value}")
        roles = json.loads(result.result)
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise RoleDiscoveryError(self.name, "expected a list of role names")
        return roles


def create_role_discovery(mode: RoleDetectionMode, runner: TemplateRunner) -> RoleDiscovery:
    """Strategy for the configured detection mode."""
    if mode is RoleDetectionMode.ANSIBLE_GALAXY:
        return GalaxyRoleDiscovery(runner)
    return DirectoryRoleDiscovery(runner)
