# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Profiles

An execution profile names the Ansible commands, arguments and environment
used to talk to one Ansible installation / inventory.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ansible_template_ui.engine.errors import ProfileNotFoundError


@dataclass(frozen=True)
class Profile:
    """Immutable execution profile."""

    args: Tuple[str, ...] = ()
    cmd_doc: str = "ansible-doc"
    cmd_galaxy: str = "ansible-galaxy"
    cmd_playbook: str = "ansible-playbook"
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Profile"]:
        """
        Build a profile from its settings representation.

        Returns None when the entry does not have the expected shape.
        """
        if not isinstance(data, dict):
            return None
        args = data.get("args")
        env = data.get("env")
        commands = [data.get(k) for k in ("cmdDoc", "cmdGalaxy", "cmdPlaybook")]
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            return None
        if not all(isinstance(c, str) for c in commands):
            return None
        if not isinstance(env, dict):
            return None
        return cls(
            args=tuple(args),
            cmd_doc=commands[0],
            cmd_galaxy=commands[1],
            cmd_playbook=commands[2],
            env={str(k): str(v) for k, v in env.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the settings representation."""
        return {
            "args": list(self.args),
            "cmdDoc": self.cmd_doc,
            "cmdGalaxy": self.cmd_galaxy,
            "cmdPlaybook": self.cmd_playbook,
            "env": dict(self.env),
        }


DEFAULT_PROFILES: Dict[str, Profile] = {
    "Default": Profile(),
}


class ProfileResolver:
    """Read-only lookup of validated profiles by key."""

    def __init__(self, profiles: Mapping[str, Profile]):
        self._profiles = dict(profiles)

    def resolve(self, key: str) -> Profile:
        """
        Get the profile for ``key``.

        Raises:
            ProfileNotFoundError: if no such profile is configured
        """
        try:
            return self._profiles[key]
        except KeyError:
            raise ProfileNotFoundError(key) from None

    def describe(self, indent: int = 2) -> Dict[str, str]:
        """Every profile serialized as pretty-printed JSON, keyed by name."""
        return {
            key: json.dumps(profile.to_dict(), indent=indent)
            for key, profile in self._profiles.items()
        }
