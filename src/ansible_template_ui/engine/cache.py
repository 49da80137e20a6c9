# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Lookup caches.

Entries live for the life of the process and are only replaced by a
successful live lookup; there is no expiry. Access happens on the event
loop thread only, so no locking is needed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PluginListing:
    """Filters and roles exported by the imported collections."""
    filters: List[Dict[str, str]] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)


class CacheStore:
    """Host list, host variables, role list and plugin list caches."""

    def __init__(self) -> None:
        self._hosts: Dict[str, List[str]] = {}
        self._host_vars: Dict[str, Dict[str, List[str]]] = {}
        self._roles: Dict[str, List[str]] = {}
        self._plugins: Dict[str, PluginListing] = {}

    def get_hosts(self, profile: str) -> Optional[List[str]]:
        return self._hosts.get(profile)

    def put_hosts(self, profile: str, hosts: List[str]) -> None:
        self._hosts[profile] = list(hosts)

    def get_host_vars(self, profile: str, host: str) -> Optional[List[str]]:
        return self._host_vars.get(profile, {}).get(host)

    def put_host_vars(self, profile: str, host: str, names: List[str]) -> None:
        self._host_vars.setdefault(profile, {})[host] = list(names)

    def get_roles(self, profile: str) -> Optional[List[str]]:
        return self._roles.get(profile)

    def put_roles(self, profile: str, roles: List[str]) -> None:
        self._roles[profile] = list(roles)

    def get_plugins(self, profile: str) -> Optional[PluginListing]:
        return self._plugins.get(profile)

    def put_plugins(self, profile: str, listing: PluginListing) -> None:
        self._plugins[profile] = listing

