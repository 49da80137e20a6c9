# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Messages

Request and response messages exchanged with the editor front end. Payloads
are JSON objects with a ``command`` discriminator and camelCase fields; they
are validated once by ``parse_request`` and trusted from then on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Union

from ansible_template_ui.engine.errors import MessageError


class RequestKind(Enum):
    """Request message kinds. Each kind has its own staleness counter."""
    RENDER = "TemplateResultRequestMessage"
    PREFERENCE = "PreferenceRequestMessage"
    PLUGINS = "AnsiblePluginsRequestMessage"
    HOST_LIST = "HostListRequestMessage"
    HOST_VARS = "HostVarsRequestMessage"
    ROLES = "RolesRequestMessage"


class LookupStatus(Enum):
    """Origin of a lookup response."""
    SUCCESSFUL = "successful"
    FAILED = "failed"
    CACHE = "cache"

    @classmethod
    def of(cls, successful: bool) -> "LookupStatus":
        return cls.SUCCESSFUL if successful else cls.FAILED


# Requests

@dataclass(frozen=True)
class RenderRequest:
    """Render ``template`` for ``host`` of ``profile``."""

    kind: ClassVar[RequestKind] = RequestKind.RENDER

    profile: str
    host: str
    role: str = ""
    gather_facts: bool = False
    variables: str = ""
    template: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.kind.value,
            "profile": self.profile,
            "host": self.host,
            "role": self.role,
            "gatherFacts": self.gather_facts,
            "variables": self.variables,
            "template": self.template,
        }


@dataclass(frozen=True)
class HostListRequest:
    kind: ClassVar[RequestKind] = RequestKind.HOST_LIST

    profile: str
    cache_only: bool = False


@dataclass(frozen=True)
class HostVarsRequest:
    kind: ClassVar[RequestKind] = RequestKind.HOST_VARS

    profile: str
    host: str
    role: str = ""
    cache_only: bool = False


@dataclass(frozen=True)
class RolesRequest:
    kind: ClassVar[RequestKind] = RequestKind.ROLES

    profile: str
    cache_only: bool = False


@dataclass(frozen=True)
class PluginsRequest:
    kind: ClassVar[RequestKind] = RequestKind.PLUGINS

    profile: str
    cache_only: bool = False


@dataclass(frozen=True)
class PreferenceRequest:
    kind: ClassVar[RequestKind] = RequestKind.PREFERENCE


Request = Union[
    RenderRequest,
    HostListRequest,
    HostVarsRequest,
    RolesRequest,
    PluginsRequest,
    PreferenceRequest,
]


# Responses

@dataclass(frozen=True)
class RenderResponse:
    command: ClassVar[str] = "TemplateResultResponseMessage"

    successful: bool
    type: str
    result: str
    debug: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "successful": self.successful,
            "type": self.type,
            "result": self.result,
            "debug": self.debug,
        }


@dataclass(frozen=True)
class HostListResponse:
    command: ClassVar[str] = "HostListResponseMessage"

    status: LookupStatus
    hosts: List[str]
    probe_request: RenderRequest

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "status": self.status.value,
            "hosts": list(self.hosts),
            "probeRequest": self.probe_request.to_dict(),
        }


@dataclass(frozen=True)
class HostVarsResponse:
    command: ClassVar[str] = "HostVarsResponseMessage"

    status: LookupStatus
    host: str
    role: str
    vars: List[str]
    probe_request: RenderRequest

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "status": self.status.value,
            "host": self.host,
            "role": self.role,
            "vars": list(self.vars),
            "probeRequest": self.probe_request.to_dict(),
        }


@dataclass(frozen=True)
class RolesResponse:
    command: ClassVar[str] = "RolesResponseMessage"

    status: LookupStatus
    roles: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "status": self.status.value,
            "roles": list(self.roles),
        }


@dataclass(frozen=True)
class PluginsResponse:
    command: ClassVar[str] = "AnsiblePluginsResponseMessage"

    status: LookupStatus
    filters: List[Dict[str, str]] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "status": self.status.value,
            "filters": [dict(f) for f in self.filters],
            "roles": list(self.roles),
        }


@dataclass(frozen=True)
class PreferenceResponse:
    command: ClassVar[str] = "PreferenceResponseMessage"

    profiles: Dict[str, str]
    tab_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "profiles": dict(self.profiles),
            "tabSize": self.tab_size,
        }


Response = Union[
    RenderResponse,
    HostListResponse,
    HostVarsResponse,
    RolesResponse,
    PluginsResponse,
    PreferenceResponse,
]


# Boundary validation

def _get(payload: Dict[str, Any], key: str, expected: type, command: str) -> Any:
    if key not in payload:
        raise MessageError(f"missing field '{key}'", command)
    value = payload[key]
    # bool is an int subclass; keep the check exact
    if type(value) is not expected:
        raise MessageError(
            f"field '{key}' must be {expected.__name__}, got {type(value).__name__}",
            command,
        )
    return value


def parse_request(payload: Any) -> Request:
    """
    Validate a raw payload and build the matching request.

    Raises:
        MessageError: if the payload is not a known, well-formed request
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("command"), str):
        raise MessageError("payload must be an object with a string 'command'")

    command = payload["command"]
    try:
        kind = RequestKind(command)
    except ValueError:
        raise MessageError("unknown command", command) from None

    if kind is RequestKind.PREFERENCE:
        return PreferenceRequest()

    profile = _get(payload, "profile", str, command)

    if kind is RequestKind.RENDER:
        return RenderRequest(
            profile=profile,
            host=_get(payload, "host", str, command),
            role=_get(payload, "role", str, command),
            gather_facts=_get(payload, "gatherFacts", bool, command),
            variables=_get(payload, "variables", str, command),
            template=_get(payload, "template", str, command),
        )

    if kind is RequestKind.PLUGINS and "cacheOnly" not in payload:
        return PluginsRequest(profile=profile)

    cache_only = _get(payload, "cacheOnly", bool, command)
    if kind is RequestKind.HOST_LIST:
        return HostListRequest(profile=profile, cache_only=cache_only)
    if kind is RequestKind.HOST_VARS:
        return HostVarsRequest(
            profile=profile,
            host=_get(payload, "host", str, command),
            role=_get(payload, "role", str, command),
            cache_only=cache_only,
        )
    if kind is RequestKind.ROLES:
        return RolesRequest(profile=profile, cache_only=cache_only)
    return PluginsRequest(profile=profile, cache_only=cache_only)
