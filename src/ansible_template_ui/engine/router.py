# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Request Router

Dispatches front end requests and guards against stale answers.

Every admitted request gets an AnswerToken carrying a per-kind counter. A
response is only sent if no newer request of the same kind was admitted in
the meantime. In-flight Ansible processes are never cancelled; their late
results are dropped and never written to the cache. Request kinds are
independent of each other.

Lookups answer from cache first (status ``cache``) when possible, then run
the live lookup and answer again unless the request was cache-only.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ansible_template_ui.engine.cache import CacheStore, PluginListing
from ansible_template_ui.engine.errors import MessageError, ProfileNotFoundError
from ansible_template_ui.engine.messages import (
    HostListRequest,
    HostListResponse,
    HostVarsRequest,
    HostVarsResponse,
    LookupStatus,
    PluginsRequest,
    PluginsResponse,
    PreferenceRequest,
    PreferenceResponse,
    RenderRequest,
    RenderResponse,
    Request,
    RequestKind,
    Response,
    RolesRequest,
    RolesResponse,
    parse_request,
)
from ansible_template_ui.engine.playbook import LOCALHOST, TEMPLATE_HOSTLIST, TEMPLATE_HOSTVARS
from ansible_template_ui.engine.plugins import PluginLookup
from ansible_template_ui.engine.results import RenderResult
from ansible_template_ui.engine.roles import RoleDiscovery, create_role_discovery
from ansible_template_ui.engine.runner import TemplateRunner
from ansible_template_ui.settings import Settings


logger = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class AnswerToken:
    """Identifies an admitted request within its kind."""
    kind: RequestKind
    counter: int


def _decode_string_list(text: str) -> Optional[List[str]]:
    """Decode a JSON list of strings, or None if ``text`` is anything else."""
    try:
        value = json.loads(text)
    except ValueError:
        return None
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    return None


def _host_list_probe(request: HostListRequest) -> RenderRequest:
    return RenderRequest(profile=request.profile, host=LOCALHOST, template=TEMPLATE_HOSTLIST)


def _host_vars_probe(request: HostVarsRequest) -> RenderRequest:
    return RenderRequest(
        profile=request.profile,
        host=request.host,
        role=request.role,
        template=TEMPLATE_HOSTVARS,
    )


def failure_response(request: Request, message: str) -> Optional[Response]:
    """Failed answer for ``request``, or None for kinds that cannot fail."""
    if isinstance(request, RenderRequest):
        return RenderResponse(**RenderResult.failure(message).to_dict())
    if isinstance(request, HostListRequest):
        return HostListResponse(LookupStatus.FAILED, [LOCALHOST], _host_list_probe(request))
    if isinstance(request, HostVarsRequest):
        return HostVarsResponse(
            LookupStatus.FAILED, request.host, request.role, [], _host_vars_probe(request),
        )
    if isinstance(request, RolesRequest):
        return RolesResponse(LookupStatus.FAILED, [""])
    if isinstance(request, PluginsRequest):
        return PluginsResponse(LookupStatus.FAILED)
    return None


class RequestRouter:
    """
    Front end request handling.

    Responses are passed to ``send`` as JSON-ready dictionaries. ``send`` is
    called synchronously, so a cache answer always goes out before the live
    lookup starts.
    """

    def __init__(
        self,
        runner: TemplateRunner,
        send: Sender,
        cache: Optional[CacheStore] = None,
        role_discovery: Optional[RoleDiscovery] = None,
        plugin_lookup: Optional[PluginLookup] = None,
    ):
        self.runner = runner
        self.send = send
        self.cache = cache if cache is not None else CacheStore()
        self.role_discovery = role_discovery or create_role_discovery(
            Settings().role_detection_mode, runner
        )
        self.plugin_lookup = plugin_lookup or PluginLookup(runner)
        self._counters: Dict[RequestKind, int] = {kind: 0 for kind in RequestKind}
        self._handlers = {
            RequestKind.RENDER: self.render,
            RequestKind.PREFERENCE: self.preferences,
            RequestKind.PLUGINS: self.plugins,
            RequestKind.HOST_LIST: self.host_list,
            RequestKind.HOST_VARS: self.host_vars,
            RequestKind.ROLES: self.roles,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        send: Sender,
        cache: Optional[CacheStore] = None,
    ) -> "RequestRouter":
        """Build a router and its collaborators from ``settings``."""
        runner = TemplateRunner.from_settings(settings)
        return cls(
            runner=runner,
            send=send,
            cache=cache,
            role_discovery=create_role_discovery(settings.role_detection_mode, runner),
            plugin_lookup=PluginLookup(
                runner,
                settings.collection_imports,
                settings.collection_references,
            ),
        )

    # Staleness guard

    def admit(self, kind: RequestKind) -> AnswerToken:
        """Register a new request of ``kind``, superseding older ones."""
        self._counters[kind] += 1
        return AnswerToken(kind=kind, counter=self._counters[kind])

    def is_current(self, token: AnswerToken) -> bool:
        return token.counter == self._counters[token.kind]

    def deliver(self, token: AnswerToken, response: Response) -> bool:
        """
        Send ``response`` unless a newer request of the same kind exists.

        Returns:
            True if the response was sent
        """
        if not self.is_current(token):
            logger.debug(
                "Dropping superseded %s #%d (current #%d)",
                token.kind.value, token.counter, self._counters[token.kind],
            )
            return False
        self.send(response.to_dict())
        return True

    # Dispatch

    def dispatch(self, payload: Any) -> Optional["asyncio.Task[None]"]:
        """
        Validate a raw payload and start handling it in the background.

        Invalid payloads are logged and ignored.

        Returns:
            The task handling the request, or None for an invalid payload
        """
        try:
            request = parse_request(payload)
        except MessageError as e:
            logger.warning("Ignoring message: %s", e)
            return None
        return asyncio.ensure_future(self.handle(request))

    async def handle(self, request: Request) -> None:
        """
        Handle one validated request.

        Unexpected errors are logged and answered with a failed response.
        """
        token = self.admit(request.kind)
        try:
            await self._handlers[request.kind](request, token)
        except Exception as e:
            logger.exception("Unexpected error while answering %s", request.kind.value)
            response = failure_response(request, f"Unexpected error: {e}")
            if response is not None:
                self.deliver(token, response)

    # Handlers

    async def render(self, request: RenderRequest, token: AnswerToken) -> None:
        result = await self.runner.render(request)
        self.deliver(token, RenderResponse(**result.to_dict()))

    async def preferences(self, request: PreferenceRequest, token: AnswerToken) -> None:
        tab_size = self.runner.tab_size
        self.deliver(token, PreferenceResponse(
            profiles=self.runner.resolver.describe(indent=tab_size),
            tab_size=tab_size,
        ))

    async def host_list(self, request: HostListRequest, token: AnswerToken) -> None:
        probe = _host_list_probe(request)

        cached = self.cache.get_hosts(request.profile)
        # A list with only the implicit localhost is not worth serving
        if cached is not None and len(cached) > 1:
            self.deliver(token, HostListResponse(LookupStatus.CACHE, cached, probe))
            if request.cache_only:
                return

        result = await self.runner.render(probe)
        hosts = _decode_string_list(result.result)
        is_successful = hosts is not None
        hosts = hosts or []
        if LOCALHOST not in hosts:
            hosts.insert(0, LOCALHOST)
        if is_successful and self.is_current(token):
            self.cache.put_hosts(request.profile, hosts)
        self.deliver(token, HostListResponse(LookupStatus.of(is_successful), hosts, probe))

    async def host_vars(self, request: HostVarsRequest, token: AnswerToken) -> None:
        probe = _host_vars_probe(request)

        cached = self.cache.get_host_vars(request.profile, request.host)
        if cached is not None:
            self.deliver(token, HostVarsResponse(
                LookupStatus.CACHE, request.host, request.role, cached, probe,
            ))
            if request.cache_only:
                return

        result = await self.runner.render(probe)
        names = _decode_string_list(result.result)
        is_successful = names is not None
        names = names or []
        if is_successful and self.is_current(token):
            self.cache.put_host_vars(request.profile, request.host, names)
        self.deliver(token, HostVarsResponse(
            LookupStatus.of(is_successful), request.host, request.role, names, probe,
        ))

    async def roles(self, request: RolesRequest, token: AnswerToken) -> None:
        cached = self.cache.get_roles(request.profile)
        if cached is not None:
            self.deliver(token, RolesResponse(LookupStatus.CACHE, cached))
            if request.cache_only:
                return

        listing = await self.role_discovery.lookup(request.profile)
        if listing.successful and self.is_current(token):
            self.cache.put_roles(request.profile, listing.roles)
        self.deliver(token, RolesResponse(LookupStatus.of(listing.successful), listing.roles))

    async def plugins(self, request: PluginsRequest, token: AnswerToken) -> None:
        cached = self.cache.get_plugins(request.profile)
        if cached is not None:
            self.deliver(token, PluginsResponse(LookupStatus.CACHE, cached.filters, cached.roles))
            if request.cache_only:
                return

        try:
            is_successful, listing = await self.plugin_lookup.lookup(request.profile)
        except ProfileNotFoundError as e:
            logger.warning("%s", e)
            is_successful, listing = False, PluginListing()
        if is_successful and self.is_current(token):
            self.cache.put_plugins(request.profile, listing)
        self.deliver(token, PluginsResponse(
            LookupStatus.of(is_successful), listing.filters, listing.roles,
        ))
