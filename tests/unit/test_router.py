"""
Tests for request routing, staleness guarding and cached lookups.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ansible_template_ui.engine.cache import CacheStore, PluginListing
from ansible_template_ui.engine.errors import ProfileNotFoundError
from ansible_template_ui.engine.messages import (
    HostListRequest,
    HostVarsRequest,
    PluginsRequest,
    PreferenceRequest,
    RenderRequest,
    RequestKind,
    RolesRequest,
)
from ansible_template_ui.engine.playbook import TEMPLATE_HOSTLIST, TEMPLATE_HOSTVARS
from ansible_template_ui.engine.profiles import Profile, ProfileResolver
from ansible_template_ui.engine.results import RenderResult, ResultType
from ansible_template_ui.engine.roles import RoleListing
from ansible_template_ui.engine.router import RequestRouter


def structure(value):
    return RenderResult(True, ResultType.STRUCTURE, json.dumps(value))


def make_router(render_results=None, cache=None, role_discovery=None, plugin_lookup=None):
    runner = MagicMock()
    runner.resolver = ProfileResolver({"Default": Profile()})
    runner.tab_size = 2
    runner.render = AsyncMock(side_effect=render_results)
    sent = []
    router = RequestRouter(
        runner=runner,
        send=sent.append,
        cache=cache or CacheStore(),
        role_discovery=role_discovery or MagicMock(lookup=AsyncMock()),
        plugin_lookup=plugin_lookup or MagicMock(lookup=AsyncMock()),
    )
    return router, sent


class TestStaleness:
    """Test that superseded answers are dropped."""

    def test_admit_increments_per_kind(self):
        router, _ = make_router()
        first = router.admit(RequestKind.RENDER)
        second = router.admit(RequestKind.RENDER)
        other = router.admit(RequestKind.HOST_LIST)

        assert second.counter == first.counter + 1
        assert not router.is_current(first)
        assert router.is_current(second)
        assert router.is_current(other)

    @pytest.mark.asyncio
    async def test_slow_render_superseded(self):
        release = asyncio.Event()

        async def render(request, playbook=None):
            if request.template == "slow":
                await release.wait()
            return RenderResult(True, ResultType.STRING, request.template)

        router, sent = make_router(render_results=render)
        slow = asyncio.ensure_future(
            router.handle(RenderRequest("Default", "localhost", template="slow"))
        )
        await asyncio.sleep(0)
        await router.handle(RenderRequest("Default", "localhost", template="fast"))
        release.set()
        await slow

        assert [m["result"] for m in sent] == ["fast"]

    @pytest.mark.asyncio
    async def test_kinds_are_independent(self):
        release = asyncio.Event()

        async def render(request, playbook=None):
            if request.template == "slow":
                await release.wait()
                return RenderResult(True, ResultType.STRING, "slow")
            return structure(["localhost", "web1"])

        router, sent = make_router(render_results=render)
        slow = asyncio.ensure_future(
            router.handle(RenderRequest("Default", "localhost", template="slow"))
        )
        await asyncio.sleep(0)
        await router.handle(HostListRequest("Default"))
        release.set()
        await slow

        commands = [m["command"] for m in sent]
        assert commands == ["HostListResponseMessage", "TemplateResultResponseMessage"]

    @pytest.mark.asyncio
    async def test_slow_host_list_superseded(self):
        release = asyncio.Event()
        answers = [["old"], ["new1", "new2"]]

        async def render(request, playbook=None):
            hosts = answers.pop(0)
            if hosts == ["old"]:
                await release.wait()
            return structure(hosts)

        router, sent = make_router(render_results=render)
        slow = asyncio.ensure_future(router.handle(HostListRequest("p")))
        await asyncio.sleep(0)
        await router.handle(HostListRequest("p"))
        release.set()
        await slow

        assert len(sent) == 1
        assert sent[0]["command"] == "HostListResponseMessage"
        assert sent[0]["status"] == "successful"
        assert sent[0]["hosts"] == ["localhost", "new1", "new2"]

    @pytest.mark.asyncio
    async def test_superseded_live_answer_dropped_after_cache_hit(self):
        release = asyncio.Event()
        answers = [["old"], ["new1", "new2"]]

        async def render(request, playbook=None):
            hosts = answers.pop(0)
            if hosts == ["old"]:
                await release.wait()
            return structure(hosts)

        cache = CacheStore()
        cache.put_hosts("p", ["localhost", "cached"])
        router, sent = make_router(render_results=render, cache=cache)
        slow = asyncio.ensure_future(router.handle(HostListRequest("p")))
        await asyncio.sleep(0)
        await router.handle(HostListRequest("p"))
        release.set()
        await slow

        # each cache answer goes out before the next request is admitted
        assert [m["status"] for m in sent] == ["cache", "cache", "successful"]
        assert sent[-1]["hosts"] == ["localhost", "new1", "new2"]
        assert router.cache.get_hosts("p") == ["localhost", "new1", "new2"]

    @pytest.mark.asyncio
    async def test_dispatch_ignores_invalid_payload(self):
        router, sent = make_router()
        assert router.dispatch({"command": "Nope"}) is None
        assert router.dispatch("not an object") is None
        assert sent == []

    @pytest.mark.asyncio
    async def test_dispatch_runs_request(self):
        router, sent = make_router()
        task = router.dispatch({"command": "PreferenceRequestMessage"})
        await task
        assert sent[0]["command"] == "PreferenceResponseMessage"


class TestRender:
    """Test render answers."""

    @pytest.mark.asyncio
    async def test_render_response(self):
        router, sent = make_router(render_results=[
            RenderResult(False, ResultType.UNKNOWN, "Profile cannot be found."),
        ])
        await router.handle(RenderRequest("missing", "localhost", template="x"))

        assert sent == [{
            "command": "TemplateResultResponseMessage",
            "successful": False,
            "type": "unknown",
            "result": "Profile cannot be found.",
            "debug": "",
        }]


class TestPreferences:
    """Test the preference answer."""

    @pytest.mark.asyncio
    async def test_profiles_and_tab_size(self):
        router, sent = make_router()
        await router.handle(PreferenceRequest())

        assert sent[0]["tabSize"] == 2
        assert json.loads(sent[0]["profiles"]["Default"]) == Profile().to_dict()


class TestHostList:
    """Test host list lookups."""

    @pytest.mark.asyncio
    async def test_live_lookup(self):
        router, sent = make_router(render_results=[structure(["db1", "web1"])])
        await router.handle(HostListRequest("Default"))

        assert sent[0]["status"] == "successful"
        assert sent[0]["hosts"] == ["localhost", "db1", "web1"]
        assert sent[0]["probeRequest"]["template"] == TEMPLATE_HOSTLIST
        assert sent[0]["probeRequest"]["host"] == "localhost"

    @pytest.mark.asyncio
    async def test_localhost_not_duplicated(self):
        router, sent = make_router(render_results=[structure(["localhost", "web1"])])
        await router.handle(HostListRequest("Default"))
        assert sent[0]["hosts"] == ["localhost", "web1"]

    @pytest.mark.asyncio
    async def test_cache_then_refresh(self):
        router, sent = make_router(render_results=[
            structure(["web1"]),
            structure(["web1", "web2"]),
        ])
        await router.handle(HostListRequest("Default"))
        await router.handle(HostListRequest("Default"))

        assert [m["status"] for m in sent] == ["successful", "cache", "successful"]
        assert sent[1]["hosts"] == ["localhost", "web1"]
        assert sent[2]["hosts"] == ["localhost", "web1", "web2"]

    @pytest.mark.asyncio
    async def test_cache_only(self):
        cache = CacheStore()
        cache.put_hosts("Default", ["localhost", "web1"])
        router, sent = make_router(cache=cache)

        await router.handle(HostListRequest("Default", cache_only=True))

        assert [m["status"] for m in sent] == ["cache"]
        router.runner.render.assert_not_called()

    @pytest.mark.asyncio
    async def test_localhost_only_cache_not_served(self):
        cache = CacheStore()
        cache.put_hosts("Default", ["localhost"])
        router, sent = make_router(render_results=[structure([])], cache=cache)

        await router.handle(HostListRequest("Default", cache_only=True))

        assert [m["status"] for m in sent] == ["successful"]

    @pytest.mark.asyncio
    async def test_failure_not_cached(self):
        router, sent = make_router(render_results=[
            RenderResult.failure("Unable to parse ansible output..."),
        ])
        await router.handle(HostListRequest("Default"))

        assert sent[0]["status"] == "failed"
        assert sent[0]["hosts"] == ["localhost"]
        assert router.cache.get_hosts("Default") is None


class TestHostVars:
    """Test host variable name lookups."""

    @pytest.mark.asyncio
    async def test_live_lookup(self):
        router, sent = make_router(render_results=[structure(["ansible_host", "foo"])])
        await router.handle(HostVarsRequest("Default", "web1", role="nginx"))

        assert sent[0]["status"] == "successful"
        assert sent[0]["host"] == "web1"
        assert sent[0]["role"] == "nginx"
        assert sent[0]["vars"] == ["ansible_host", "foo"]
        probe = router.runner.render.call_args.args[0]
        assert probe.template == TEMPLATE_HOSTVARS
        assert probe.role == "nginx"

    @pytest.mark.asyncio
    async def test_cache_is_per_host(self):
        router, sent = make_router(render_results=[
            structure(["a"]),
            structure(["b"]),
        ])
        await router.handle(HostVarsRequest("Default", "web1"))
        await router.handle(HostVarsRequest("Default", "web2"))

        assert [m["status"] for m in sent] == ["successful", "successful"]

    @pytest.mark.asyncio
    async def test_failure(self):
        router, sent = make_router(render_results=[
            RenderResult(False, ResultType.STRING, "undefined variable"),
        ])
        await router.handle(HostVarsRequest("Default", "web1"))

        assert sent[0]["status"] == "failed"
        assert sent[0]["vars"] == []


class TestRoles:
    """Test role lookups."""

    @pytest.mark.asyncio
    async def test_cache_then_refresh(self):
        discovery = MagicMock(lookup=AsyncMock(side_effect=[
            RoleListing(True, ["", "a"]),
            RoleListing(False, [""]),
        ]))
        router, sent = make_router(role_discovery=discovery)

        await router.handle(RolesRequest("Default"))
        await router.handle(RolesRequest("Default"))

        assert [m["status"] for m in sent] == ["successful", "cache", "failed"]
        assert router.cache.get_roles("Default") == ["", "a"]

    @pytest.mark.asyncio
    async def test_cache_only(self):
        cache = CacheStore()
        cache.put_roles("Default", ["", "a"])
        discovery = MagicMock(lookup=AsyncMock())
        router, sent = make_router(cache=cache, role_discovery=discovery)

        await router.handle(RolesRequest("Default", cache_only=True))

        assert sent == [{"command": "RolesResponseMessage", "status": "cache", "roles": ["", "a"]}]
        discovery.lookup.assert_not_called()


class TestPlugins:
    """Test plugin lookups."""

    @pytest.mark.asyncio
    async def test_successful_lookup_cached(self):
        listing = PluginListing(filters=[{"name": "f", "description": "d"}], roles=["r"])
        lookup = MagicMock(lookup=AsyncMock(return_value=(True, listing)))
        router, sent = make_router(plugin_lookup=lookup)

        await router.handle(PluginsRequest("Default"))

        assert sent[0]["status"] == "successful"
        assert sent[0]["filters"] == [{"name": "f", "description": "d"}]
        assert router.cache.get_plugins("Default") == listing

    @pytest.mark.asyncio
    async def test_missing_profile(self):
        lookup = MagicMock(lookup=AsyncMock(side_effect=ProfileNotFoundError("missing")))
        router, sent = make_router(plugin_lookup=lookup)

        await router.handle(PluginsRequest("missing"))

        assert sent[0]["status"] == "failed"
        assert router.cache.get_plugins("missing") is None


class TestUnexpectedErrors:
    """Errors escaping a handler still produce an answer."""

    @pytest.mark.asyncio
    async def test_render_error_answered(self):
        router, sent = make_router(render_results=RuntimeError("boom"))
        await router.handle(RenderRequest("Default", "localhost", template="x"))

        assert len(sent) == 1
        assert sent[0]["command"] == "TemplateResultResponseMessage"
        assert sent[0]["successful"] is False
        assert sent[0]["type"] == "unknown"
        assert "boom" in sent[0]["result"]

    @pytest.mark.asyncio
    async def test_lookup_error_answered_as_failed(self):
        discovery = MagicMock(lookup=AsyncMock(side_effect=RuntimeError("boom")))
        router, sent = make_router(role_discovery=discovery)

        await router.handle(RolesRequest("Default"))

        assert sent == [{"command": "RolesResponseMessage", "status": "failed", "roles": [""]}]
        assert router.cache.get_roles("Default") is None

    @pytest.mark.asyncio
    async def test_host_list_error_answered_as_failed(self):
        router, sent = make_router(render_results=RuntimeError("boom"))
        await router.handle(HostListRequest("Default"))

        assert sent[0]["status"] == "failed"
        assert sent[0]["hosts"] == ["localhost"]
        assert sent[0]["probeRequest"]["template"] == TEMPLATE_HOSTLIST

    @pytest.mark.asyncio
    async def test_deeply_nested_variables_answered(self, make_settings):
        sent = []
        router = RequestRouter.from_settings(make_settings(), sent.append)
        task = router.dispatch({
            "command": "TemplateResultRequestMessage",
            "profile": "fake",
            "host": "localhost",
            "role": "",
            "gatherFacts": False,
            "variables": "a: " + "[" * 20000,
            "template": "{{ a }}",
        })
        await task

        assert len(sent) == 1
        assert sent[0]["successful"] is False
        assert "malformed" in sent[0]["result"]
