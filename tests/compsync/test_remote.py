"""Tests for scope clients: HTTP (mocked transport), directory scopes, registry."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from compsync.core.config import Settings
from compsync.engines.importer.models import ComponentId
from compsync.exceptions import ConfigurationError, NetworkError
from compsync.remote.client import HttpScopeClient
from compsync.remote.directory import DirectoryScopeStore
from compsync.remote.payload import ComponentPayload
from compsync.remote.registry import RemoteRegistry


def _payload(name="bar/foo", version="0.0.1", **extra):
    data = {
        "scope": "remote",
        "name": name,
        "version": version,
        "files": {"foo.js": "module.exports = 1;\n"},
    }
    data.update(extra)
    return data


def _client(handler, **kwargs) -> HttpScopeClient:
    return HttpScopeClient(
        "remote",
        "https://scope.example.com/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestHttpScopeClient:
    @pytest.mark.anyio
    async def test_get_pinned_version(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_payload(dependencies=["utils/pad@1.0.0"]))

        async with _client(handler, token="secret") as client:
            obj = await client.get(ComponentId("remote", "bar/foo", "0.0.1"))

        assert str(obj.id) == "remote/bar/foo@0.0.1"
        assert obj.dependencies == (ComponentId("remote", "utils/pad", "1.0.0"),)
        assert seen[0].url.path == "/components/bar/foo"
        assert seen[0].url.params["version"] == "0.0.1"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.anyio
    async def test_latest_omits_version(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "version" not in request.url.params
            return httpx.Response(200, json=_payload(version="0.0.3"))

        async with _client(handler) as client:
            obj = await client.get(ComponentId("remote", "bar/foo"))

        assert obj.id.version == "0.0.3"

    @pytest.mark.anyio
    async def test_404_is_none(self):
        async with _client(lambda r: httpx.Response(404)) as client:
            assert await client.get(ComponentId("remote", "ghost", "1.0.0")) is None

    @pytest.mark.anyio
    async def test_4xx_is_network_error(self):
        async with _client(lambda r: httpx.Response(403)) as client:
            with pytest.raises(NetworkError, match="rejected"):
                await client.get(ComponentId("remote", "bar/foo", "0.0.1"))

    @pytest.mark.anyio
    async def test_retries_5xx_then_succeeds(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json=_payload())])

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            async with _client(lambda r: next(responses)) as client:
                obj = await client.get(ComponentId("remote", "bar/foo", "0.0.1"))

        assert obj is not None
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.anyio
    async def test_exhausted_retries(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            async with _client(handler, max_retries=3) as client:
                with pytest.raises(NetworkError, match="unreachable after 3 attempts"):
                    await client.get(ComponentId("remote", "bar/foo", "0.0.1"))

        assert calls == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.anyio
    async def test_malformed_payload(self):
        async with _client(lambda r: httpx.Response(200, json={"name": "bar/foo"})) as client:
            with pytest.raises(NetworkError, match="malformed"):
                await client.get(ComponentId("remote", "bar/foo", "0.0.1"))

    @pytest.mark.anyio
    async def test_mismatched_answer(self):
        async with _client(lambda r: httpx.Response(200, json=_payload(version="9.9.9"))) as c:
            with pytest.raises(NetworkError, match="answered"):
                await c.get(ComponentId("remote", "bar/foo", "0.0.1"))


class TestDirectoryScopeStore:
    @pytest.mark.anyio
    async def test_latest_version(self, make_scope, make_object):
        scope = make_scope("remote")
        for version in ("0.0.2", "0.0.10", "0.0.9"):
            scope.publish(make_object(f"remote/bar/foo@{version}"))

        obj = await scope.get(ComponentId("remote", "bar/foo"))

        assert obj.id.version == "0.0.10"
        assert scope.versions("bar/foo") == ["0.0.2", "0.0.9", "0.0.10"]

    @pytest.mark.anyio
    async def test_missing_component(self, make_scope):
        scope = make_scope("remote")
        assert await scope.get(ComponentId("remote", "ghost")) is None
        assert await scope.get(ComponentId("remote", "ghost", "1.0.0")) is None

    @pytest.mark.anyio
    async def test_unreachable_root(self, tmp_path):
        scope = DirectoryScopeStore("remote", tmp_path / "nowhere")
        with pytest.raises(NetworkError, match="not reachable"):
            await scope.get(ComponentId("remote", "foo"))

    @pytest.mark.anyio
    async def test_namespaced_dependency_stays_in_scope(self, make_scope):
        scope = make_scope("remote")
        (scope.root / "bar/foo").mkdir(parents=True)
        (scope.root / "bar/foo/0.0.1.json").write_text(
            json.dumps(_payload(dependencies=["bar/foo2@0.0.1"]))
        )
        registry = RemoteRegistry.from_stores([scope])

        obj = await registry.session("remote").get(ComponentId("remote", "bar/foo", "0.0.1"))

        assert obj.dependencies == (ComponentId("remote", "bar/foo2", "0.0.1"),)

    @pytest.mark.anyio
    async def test_malformed_object(self, make_scope):
        scope = make_scope("remote")
        (scope.root / "foo").mkdir()
        (scope.root / "foo" / "1.0.0.json").write_text("{}")

        with pytest.raises(NetworkError, match="malformed"):
            await scope.get(ComponentId("remote", "foo", "1.0.0"))


class TestPayload:
    def test_bare_dependencies_use_component_scope(self):
        payload = ComponentPayload.model_validate(
            _payload(dependencies=["pad@1.0.0", "other/thing@2.0.0"], tester="envs/mocha@1.0.0")
        )
        obj = payload.to_object()

        assert obj.dependencies == (
            ComponentId("remote", "pad", "1.0.0"),
            ComponentId("other", "thing", "2.0.0"),
        )
        assert obj.tester == ComponentId("envs", "mocha", "1.0.0")

    def test_unknown_fields_ignored(self):
        payload = ComponentPayload.model_validate(_payload(log=["x"]))
        assert payload.name == "bar/foo"


class TestRemoteRegistry:
    @pytest.mark.anyio
    async def test_builds_clients_by_url(self, tmp_path):
        registry = RemoteRegistry(
            {
                "web": "https://scope.example.com",
                "local": (tmp_path / "local").as_uri(),
                "relative": "scopes/relative",
            },
            Settings(),
            base_dir=tmp_path,
        )
        async with registry:
            assert isinstance(registry.session("web"), HttpScopeClient)
            local = registry.session("local")
            assert isinstance(local, DirectoryScopeStore)
            assert local.root == tmp_path / "local"
            assert registry.session("relative").root == tmp_path / "scopes/relative"
            assert registry.session("web") is registry.session("web")
            assert local.known_scopes == {"web", "local", "relative"}

    def test_unknown_scope(self):
        registry = RemoteRegistry({})
        assert not registry.knows("remote")
        with pytest.raises(KeyError):
            registry.session("remote")

    def test_unsupported_url(self):
        registry = RemoteRegistry({"remote": "ftp://scope.example.com"})
        with pytest.raises(ConfigurationError):
            registry.session("remote")
