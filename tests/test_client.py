import httpx
import pytest

from graphwire.services.batch import BatchItem
from graphwire.services.client import GraphClient, _service_root
from graphwire.services.descriptor import RequestDescriptor
from graphwire.services.telemetry import RecordingTelemetry
from graphwire.settings import Settings
from tests.helpers import json_response


def make_client(handler, clock, **settings) -> GraphClient:
    config = Settings.model_validate(
        {"GRAPH_BASE_URL": "https://graph.test/v1.0", **settings}
    )
    return GraphClient.from_settings(
        config,
        telemetry=RecordingTelemetry(),
        transport=httpx.MockTransport(handler),
        sleep=clock.sleep,
        clock=clock,
    )


class TestGraphClient:
    @pytest.mark.asyncio
    async def test_settings_drive_headers_and_credentials(self, clock):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(200, {"id": "me"})

        client = make_client(
            handler,
            clock,
            GRAPH_ACCESS_TOKEN="secret",
            GRAPH_USER_AGENT="tests/1.0",
            GRAPH_CONSISTENCY_LEVEL="eventual",
        )
        async with client:
            envelope = await client.execute(client.descriptor("GET", "/me"))

        assert envelope.data == {"id": "me"}
        headers = seen[0].headers
        assert headers["authorization"] == "Bearer secret"
        assert headers["user-agent"] == "tests/1.0"
        assert headers["consistencylevel"] == "eventual"
        assert headers["prefer"] == "return=minimal"

    @pytest.mark.asyncio
    async def test_descriptor_uses_configured_retry_budget(self, clock):
        client = make_client(lambda r: json_response(200), clock, GRAPH_MAX_RETRIES="5")
        descriptor = client.descriptor(
            "GET", "/users/{id}", path_params={"id": "42"}
        )
        assert descriptor.max_retries == 5
        assert descriptor.path == "/users/42"
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_all_and_page_cap(self, clock):
        def handler(request):
            index = int(request.url.params.get("$skiptoken", "0"))
            return json_response(
                200,
                {
                    "value": [index],
                    "@odata.nextLink": f"https://graph.test/v1.0/users?$skiptoken={index + 1}",
                },
            )

        async with make_client(handler, clock, GRAPH_PAGE_CAP="3") as client:
            items = await client.fetch_all(RequestDescriptor("GET", "/users"))
            capped = await client.fetch_all(RequestDescriptor("GET", "/users"), page_cap=2)

        assert items == [0, 1, 2]
        assert capped == [0, 1]

    @pytest.mark.asyncio
    async def test_delta(self, clock):
        def handler(request):
            return json_response(
                200, {"value": [1], "@odata.deltaLink": "https://graph.test/d?t=1"}
            )

        async with make_client(handler, clock) as client:
            result = await client.delta(RequestDescriptor("GET", "/users/delta"))

        assert result.items == [1]
        assert result.delta_link == "https://graph.test/d?t=1"

    @pytest.mark.asyncio
    async def test_batch_respects_configured_limit(self, clock):
        async with make_client(
            lambda r: json_response(200), clock, GRAPH_BATCH_MAX_REQUESTS="1"
        ) as client:
            with pytest.raises(ValueError, match="Maximum 1"):
                await client.batch(
                    [
                        BatchItem(id="a", method="GET", url="/a"),
                        BatchItem(id="b", method="GET", url="/b"),
                    ]
                )

    @pytest.mark.asyncio
    async def test_metadata_is_fetched_once_per_version(self, clock):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(
                200, text="<edmx/>", headers={"content-type": "application/xml"}
            )

        async with make_client(handler, clock) as client:
            first = await client.get_metadata("v1.0")
            again = await client.get_metadata("v1.0")
            beta = await client.get_metadata("beta")

        assert first == again == beta == "<edmx/>"
        assert seen == [
            "https://graph.test/v1.0/$metadata",
            "https://graph.test/beta/$metadata",
        ]
        assert client.metadata_cache.get_stats().hits == 1

    @pytest.mark.asyncio
    async def test_close_releases_http_client(self, clock):
        client = make_client(lambda r: json_response(200), clock)
        first = client.executor
        await client.close()
        assert client.executor is not first
        await client.close()


@pytest.mark.parametrize(
    "base_url, root",
    [
        ("https://graph.microsoft.com/v1.0", "https://graph.microsoft.com"),
        ("https://graph.microsoft.com/beta/", "https://graph.microsoft.com"),
        ("https://vault.example.com", "https://vault.example.com"),
        ("https://api.example.com/tenant", "https://api.example.com/tenant"),
    ],
)
def test_service_root(base_url, root):
    assert _service_root(base_url) == root
