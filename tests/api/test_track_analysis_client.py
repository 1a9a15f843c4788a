"""
Tests for TrackAnalysisClient (RapidAPI).
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from soundprint.api.exceptions import ProviderNotConfiguredError, TransportError
from soundprint.api.retry import HTTPResult
from soundprint.api.track_analysis_client import TrackAnalysisClient


@pytest.fixture
def client():
    return TrackAnalysisClient(api_key="secret", api_host="track-analysis.p.rapidapi.com")


def test_base_url_uses_host(client):
    assert client.base_url == "https://track-analysis.p.rapidapi.com"
    assert client.is_configured


@pytest.mark.parametrize("key,host", [(None, "host"), ("key", None), ("", "")])
def test_missing_credentials(key, host):
    assert TrackAnalysisClient(api_key=key, api_host=host).is_configured is False


@pytest.mark.asyncio
async def test_unconfigured_client_raises():
    client = TrackAnalysisClient(api_key=None, api_host=None)
    with pytest.raises(ProviderNotConfiguredError):
        await client.get_track_features("abc")


@pytest.mark.asyncio
async def test_sends_rapidapi_headers(client):
    result = HTTPResult(status=200, data={"tempo": 120, "energy": 55})
    with patch.object(client, "_request", AsyncMock(return_value=result)) as request:
        payload = await client.get_track_features("3n3Ppam7vgaVa1iaRUc9Lp")

    assert payload == {"tempo": 120, "energy": 55}
    assert request.await_args.args[0] == "pktx/spotify/3n3Ppam7vgaVa1iaRUc9Lp"
    headers = request.await_args.kwargs["headers"]
    assert headers["x-rapidapi-key"] == "secret"
    assert headers["x-rapidapi-host"] == "track-analysis.p.rapidapi.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("body,expected", [
    ({"features": {"key": "C"}, "analysis": {"key": "D"}}, {"key": "C"}),
    ({"analysis": {"key": "D"}}, {"key": "D"}),
    ({"key": "E"}, {"key": "E"}),
])
async def test_payload_selection(client, body, expected):
    with patch.object(client, "_request", AsyncMock(return_value=HTTPResult(status=200, data=body))):
        assert await client.get_track_features("abc") == expected


@pytest.mark.asyncio
async def test_error_status_returns_none(client):
    with patch.object(client, "_request", AsyncMock(return_value=HTTPResult(status=429))):
        assert await client.get_track_features("abc") is None


@pytest.mark.asyncio
async def test_non_object_body_returns_none(client):
    with patch.object(client, "_request", AsyncMock(return_value=HTTPResult(status=200, data=[1, 2]))):
        assert await client.get_track_features("abc") is None


@pytest.mark.asyncio
async def test_transport_failure_returns_none(client):
    error = TransportError("TrackAnalysis", 3, aiohttp.ServerTimeoutError())
    with patch.object(client, "_request", AsyncMock(side_effect=error)):
        assert await client.get_track_features("abc") is None
