"""Tests for the Spotify OAuth session and player proxy."""

from __future__ import annotations

import httpx
import pytest
from conftest import FakeClock, form_of, json_of, make_settings

from dashboard.core.errors import NotFoundError, SpotifyAuthRequired
from dashboard.services.spotify import SpotifyService

TOKENS = {"access_token": "A1", "refresh_token": "R1", "expires_in": 3600}

PLAYING = {
    "is_playing": True,
    "progress_ms": 61000,
    "item": {
        "name": "Chanson",
        "artists": [{"name": "Alice"}, {"name": "Bob"}],
        "album": {"name": "Album", "images": [{"url": "https://i/640"}, {"url": "https://i/64"}]},
        "duration_ms": 215000,
        "uri": "spotify:track:1",
    },
}


@pytest.fixture
def wall_clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def spotify(upstream, wall_clock, clock) -> SpotifyService:
    upstream.on("POST", "/api/token", TOKENS)
    cfg = make_settings(spotify_client_id="cid", spotify_client_secret="secret")
    return SpotifyService(cfg, transport=upstream.transport, wall_clock=wall_clock, clock=clock)


def test_authorization_url_carries_user_as_state(spotify) -> None:
    url = spotify.authorization_url("kitchen")

    assert url.startswith("https://accounts.spotify.com/authorize?")
    assert "client_id=cid" in url
    assert "state=kitchen" in url
    assert "playlist-read-private" in url


@pytest.mark.asyncio
async def test_exchange_code_stores_session(spotify, upstream) -> None:
    result = await spotify.exchange_code("the-code", "kitchen")

    assert result == {"user": "kitchen", "expiresIn": 3600}
    assert spotify.is_authenticated("kitchen")
    assert not spotify.is_authenticated()
    token_request = upstream.calls("POST", "/api/token")[0]
    assert token_request.headers["Authorization"].startswith("Basic ")
    assert form_of(token_request) == {
        "grant_type": "authorization_code",
        "code": "the-code",
        "redirect_uri": "http://localhost:5000/api/spotify/callback",
    }


@pytest.mark.asyncio
async def test_status_without_session(spotify, upstream) -> None:
    assert await spotify.status() == {"authenticated": False, "isPlaying": False, "track": None}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_status_with_current_track(spotify, upstream) -> None:
    upstream.on("GET", "/v1/me/player/currently-playing", PLAYING)
    await spotify.exchange_code("code")

    status = await spotify.status()

    assert status["authenticated"] is True
    assert status["isPlaying"] is True
    assert status["track"] == {
        "name": "Chanson",
        "artists": "Alice, Bob",
        "album": "Album",
        "albumArt": "https://i/640",
        "duration": 215000,
        "uri": "spotify:track:1",
        "progress": 61000,
    }
    assert upstream.calls("GET", "/v1/me/player/currently-playing")[0].headers["Authorization"] == "Bearer A1"


@pytest.mark.asyncio
async def test_nothing_playing(spotify, upstream) -> None:
    upstream.on("GET", "/v1/me/player/currently-playing", httpx.Response(204))
    await spotify.exchange_code("code")

    assert await spotify.status() == {"authenticated": True, "isPlaying": False, "track": None}


@pytest.mark.asyncio
async def test_token_refreshed_before_expiry(spotify, upstream, wall_clock) -> None:
    upstream.on("POST", "/api/token", TOKENS, {"access_token": "A2", "expires_in": 3600})
    upstream.on("PUT", "/v1/me/player/pause", httpx.Response(204))
    await spotify.exchange_code("code")

    wall_clock.advance(3600 - 200)
    await spotify.pause()

    refresh = upstream.calls("POST", "/api/token")[1]
    assert form_of(refresh) == {"grant_type": "refresh_token", "refresh_token": "R1"}
    assert upstream.calls("PUT", "/v1/me/player/pause")[0].headers["Authorization"] == "Bearer A2"


@pytest.mark.asyncio
async def test_unauthorized_drops_session(spotify, upstream) -> None:
    upstream.on("POST", "/v1/me/player/next", (401, {"error": {"status": 401, "message": "Invalid access token"}}))
    await spotify.exchange_code("code")

    with pytest.raises(SpotifyAuthRequired, match="re-authorize"):
        await spotify.next_track()

    assert not spotify.is_authenticated()


@pytest.mark.asyncio
async def test_command_without_session(spotify) -> None:
    with pytest.raises(SpotifyAuthRequired):
        await spotify.pause()


@pytest.mark.asyncio
async def test_no_active_device(spotify, upstream) -> None:
    upstream.on("PUT", "/v1/me/player/play", (404, {"error": {"status": 404, "message": "Player command failed"}}))
    await spotify.exchange_code("code")

    with pytest.raises(NotFoundError, match="No active device"):
        await spotify.play(context_uri="spotify:playlist:1")


@pytest.mark.asyncio
async def test_transfer_and_playlists(spotify, upstream) -> None:
    upstream.on("PUT", "/v1/me/player", httpx.Response(204))
    upstream.on("GET", "/v1/me/playlists", {"items": [
        {"id": "p1", "name": "Dimanche", "images": [{"url": "https://i/p1"}],
         "tracks": {"total": 12}, "owner": {"display_name": "Famille"}, "uri": "spotify:playlist:p1"},
        None,
    ]})
    await spotify.exchange_code("code")

    assert await spotify.transfer("device-1", play=False) == {"deviceId": "device-1"}
    playlists = await spotify.playlists()

    assert json_of(upstream.calls("PUT", "/v1/me/player")[0]) == {"device_ids": ["device-1"], "play": False}
    assert upstream.calls("GET", "/v1/me/playlists")[0].url.params["limit"] == "50"
    assert playlists == {"playlists": [{
        "id": "p1", "name": "Dimanche", "image": "https://i/p1", "tracksCount": 12,
        "owner": "Famille", "uri": "spotify:playlist:p1",
    }]}
