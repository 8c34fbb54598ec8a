from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import httpx

from ..core.config import Settings, settings
from ..core.errors import NotConfiguredError, NotFoundError, SpotifyAuthRequired, UpstreamAuthError, UpstreamError
from ..core.log import ThrottledLogger
from ..drivers.upstream import UpstreamClient, decode_json

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
ACCOUNTS_API = "https://accounts.spotify.com"
WEB_API = "https://api.spotify.com/v1"

SCOPES = (
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
)

REFRESH_MARGIN_S = 5 * 60
DEFAULT_USER = "default"
NO_DEVICE = "No active device found"


@dataclass
class SpotifySession:
    access_token: str
    refresh_token: Optional[str]
    expires_at: float  # wall clock seconds


def _album_art(album: dict[str, Any]) -> Optional[str]:
    images = album.get("images") or []
    # largest first
    return images[0].get("url") if images else None


def track_summary(track: dict[str, Any]) -> dict[str, Any]:
    album = track.get("album") or {}
    return {
        "name": track.get("name"),
        "artists": ", ".join(a.get("name", "") for a in track.get("artists") or []),
        "album": album.get("name"),
        "albumArt": _album_art(album),
        "duration": track.get("duration_ms"),
        "uri": track.get("uri"),
    }


class SpotifyService:
    """Playback proxy holding OAuth tokens server-side, one session per user id.

    Sessions live in memory only. A 401/403 from Spotify drops the user's
    session so the dashboard asks for a new authorization.
    """

    def __init__(
        self,
        cfg: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        wall_clock: Callable[[], float] = time.time,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._wall_clock = wall_clock
        self._sessions: dict[str, SpotifySession] = {}
        self._log = ThrottledLogger(logger, cfg.error_log_interval_s, clock)
        self._accounts = UpstreamClient(
            "Spotify accounts", base_url=ACCOUNTS_API, timeout=cfg.spotify_timeout_s,
            transport=transport, error_log=self._log,
        )
        self._api = UpstreamClient(
            "Spotify", base_url=WEB_API, timeout=cfg.spotify_timeout_s,
            transport=transport, error_log=self._log,
        )

    async def aclose(self) -> None:
        await self._accounts.aclose()
        await self._api.aclose()

    # --- OAuth ---

    def is_authenticated(self, user: str = DEFAULT_USER) -> bool:
        return user in self._sessions

    def authorization_url(self, user: str = DEFAULT_USER) -> str:
        if not self._cfg.spotify_client_id:
            raise NotConfiguredError("Spotify Client ID not configured")
        params = {
            "client_id": self._cfg.spotify_client_id,
            "response_type": "code",
            "redirect_uri": self._cfg.spotify_redirect_uri,
            "scope": " ".join(SCOPES),
            "state": user,
            "show_dialog": "false",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def _credentials(self) -> tuple[str, str]:
        if not self._cfg.spotify_client_id or not self._cfg.spotify_client_secret:
            raise NotConfiguredError("Spotify Client ID and Secret not configured")
        return self._cfg.spotify_client_id, self._cfg.spotify_client_secret

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        response = await self._accounts.request("POST", "/api/token", data=form, auth=self._credentials())
        return decode_json(self._accounts.name, response) or {}

    def _store_tokens(self, user: str, payload: dict[str, Any], previous_refresh: Optional[str] = None) -> SpotifySession:
        session = SpotifySession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or previous_refresh,
            expires_at=self._wall_clock() + float(payload.get("expires_in") or 3600),
        )
        self._sessions[user] = session
        return session

    async def exchange_code(self, code: str, user: str = DEFAULT_USER) -> dict[str, Any]:
        payload = await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._cfg.spotify_redirect_uri,
        })
        if not payload.get("access_token"):
            raise UpstreamError("Spotify token response has no access_token")
        self._store_tokens(user, payload)
        logger.info("Spotify session stored for user=%s", user)
        return {"user": user, "expiresIn": payload.get("expires_in")}

    async def _valid_token(self, user: str) -> str:
        session = self._sessions.get(user)
        if session is None:
            raise SpotifyAuthRequired("Not authenticated with Spotify. Please authorize first.")
        if self._wall_clock() > session.expires_at - REFRESH_MARGIN_S:
            if not session.refresh_token:
                self.logout(user)
                raise SpotifyAuthRequired("Spotify session expired. Please re-authorize.")
            try:
                payload = await self._token_request({
                    "grant_type": "refresh_token",
                    "refresh_token": session.refresh_token,
                })
            except UpstreamAuthError as exc:
                self.logout(user)
                raise SpotifyAuthRequired("Authentication expired. Please re-authorize.") from exc
            session = self._store_tokens(user, payload, session.refresh_token)
            logger.debug("Spotify token refreshed for user=%s", user)
        return session.access_token

    def logout(self, user: str = DEFAULT_USER) -> None:
        self._sessions.pop(user, None)

    async def _call(self, method: str, path: str, user: str, **kwargs: Any) -> httpx.Response:
        token = await self._valid_token(user)
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return await self._api.request(method, path, headers=headers, **kwargs)
        except UpstreamAuthError as exc:
            self.logout(user)
            raise SpotifyAuthRequired("Authentication expired. Please re-authorize.") from exc

    async def _command(self, method: str, path: str, user: str, **kwargs: Any) -> dict[str, Any]:
        try:
            await self._call(method, path, user, **kwargs)
        except UpstreamError as exc:
            if exc.status == 404:
                raise NotFoundError(NO_DEVICE) from exc
            raise
        return {}

    # --- player ---

    async def currently_playing(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        response = await self._call("GET", "/me/player/currently-playing", user)
        payload = decode_json(self._api.name, response)
        if not payload or not payload.get("item"):
            return {"isPlaying": False, "track": None}
        track = track_summary(payload["item"])
        track["progress"] = payload.get("progress_ms") or 0
        return {"isPlaying": bool(payload.get("is_playing")), "track": track}

    async def status(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        if not self.is_authenticated(user):
            return {"authenticated": False, "isPlaying": False, "track": None}
        playing = await self.currently_playing(user)
        return {"authenticated": True, **playing}

    async def play(self, user: str = DEFAULT_USER, context_uri: Optional[str] = None,
                   uris: Optional[list[str]] = None, device_id: Optional[str] = None) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if context_uri:
            body["context_uri"] = context_uri
        if uris:
            body["uris"] = uris
        params = {"device_id": device_id} if device_id else None
        return await self._command("PUT", "/me/player/play", user, json=body or None, params=params)

    async def pause(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        return await self._command("PUT", "/me/player/pause", user)

    async def next_track(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        return await self._command("POST", "/me/player/next", user)

    async def previous_track(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        return await self._command("POST", "/me/player/previous", user)

    async def devices(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        payload = decode_json(self._api.name, await self._call("GET", "/me/player/devices", user)) or {}
        return {
            "devices": [
                {
                    "id": d.get("id"),
                    "name": d.get("name"),
                    "type": d.get("type"),
                    "isActive": bool(d.get("is_active")),
                    "volume": d.get("volume_percent"),
                }
                for d in payload.get("devices") or []
            ]
        }

    async def transfer(self, device_id: str, play: bool = True, user: str = DEFAULT_USER) -> dict[str, Any]:
        await self._command("PUT", "/me/player", user, json={"device_ids": [device_id], "play": play})
        return {"deviceId": device_id}

    async def playlists(self, user: str = DEFAULT_USER) -> dict[str, Any]:
        response = await self._call("GET", "/me/playlists", user, params={"limit": 50})
        payload = decode_json(self._api.name, response) or {}
        return {
            "playlists": [
                {
                    "id": p.get("id"),
                    "name": p.get("name"),
                    "image": ((p.get("images") or [{}])[0] or {}).get("url"),
                    "tracksCount": (p.get("tracks") or {}).get("total", 0),
                    "owner": (p.get("owner") or {}).get("display_name"),
                    "uri": p.get("uri"),
                }
                for p in payload.get("items") or []
                if p
            ]
        }

    async def playlist_tracks(self, playlist_id: str, user: str = DEFAULT_USER) -> dict[str, Any]:
        response = await self._call("GET", f"/playlists/{playlist_id}/tracks", user, params={"limit": 100})
        payload = decode_json(self._api.name, response) or {}
        return {
            "tracks": [
                track_summary(item["track"])
                for item in payload.get("items") or []
                if item and item.get("track")
            ]
        }
