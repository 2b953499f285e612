"""HTTP calls made by the playback session controller.

Play commands go to our own server (the proxy); playback state and the
device list are read straight from the Web API with the session token.
"""

import httpx

from listening_player.models import Device, PlaybackState
from listening_player.player.state import PlaybackCommand

DEFAULT_API_BASE_URL = "https://api.spotify.com/v1"


class PlayerApiClient:
    """Thin wrapper over a shared ``httpx.AsyncClient``.

    Network errors propagate as ``httpx.HTTPError``; callers decide what
    a failure means for the session.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        proxy_base_url: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
    ):
        self._client = client
        self._proxy_base_url = proxy_base_url.rstrip("/")
        self._api_base_url = api_base_url.rstrip("/")

    async def send_command(self, command: PlaybackCommand) -> httpx.Response:
        """POST the command to the proxy and return the raw response."""
        return await self._client.post(
            f"{self._proxy_base_url}{command.endpoint}",
            json=command.payload(),
            headers={"Accept": "application/json"},
        )

    async def fetch_current_playback(self, token: str) -> PlaybackState | None:
        """Current playback of the account; None on 204 No Content."""
        response = await self._client.get(
            f"{self._api_base_url}/me/player",
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return PlaybackState.model_validate(response.json())

    async def fetch_devices(self, token: str) -> list[Device]:
        response = await self._client.get(
            f"{self._api_base_url}/me/player/devices",
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return [Device.model_validate(d) for d in response.json().get("devices", [])]

    async def fetch_token(self) -> str:
        """Ask the proxy for a fresh access token of the logged-in user."""
        response = await self._client.get(
            f"{self._proxy_base_url}/auth/spotify/token",
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        return response.json()["access_token"]
