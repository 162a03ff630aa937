"""
HTTP client for the Roast Studio API

Every viewer process (host or follower) talks to the service only through
this client, so it runs the same against a remote server or, in tests, an
in-process app mounted with httpx.ASGITransport.
"""

import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

# Reported for timeouts and connection failures
UNREACHABLE_STATUS = 503


class StudioAPIError(Exception):
    """Non-success response from the service"""

    def __init__(self, status_code: int, detail: Any = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class HostLeaseLost(StudioAPIError):
    """A snapshot write was rejected because another client holds the lease"""


class StudioClient:
    """Async client over the /api routes"""

    def __init__(
        self,
        base_url: str = "http://localhost:8001",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            raise StudioAPIError(UNREACHABLE_STATUS, str(e) or type(e).__name__) from e
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise StudioAPIError(response.status_code, detail)
        if not response.content:
            return None
        return response.json()

    # ---- rounds ----

    async def get_round_state(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/rounds/state")

    async def tick(self) -> Dict[str, Any]:
        return await self._request("POST", "/api/rounds/tick")

    async def complete_round(self, session_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/rounds/complete", json={"sessionId": session_id})

    # ---- sessions and messages ----

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/sessions/{session_id}")

    async def get_active_session(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/api/sessions/active")

    async def list_messages(self, session_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/api/sessions/{session_id}/messages")

    async def submit_message(
        self,
        session_id: str,
        transcript: Optional[str] = None,
        audio: Optional[bytes] = None,
        filename: str = "roast.webm",
        content_type: str = "audio/webm",
    ) -> Dict[str, Any]:
        data = {"transcript": transcript} if transcript else {}
        files = {"audio": (filename, audio, content_type)} if audio else None
        return await self._request("POST", f"/api/sessions/{session_id}/messages", data=data, files=files)

    async def mark_used(self, message_id: str) -> bool:
        """True when this call consumed the message, False when it was not allowed"""
        try:
            await self._request("POST", f"/api/messages/{message_id}/used")
        except StudioAPIError as e:
            if e.status_code == 409:
                return False
            raise
        return True

    async def record_exchange(self, session_id: str, **fields) -> Dict[str, Any]:
        return await self._request("POST", f"/api/sessions/{session_id}/exchanges", json=fields)

    async def list_exchanges(self, session_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/api/sessions/{session_id}/exchanges")

    # ---- playback ----

    async def claim_host(self, session_id: str, host_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/playback/{session_id}/claim", json={"host_id": host_id})

    async def release_host(self, session_id: str, host_id: str) -> bool:
        result = await self._request("POST", f"/api/playback/{session_id}/release", json={"host_id": host_id})
        return bool(result and result.get("released"))

    async def get_snapshot(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._request("GET", f"/api/playback/{session_id}")
        except StudioAPIError as e:
            if e.status_code == 404:
                return None
            raise

    async def update_snapshot(self, session_id: str, host_id: str, **fields) -> Dict[str, Any]:
        """Write the snapshot; raises HostLeaseLost when the lease moved to another client"""
        try:
            return await self._request("PUT", f"/api/playback/{session_id}", json={"host_id": host_id, **fields})
        except StudioAPIError as e:
            if e.status_code == 409:
                raise HostLeaseLost(e.status_code, e.detail) from e
            raise

    async def send_dialogue(self, session_id: str, speaker: str, text: str, audio_url: Optional[str] = None):
        return await self._request(
            "POST",
            f"/api/playback/{session_id}/dialogue",
            json={"speaker": speaker, "text": text, "audio_url": audio_url},
        )

    # ---- studio collaborators ----

    async def generate_response(self, persona_name: str, user_roast: str, host_type: str) -> str:
        result = await self._request(
            "POST",
            "/api/studio/generate-roast",
            json={"persona_name": persona_name, "user_roast": user_roast, "host_type": host_type},
        )
        return result["response"]

    async def synthesize(self, text: str, voice: str) -> bytes:
        result = await self._request("POST", "/api/studio/text-to-speech", json={"text": text, "voice": voice})
        return base64.b64decode(result["audio_content"])

    async def upload_audio(self, data: bytes, filename: str = "clip.mp3", content_type: str = "audio/mpeg") -> str:
        result = await self._request("POST", "/api/studio/audio", files={"audio": (filename, data, content_type)})
        return result["audio_url"]

    async def fetch_audio(self, url: str) -> bytes:
        """Download a clip (absolute url or a path on this service)"""
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise StudioAPIError(UNREACHABLE_STATUS, str(e) or type(e).__name__) from e
        if response.status_code >= 400:
            raise StudioAPIError(response.status_code, response.text)
        return response.content
