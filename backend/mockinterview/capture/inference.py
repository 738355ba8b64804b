from __future__ import annotations

import json
import logging

import httpx

from core.config import HUME_API_KEY, HUME_BASE_URL
from mockinterview.errors import InferenceUnavailable

logger = logging.getLogger("mockinterview.capture.inference")

FACE_MODELS = {"models": {"face": {}}}


def extract_emotions(payload) -> list[dict]:
    """
    Pulls the emotion scores of the first face in the first file prediction.
    Any shape mismatch yields an empty list.
    """
    try:
        face = payload[0]["results"]["predictions"][0]["models"]["face"]
        emotions = face["grouped_predictions"][0]["predictions"][0]["emotions"]
    except (KeyError, IndexError, TypeError):
        return []

    result = []
    for item in emotions or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        try:
            score = float(item.get("score"))
        except (TypeError, ValueError):
            continue
        if name:
            result.append({"name": name, "score": score})
    return result


class HumeBatchClient:
    """Batch job client for facial expression inference."""

    def __init__(
        self,
        api_key: str = HUME_API_KEY,
        base_url: str = HUME_BASE_URL,
        timeout_sec: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout_sec = timeout_sec
        self._transport = transport

    def _headers(self) -> dict:
        return {"X-Hume-Api-Key": self.api_key or ""}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
            response = await client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                **kwargs,
            )
        if response.status_code < 200 or response.status_code >= 300:
            raise InferenceUnavailable(f"{method} {path} returned {response.status_code}")
        return response

    @staticmethod
    def _json(response: httpx.Response):
        try:
            return response.json()
        except ValueError as exc:
            raise InferenceUnavailable("malformed inference response") from exc

    async def submit_job(self, image: bytes) -> str:
        response = await self._request(
            "POST",
            "/batch/jobs",
            files={"file": ("frame.jpg", image, "image/jpeg")},
            data={"json": json.dumps(FACE_MODELS)},
        )
        data = self._json(response)
        job_id = str((data or {}).get("job_id") or "").strip() if isinstance(data, dict) else ""
        if not job_id:
            raise InferenceUnavailable("inference job was not created")
        return job_id

    async def job_status(self, job_id: str) -> str:
        response = await self._request("GET", f"/batch/jobs/{job_id}")
        data = self._json(response)
        if not isinstance(data, dict):
            return ""
        state = data.get("state") or {}
        status = state.get("status") if isinstance(state, dict) else None
        return str(status or data.get("status") or "")

    async def fetch_predictions(self, job_id: str):
        response = await self._request("GET", f"/batch/jobs/{job_id}/predictions")
        return self._json(response)
