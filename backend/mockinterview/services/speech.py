from __future__ import annotations

from dataclasses import dataclass
import logging
from xml.sax.saxutils import escape

import httpx
from openai import AsyncOpenAI

from core.config import AZURE_TTS_KEY, AZURE_TTS_REGION, OPENAI_API_KEY, OPENAI_BASE_URL, WHISPER_MODEL
from mockinterview.models import RoundKind

logger = logging.getLogger("mockinterview.services.speech")

OUTPUT_FORMAT = "audio-24khz-48kbitrate-mono-mp3"


@dataclass(frozen=True)
class VoiceProfile:
    name: str
    language: str = "en-US"
    style: str = "professional"
    rate: str = "1.0"
    pitch: str = "0%"


VOICES = {
    RoundKind.TECHNICAL: VoiceProfile(name="en-US-DavisNeural", style="professional"),
    RoundKind.CORE: VoiceProfile(name="en-US-AriaNeural", style="friendly"),
    RoundKind.HR: VoiceProfile(name="en-US-JennyNeural", style="warm", rate="0.9", pitch="5%"),
}


def build_ssml(text: str, voice: VoiceProfile) -> str:
    return (
        f'<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" '
        f'xmlns:mstts="https://www.w3.org/2001/mstts" xml:lang="{voice.language}">'
        f'<voice name="{voice.name}">'
        f'<prosody rate="{voice.rate}" pitch="{voice.pitch}">'
        f'<mstts:express-as style="{voice.style}" styledegree="0.8">{escape(text)}</mstts:express-as>'
        "</prosody></voice></speak>"
    )


class SpeechRenderer:
    """Azure text-to-speech over REST. Returns MP3 bytes."""

    def __init__(
        self,
        api_key: str = AZURE_TTS_KEY,
        region: str = AZURE_TTS_REGION,
        timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.region = region
        self.timeout_sec = timeout_sec
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def render(self, text: str, round_kind: RoundKind) -> bytes:
        text = str(text or "").strip()
        if not text:
            return b""
        if not self.enabled:
            raise RuntimeError("AZURE_TTS_KEY is not configured")

        url = f"https://{self.region}.tts.speech.microsoft.com/cognitiveservices/v1"
        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
            response = await client.post(
                url,
                content=build_ssml(text, VOICES[round_kind]).encode("utf-8"),
                headers={
                    "Ocp-Apim-Subscription-Key": self.api_key,
                    "Content-Type": "application/ssml+xml",
                    "X-Microsoft-OutputFormat": OUTPUT_FORMAT,
                    "User-Agent": "mockinterview",
                },
            )
        if response.status_code != 200:
            raise RuntimeError(f"TTS error {response.status_code}: {response.text[:200]}")
        return response.content


class Transcriber:
    """Whisper transcription through the OpenAI audio API."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str = WHISPER_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
        return self._client

    async def transcribe(self, audio: bytes, filename: str = "recording.webm") -> str:
        if not audio:
            return ""
        result = await self.client.audio.transcriptions.create(
            model=self.model,
            file=(filename, audio),
        )
        return str(getattr(result, "text", "") or "").strip()
