import asyncio
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


class ScriptedCompletion:
    """Completion stand-in that replays canned replies and records each call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def __call__(self, messages, temperature=0.7, max_tokens=200):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


class StaticFrames:
    def __init__(self, frame: bytes | None = b"\xff\xd8jpeg", live: bool = True):
        self.frame = frame
        self._live = live

    @property
    def live(self) -> bool:
        return self._live

    async def grab_jpeg(self):
        return self.frame


class FakeInference:
    """
    Inference job stand-in. Each submitted job gets the next entry of `jobs`:
    a dict with `statuses` (sequence reported by job_status, last one repeats),
    `predictions` (sequence returned by fetch_predictions) and an optional
    `gate` event that job_status waits on before answering.
    """

    def __init__(self, *jobs):
        self.jobs = list(jobs)
        self.submitted: list[str] = []
        self.status_calls: dict[str, int] = {}
        self.fetch_calls: dict[str, int] = {}
        self._jobs: dict[str, dict] = {}

    async def submit_job(self, image: bytes) -> str:
        job_id = f"job-{len(self.submitted) + 1}"
        self.submitted.append(job_id)
        job = self.jobs.pop(0) if self.jobs else {"statuses": ["COMPLETED"], "predictions": [[]]}
        if isinstance(job, Exception):
            raise job
        self._jobs[job_id] = job
        return job_id

    async def job_status(self, job_id: str) -> str:
        job = self._jobs[job_id]
        gate = job.get("gate")
        if gate is not None:
            await gate.wait()
        count = self.status_calls.get(job_id, 0)
        self.status_calls[job_id] = count + 1
        statuses = job["statuses"]
        return statuses[min(count, len(statuses) - 1)]

    async def fetch_predictions(self, job_id: str):
        job = self._jobs[job_id]
        count = self.fetch_calls.get(job_id, 0)
        self.fetch_calls[job_id] = count + 1
        predictions = job["predictions"]
        item = predictions[min(count, len(predictions) - 1)]
        if isinstance(item, Exception):
            raise item
        return item


def hume_payload(*emotions: tuple[str, float]) -> list:
    return [
        {
            "results": {
                "predictions": [
                    {
                        "models": {
                            "face": {
                                "grouped_predictions": [
                                    {
                                        "predictions": [
                                            {"emotions": [{"name": n, "score": s} for n, s in emotions]}
                                        ]
                                    }
                                ]
                            }
                        }
                    }
                ]
            }
        }
    ]


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fast_sleep(sleeps):
    async def _sleep(seconds: float):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep
