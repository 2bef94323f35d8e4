import json
import re
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

import httpx

from text_humanizer.config import settings


class JobStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


# whitespace as matched by JavaScript \s and String.prototype.trim
_WS = r"[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]"
_WS_RUN = re.compile(_WS + "+")
_WS_EDGES = re.compile(rf"\A{_WS}+|{_WS}+\Z")


def strip_text(text: str) -> str:
    return _WS_EDGES.sub("", text)


def count_words(text: str) -> int:
    return len(_WS_RUN.split(strip_text(text)))


@dataclass
class HumanizationJob:
    input_text: str
    id: str = field(default_factory=lambda: str(uuid4()))
    word_count: int = 0
    status: JobStatus = JobStatus.PENDING
    external_id: str | None = None
    output_text: str | None = None
    attempts: int = 0

    def __post_init__(self) -> None:
        if not self.word_count:
            self.word_count = count_words(self.input_text)


@dataclass
class SubmitOutcome:
    success: bool
    external_id: str | None = None
    error: str | None = None


@dataclass
class FetchOutcome:
    success: bool
    output: str | None = None
    error: str | None = None


class HumanizerClient:
    """Thin async wrapper over the submit/document endpoints of the humanization API.

    Nothing raises past this boundary: HTTP and transport failures come back as
    unsuccessful outcomes carrying a readable error string.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self.api_key = settings.humanizer_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.humanizer_base_url).rstrip("/")
        self.timeout_sec = settings.http_timeout_sec if timeout_sec is None else timeout_sec
        self._client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "apikey": self.api_key,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: dict) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return await self._client.post(url, headers=self._headers(), json=body)
        async with httpx.AsyncClient(timeout=self.timeout_sec) as client:
            return await client.post(url, headers=self._headers(), json=body)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            return json.dumps(response.json())
        except ValueError:
            return response.text or "No error details available"

    def submission_body(self, job: HumanizationJob) -> dict:
        return {
            "id": job.id,
            "content": job.input_text,
            "readability": settings.humanizer_readability,
            "purpose": settings.humanizer_purpose,
            "strength": settings.humanizer_strength,
            "model": settings.humanizer_model,
            "user_agent": settings.humanizer_user_agent,
            "document_type": settings.humanizer_document_type,
            "url": settings.humanizer_document_url,
        }

    async def submit(self, job: HumanizationJob) -> SubmitOutcome:
        try:
            r = await self._post("/submit", self.submission_body(job))
        except httpx.HTTPError as exc:
            return SubmitOutcome(success=False, error=str(exc) or "Network error")

        if not r.is_success:
            return SubmitOutcome(success=False, error=f"Submit failed ({r.status_code}): {self._error_detail(r)}")

        try:
            data = r.json()
        except ValueError:
            data = None
        external_id = data.get("id") if isinstance(data, dict) else None
        if not external_id:
            return SubmitOutcome(success=False, error=f"Submit failed ({r.status_code}): missing document id")
        return SubmitOutcome(success=True, external_id=str(external_id))

    async def fetch(self, external_id: str) -> FetchOutcome:
        try:
            r = await self._post("/document", {"id": external_id})
        except httpx.HTTPError as exc:
            return FetchOutcome(success=False, error=str(exc) or "Network error")

        if not r.is_success:
            return FetchOutcome(success=False, error=f"Retrieve failed ({r.status_code}): {self._error_detail(r)}")

        try:
            data = r.json()
        except ValueError:
            return FetchOutcome(success=False, error=f"Retrieve failed ({r.status_code}): {self._error_detail(r)}")
        output = data.get("output") if isinstance(data, dict) else None
        return FetchOutcome(success=True, output=output or None)
