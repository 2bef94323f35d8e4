import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from text_humanizer.config import settings
from text_humanizer.errors import ErrorCode
from text_humanizer.humanizer_client import HumanizationJob, HumanizerClient, JobStatus, count_words, strip_text
from text_humanizer.ledger import CreditLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    max_attempts: int = 10
    interval_sec: float = 3.0

    @classmethod
    def from_settings(cls) -> "PollPolicy":
        return cls(max_attempts=settings.poll_max_attempts, interval_sec=settings.poll_interval_sec)


@dataclass
class HumanizeResult:
    success: bool
    output: str | None = None
    error: str | None = None
    code: ErrorCode | None = None
    job: HumanizationJob | None = None
    ledger_reconciled: bool | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def fail(cls, code: ErrorCode, error: str, job: HumanizationJob | None = None, **details: Any) -> "HumanizeResult":
        return cls(success=False, error=error, code=code, job=job, details=details)

    def to_public(self) -> dict:
        if self.success:
            return {"success": True, "output": self.output}
        return {"success": False, "error": self.error}


class Orchestrator:
    """Credit-gated humanization: check balance, submit, poll, then charge on success only.

    The balance read in the credit check is not a lock. The charge at the end is
    an atomic conditional debit, so a concurrent spend can make it fail but can
    never push a balance below zero.
    """

    def __init__(
        self,
        ledger: CreditLedger,
        client: HumanizerClient,
        policy: PollPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.client = client
        self.policy = policy or PollPolicy.from_settings()
        self._sleep = sleep

    async def humanize(self, text: str, user_id: str | None) -> HumanizeResult:
        if not text or not strip_text(text):
            return HumanizeResult.fail(ErrorCode.EMPTY_INPUT, "Please enter some text to humanize")
        if not self.client.is_configured:
            return HumanizeResult.fail(ErrorCode.NOT_CONFIGURED, "Humanization API key not configured")
        if not user_id:
            return HumanizeResult.fail(ErrorCode.NOT_AUTHENTICATED, "User not authenticated")

        word_count = count_words(text)
        balance = await asyncio.to_thread(self.ledger.get_balance, user_id)
        if balance < word_count:
            return HumanizeResult.fail(
                ErrorCode.INSUFFICIENT_CREDITS,
                f"Insufficient credits. You need {word_count} credits but have {balance} available.",
                required=word_count,
                available=balance,
            )

        job = HumanizationJob(input_text=text, word_count=word_count)
        submitted = await self.client.submit(job)
        if not submitted.success:
            job.status = JobStatus.FAILED
            logger.warning("submit failed job=%s user=%s: %s", job.id, user_id, submitted.error)
            return HumanizeResult.fail(ErrorCode.SUBMIT_FAILED, submitted.error or "Submit failed", job=job)

        job.external_id = submitted.external_id
        job.status = JobStatus.SUBMITTED
        logger.info("job submitted job=%s external=%s words=%d", job.id, job.external_id, word_count)

        result = await self._poll(job, user_id)
        if result is not None:
            return result

        return await self._reconcile(job, user_id)

    async def _poll(self, job: HumanizationJob, user_id: str) -> HumanizeResult | None:
        job.status = JobStatus.POLLING
        for attempt in range(1, self.policy.max_attempts + 1):
            await self._sleep(self.policy.interval_sec)
            job.attempts = attempt
            fetched = await self.client.fetch(job.external_id)
            if not fetched.success:
                job.status = JobStatus.FAILED
                # the provider may still finish and bill this job; nothing is charged here
                logger.warning(
                    "poll failed job=%s external=%s user=%s attempt=%d: %s",
                    job.id,
                    job.external_id,
                    user_id,
                    attempt,
                    fetched.error,
                )
                return HumanizeResult.fail(ErrorCode.POLL_FAILED, fetched.error or "Retrieve failed", job=job)
            if fetched.output:
                job.output_text = fetched.output
                job.status = JobStatus.SUCCEEDED
                logger.info("job succeeded job=%s attempts=%d", job.id, attempt)
                return None

        job.status = JobStatus.TIMED_OUT
        logger.warning("job timed out job=%s external=%s attempts=%d", job.id, job.external_id, job.attempts)
        return HumanizeResult.fail(ErrorCode.TIMEOUT, "Timed out waiting for humanized text.", job=job)

    async def _reconcile(self, job: HumanizationJob, user_id: str) -> HumanizeResult:
        write = await asyncio.to_thread(self.ledger.debit, user_id, job.word_count, job_id=job.id)
        if not write.ok:
            logger.error(
                "%s user=%s job=%s words=%d reason=%s",
                ErrorCode.LEDGER_WRITE_FAILED.value,
                user_id,
                job.id,
                job.word_count,
                write.reason,
            )
        return HumanizeResult(
            success=True,
            output=job.output_text,
            job=job,
            ledger_reconciled=write.ok,
        )
