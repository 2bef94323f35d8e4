import asyncio

from fakes import FakeClient, RecordingSleep

from text_humanizer import config
from text_humanizer.humanizer_client import JobStatus
from text_humanizer.ledger import CreditLedger, LedgerWrite
from text_humanizer.orchestrator import ErrorCode, Orchestrator, PollPolicy


def _setup(user_id: str, balance: int) -> CreditLedger:
    ledger = CreditLedger()
    ledger.get_balance(user_id)
    ledger.adjust(user_id, balance)
    return ledger


def _run(orchestrator: Orchestrator, text: str, user_id: str | None = "u-1"):
    return asyncio.run(orchestrator.humanize(text, user_id))


def test_success_on_first_poll_charges_word_count() -> None:
    ledger = _setup("u-1", 500)
    client = FakeClient(polls=["humanized a b c"])
    sleep = RecordingSleep()

    result = _run(Orchestrator(ledger, client, PollPolicy(10, 3.0), sleep=sleep), "a b c")

    assert result.success
    assert result.to_public() == {"success": True, "output": "humanized a b c"}
    assert result.ledger_reconciled is True
    assert result.job.status is JobStatus.SUCCEEDED
    assert result.job.attempts == 1
    assert sleep.calls == [3.0]
    assert ledger.get_balance("u-1") == 497


def test_success_on_later_attempt() -> None:
    ledger = _setup("u-1", 100)
    client = FakeClient(polls=[None, None, None, "done"])
    sleep = RecordingSleep()

    result = _run(Orchestrator(ledger, client, PollPolicy(10, 3.0), sleep=sleep), "one two three four five")

    assert result.success
    assert result.job.attempts == 4
    assert len(sleep.calls) == 4
    assert ledger.get_balance("u-1") == 95


def test_success_on_last_allowed_attempt() -> None:
    ledger = _setup("u-1", 100)
    client = FakeClient(polls=[None] * 9 + ["finally"])
    sleep = RecordingSleep()

    result = _run(Orchestrator(ledger, client, PollPolicy(10, 3.0), sleep=sleep), "a b c")

    assert result.success
    assert result.output == "finally"
    assert result.job.attempts == 10
    assert sleep.calls == [3.0] * 10
    assert ledger.get_balance("u-1") == 97


def test_insufficient_credits_makes_no_calls() -> None:
    ledger = _setup("u-1", 2)
    client = FakeClient(polls=["never"])

    result = _run(Orchestrator(ledger, client, sleep=RecordingSleep()), " ".join(["word"] * 50))

    assert result.code is ErrorCode.INSUFFICIENT_CREDITS
    assert result.details == {"required": 50, "available": 2}
    assert result.error == "Insufficient credits. You need 50 credits but have 2 available."
    assert client.submitted == [] and client.fetched == []
    assert ledger.get_balance("u-1") == 2


def test_empty_input_fails_fast() -> None:
    client = FakeClient()
    result = _run(Orchestrator(CreditLedger(), client, sleep=RecordingSleep()), "   \n\t ")
    assert result.code is ErrorCode.EMPTY_INPUT
    assert result.to_public()["success"] is False
    assert client.submitted == []


def test_javascript_whitespace_only_input_is_empty() -> None:
    client = FakeClient(polls=["never"])
    result = _run(Orchestrator(_setup("u-1", 500), client, sleep=RecordingSleep()), "\ufeff \u3000\u00a0")
    assert result.code is ErrorCode.EMPTY_INPUT
    assert client.submitted == []


def test_missing_user_is_not_authenticated() -> None:
    result = _run(Orchestrator(CreditLedger(), FakeClient(), sleep=RecordingSleep()), "hello", user_id=None)
    assert result.code is ErrorCode.NOT_AUTHENTICATED


def test_unconfigured_client() -> None:
    client = FakeClient(configured=False)
    result = _run(Orchestrator(CreditLedger(), client, sleep=RecordingSleep()), "hello")
    assert result.code is ErrorCode.NOT_CONFIGURED
    assert client.submitted == []


def test_submit_failure_leaves_balance() -> None:
    ledger = _setup("u-1", 500)
    client = FakeClient(submit_error="Submit failed (500): boom")

    result = _run(Orchestrator(ledger, client, sleep=RecordingSleep()), "a b c")

    assert result.code is ErrorCode.SUBMIT_FAILED
    assert result.error == "Submit failed (500): boom"
    assert client.fetched == []
    assert ledger.get_balance("u-1") == 500


def test_poll_failure_stops_immediately() -> None:
    ledger = _setup("u-1", 500)
    client = FakeClient(polls=[None, RuntimeError("Retrieve failed (502): bad gateway"), "late"])
    sleep = RecordingSleep()

    result = _run(Orchestrator(ledger, client, PollPolicy(10, 3.0), sleep=sleep), "a b c")

    assert result.code is ErrorCode.POLL_FAILED
    assert result.job.status is JobStatus.FAILED
    assert len(client.fetched) == 2
    assert len(sleep.calls) == 2
    assert ledger.get_balance("u-1") == 500


def test_timeout_after_max_attempts() -> None:
    ledger = _setup("u-1", 500)
    client = FakeClient(polls=[None] * 10)
    sleep = RecordingSleep()

    result = _run(Orchestrator(ledger, client, PollPolicy(10, 3.0), sleep=sleep), "a b c")

    assert result.code is ErrorCode.TIMEOUT
    assert result.error == "Timed out waiting for humanized text."
    assert result.job.status is JobStatus.TIMED_OUT
    assert len(client.fetched) == 10
    assert sleep.calls == [3.0] * 10
    assert ledger.get_balance("u-1") == 500


def test_custom_policy_is_honoured() -> None:
    client = FakeClient()
    sleep = RecordingSleep()
    result = _run(Orchestrator(_setup("u-1", 10), client, PollPolicy(max_attempts=2, interval_sec=0.5), sleep=sleep), "x")
    assert result.code is ErrorCode.TIMEOUT
    assert sleep.calls == [0.5, 0.5]


def test_failed_debit_still_returns_output(monkeypatch) -> None:
    ledger = _setup("u-1", 500)
    monkeypatch.setattr(ledger, "debit", lambda *a, **kw: LedgerWrite(ok=False, reason="storage_error"))

    result = _run(Orchestrator(ledger, FakeClient(polls=["ok"]), sleep=RecordingSleep()), "a b c")

    assert result.success
    assert result.output == "ok"
    assert result.ledger_reconciled is False
    assert ledger.get_balance("u-1") == 500


def test_concurrent_spend_never_goes_negative() -> None:
    ledger = _setup("u-1", 5)

    async def _yield(_seconds):
        await asyncio.sleep(0)

    async def _both():
        first = Orchestrator(ledger, FakeClient(polls=["one"]), sleep=_yield)
        second = Orchestrator(ledger, FakeClient(polls=["two"]), sleep=_yield)
        return await asyncio.gather(first.humanize("a b c", "u-1"), second.humanize("d e f", "u-1"))

    results = asyncio.run(_both())

    assert all(r.success for r in results)
    assert sorted(r.ledger_reconciled for r in results) == [False, True]
    assert ledger.get_balance("u-1") == 2


def test_unreachable_ledger_does_not_block_humanize(tmp_path, monkeypatch) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    monkeypatch.setattr(config.settings, "database_path", str(blocker / "nested" / "humanizer.db"))

    result = _run(Orchestrator(CreditLedger(), FakeClient(polls=["ok"]), sleep=RecordingSleep()), "a b c")

    assert result.success
    assert result.output == "ok"
    assert result.ledger_reconciled is False
