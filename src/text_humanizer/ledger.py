import logging
import sqlite3
from dataclasses import dataclass

from text_humanizer import db
from text_humanizer.config import settings
from text_humanizer.errors import ErrorCode

logger = logging.getLogger(__name__)


@dataclass
class LedgerWrite:
    ok: bool
    balance: int | None = None
    reason: str | None = None


class CreditLedger:
    """Per-user word-credit balance backed by the shared store.

    Reads favour availability: a storage failure yields the default balance.
    Writes never raise; they report through ``LedgerWrite`` and the log.
    """

    def __init__(self, default_credits: int | None = None) -> None:
        self.default_credits = settings.default_credits if default_credits is None else default_credits

    def get_balance(self, user_id: str) -> int:
        try:
            if db.ensure_user(user_id, self.default_credits):
                logger.info("initialized balance user=%s credits=%d", user_id, self.default_credits)
            user = db.get_user(user_id)
        except (sqlite3.Error, OSError) as exc:
            logger.warning(
                "%s user=%s falling back to default: %s", ErrorCode.LEDGER_UNAVAILABLE.value, user_id, exc
            )
            return self.default_credits
        if user is None:
            return self.default_credits
        return int(user["credits"])

    def adjust(self, user_id: str, new_balance: int, note: str | None = None) -> LedgerWrite:
        if new_balance < 0:
            return LedgerWrite(ok=False, reason="negative_balance")
        try:
            if not db.set_credits(user_id, new_balance, note=note):
                return LedgerWrite(ok=False, reason="unknown_user")
        except (sqlite3.Error, OSError) as exc:
            logger.error("%s user=%s adjust=%d: %s", ErrorCode.LEDGER_WRITE_FAILED.value, user_id, new_balance, exc)
            return LedgerWrite(ok=False, reason="storage_error")
        return LedgerWrite(ok=True, balance=new_balance)

    def debit(self, user_id: str, amount: int, job_id: str | None = None) -> LedgerWrite:
        try:
            balance = db.debit_credits(user_id, amount, job_id=job_id)
        except (sqlite3.Error, OSError) as exc:
            logger.error(
                "%s user=%s debit=%d job=%s: %s", ErrorCode.LEDGER_WRITE_FAILED.value, user_id, amount, job_id, exc
            )
            return LedgerWrite(ok=False, reason="storage_error")
        if balance is None:
            logger.warning("debit precondition failed user=%s debit=%d job=%s", user_id, amount, job_id)
            return LedgerWrite(ok=False, reason="insufficient_at_debit")
        return LedgerWrite(ok=True, balance=balance)

    def grant(self, user_id: str, credits: int, note: str, external_ref: str | None = None) -> int:
        if credits <= 0:
            raise ValueError("credits must be > 0")
        db.ensure_user(user_id, self.default_credits)
        db.grant_credits(user_id, credits, note=note, external_ref=external_ref)
        return self.get_balance(user_id)

    def recent_entries(self, user_id: str, limit: int = 20) -> list[dict]:
        return db.list_ledger(user_id, limit=limit)
