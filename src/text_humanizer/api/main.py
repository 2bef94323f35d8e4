import logging
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException

from text_humanizer.config import settings
from text_humanizer.db import create_project, delete_project, init_db, list_projects
from text_humanizer.humanizer_client import HumanizerClient
from text_humanizer.ledger import CreditLedger
from text_humanizer.orchestrator import ErrorCode, Orchestrator
from text_humanizer.schemas import (
    AdminGrantRequest,
    CreditBalanceResponse,
    HumanizeRequest,
    HumanizeResponse,
    PricingPlan,
    ProjectCreateRequest,
    ProjectResponse,
)

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Text Humanizer", version=settings.app_version)
init_db()

PRICING_PLANS = [
    PricingPlan(name="Basic", price_usd=9.99, credits=10_000, price_per_credit_usd=0.001),
    PricingPlan(name="Pro", price_usd=24.99, credits=50_000, price_per_credit_usd=0.0005),
    PricingPlan(name="Premium", price_usd=99.99, credits=250_000, price_per_credit_usd=0.0004),
]

_STATUS_BY_CODE = {
    ErrorCode.EMPTY_INPUT: 400,
    ErrorCode.NOT_AUTHENTICATED: 401,
    ErrorCode.INSUFFICIENT_CREDITS: 402,
    ErrorCode.SUBMIT_FAILED: 502,
    ErrorCode.POLL_FAILED: 502,
    ErrorCode.NOT_CONFIGURED: 503,
    ErrorCode.TIMEOUT: 504,
}


def envelope(data: dict | list, status: str = "ok", error: dict | None = None) -> dict:
    return {
        "status": status,
        "data": data,
        "meta": {"model_version": settings.app_version, "latency_ms": 0},
        "error": error,
    }


def get_ledger() -> CreditLedger:
    return CreditLedger()


def get_orchestrator(ledger: Annotated[CreditLedger, Depends(get_ledger)]) -> Orchestrator:
    return Orchestrator(ledger=ledger, client=HumanizerClient())


def _current_user(x_user_id: Annotated[str | None, Header()] = None) -> str:
    # identity is resolved upstream; the gateway forwards the user id
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id.strip()


def _require_admin(x_admin_token: Annotated[str | None, Header()] = None) -> None:
    if not settings.admin_api_token:
        raise HTTPException(status_code=500, detail="ADMIN_API_TOKEN is not configured")
    if x_admin_token != settings.admin_api_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


@app.get("/health")
def health() -> dict:
    return envelope({"service": "text-humanizer"})


@app.get("/version")
def version() -> dict:
    return envelope({"service": "text-humanizer", "version": settings.app_version})


@app.post("/v1/humanize")
async def humanize(
    payload: HumanizeRequest,
    orchestrator: Annotated[Orchestrator, Depends(get_orchestrator)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> dict:
    result = await orchestrator.humanize(payload.text, x_user_id.strip() if x_user_id else None)
    if not result.success:
        detail = {**result.to_public(), "code": result.code.value, **result.details}
        raise HTTPException(status_code=_STATUS_BY_CODE.get(result.code, 500), detail=detail)

    return envelope(
        HumanizeResponse(
            success=True,
            output=result.output,
            job_id=result.job.id,
            word_count=result.job.word_count,
            ledger_reconciled=result.ledger_reconciled,
        ).model_dump()
    )


@app.get("/v1/credits")
def get_credits(
    user_id: Annotated[str, Depends(_current_user)],
    ledger: Annotated[CreditLedger, Depends(get_ledger)],
) -> dict:
    balance = CreditBalanceResponse(user_id=user_id, credits=ledger.get_balance(user_id)).model_dump()
    return envelope({"balance": balance, "recent_ledger": ledger.recent_entries(user_id, limit=20)})


@app.get("/v1/pricing")
def pricing() -> dict:
    return envelope([p.model_dump() for p in PRICING_PLANS])


@app.post("/v1/projects")
def save_project(payload: ProjectCreateRequest, user_id: Annotated[str, Depends(_current_user)]) -> dict:
    if not payload.input_text.strip() or not payload.output_text.strip():
        raise HTTPException(status_code=400, detail="Both input and output text are required to save")
    project = create_project(user_id, payload.input_text, payload.output_text)
    return envelope(ProjectResponse(**project).model_dump())


@app.get("/v1/projects")
def get_projects(user_id: Annotated[str, Depends(_current_user)]) -> dict:
    return envelope([ProjectResponse(**p).model_dump() for p in list_projects(user_id)])


@app.delete("/v1/projects/{project_id}")
def remove_project(project_id: str, user_id: Annotated[str, Depends(_current_user)]) -> dict:
    if not delete_project(project_id, user_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return envelope({"id": project_id, "deleted": True})


@app.post("/v1/admin/credits/grant")
def admin_grant_credits(
    payload: AdminGrantRequest,
    ledger: Annotated[CreditLedger, Depends(get_ledger)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> dict:
    _require_admin(x_admin_token=x_admin_token)
    try:
        credits = ledger.grant(
            payload.user_id,
            payload.credits,
            note=payload.note,
            external_ref=payload.external_ref,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return envelope({"user_id": payload.user_id, "credits": credits})
