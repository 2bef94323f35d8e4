from pydantic import BaseModel


class HumanizeRequest(BaseModel):
    text: str


class HumanizeResponse(BaseModel):
    success: bool
    output: str | None = None
    job_id: str | None = None
    word_count: int = 0
    ledger_reconciled: bool | None = None


class CreditBalanceResponse(BaseModel):
    user_id: str
    credits: int


class ProjectCreateRequest(BaseModel):
    input_text: str
    output_text: str


class ProjectResponse(BaseModel):
    id: str
    user_id: str
    input_text: str
    output_text: str
    created_at: str


class PricingPlan(BaseModel):
    name: str
    price_usd: float
    credits: int
    price_per_credit_usd: float


class AdminGrantRequest(BaseModel):
    user_id: str
    credits: int
    note: str = "manual grant"
    external_ref: str | None = None
