from datetime import datetime

from fastapi import FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .categories import category_color
from .config import settings
from .errors import NotFoundError, StorageError, ValidationError
from .formatting import category_share, format_currency
from .log import get_logger
from .persistence import get_persistence
from .schemas import (
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    AppSettings,
    AppSettingsUpdate,
    CategoryShareResponse,
    DashboardResponse,
    HealthResponse,
    SampleDataResponse,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
)
from .seed import seed_sample_data
from .services.aggregation import DEFAULT_TREND_MONTHS, build_dashboard

logger = get_logger(__name__)

app = FastAPI(
    title="Pocket Ledger API",
    version="0.1.0",
    description="Personal income/expense ledger with dashboard aggregations.",
)

persistence = get_persistence()


def build_error_response(
    details: list[ApiErrorDetail],
    message: str = "Invalid request payload",
    code: str = "VALIDATION_ERROR",
    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> JSONResponse:
    payload = ApiErrorResponse(error=ApiErrorPayload(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[ApiErrorDetail] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", []) if item != "body")
        details.append(ApiErrorDetail(field=loc or "body", message=err.get("msg", "validation error")))
    return build_error_response(details)


@app.exception_handler(ValidationError)
async def ledger_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    details = [ApiErrorDetail(field=field, message=message) for field, message in exc.details]
    return build_error_response(details or [ApiErrorDetail(field="body", message=exc.message)], message=exc.message)


@app.exception_handler(ValueError)
async def value_error_exception_handler(request: Request, exc: ValueError) -> JSONResponse:
    return build_error_response([ApiErrorDetail(field="body", message=str(exc))])


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return build_error_response([], message=str(exc), code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return build_error_response(
        [], message=str(exc), code="STORAGE_ERROR", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@app.on_event("startup")
async def on_startup() -> None:
    persistence.initialize()
    if settings.seed_sample_data:
        seed_sample_data(persistence)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    persistence.close()


@app.get("/api/v1/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.post("/api/v1/transactions", response_model=Transaction, status_code=201)
async def create_transaction(payload: TransactionCreate) -> Transaction:
    transaction_id = persistence.create_transaction(payload)
    return persistence.get_transaction(transaction_id)


@app.get("/api/v1/transactions", response_model=list[Transaction])
async def list_transactions(
    limit: int | None = Query(default=None, ge=0),
    offset: int | None = Query(default=None, ge=0),
) -> list[Transaction]:
    return persistence.list_transactions(limit=limit, offset=offset)


@app.get("/api/v1/transactions/range", response_model=list[Transaction])
async def list_transactions_in_range(start: datetime, end: datetime) -> list[Transaction]:
    return persistence.list_transactions_in_range(start, end)


@app.get("/api/v1/transactions/{transaction_id}", response_model=Transaction)
async def get_transaction(transaction_id: str) -> Transaction:
    return persistence.get_transaction(transaction_id)


@app.put("/api/v1/transactions/{transaction_id}", response_model=Transaction)
async def update_transaction(transaction_id: str, payload: TransactionUpdate) -> Transaction:
    return persistence.update_transaction(transaction_id, payload)


@app.delete("/api/v1/transactions/{transaction_id}", status_code=204)
async def delete_transaction(transaction_id: str) -> Response:
    persistence.delete_transaction(transaction_id)
    return Response(status_code=204)


@app.get("/api/v1/settings", response_model=AppSettings)
async def get_settings() -> AppSettings:
    return persistence.get_settings()


@app.put("/api/v1/settings", response_model=AppSettings)
async def update_settings(payload: AppSettingsUpdate) -> AppSettings:
    return persistence.update_settings(payload)


@app.get("/api/v1/dashboard", response_model=DashboardResponse)
async def dashboard(months: int = Query(default=DEFAULT_TREND_MONTHS, ge=1, le=60)) -> DashboardResponse:
    app_settings = persistence.get_settings()
    summary = build_dashboard(persistence.list_transactions(), datetime.now(), months)
    total_expenses = summary.summary.totalExpenses
    breakdown = [
        CategoryShareResponse(
            category=entry.category,
            amount=entry.amount,
            percentage=category_share(entry.amount, total_expenses),
            color=category_color(entry.category),
        )
        for entry in summary.categoryBreakdown
    ]
    return DashboardResponse(
        year=summary.year,
        month=summary.month,
        currency=app_settings.currency,
        balance=summary.balance,
        formattedBalance=format_currency(summary.balance, app_settings.currency),
        totalIncome=summary.summary.totalIncome,
        totalExpenses=total_expenses,
        categoryBreakdown=breakdown,
        monthlyTrend=summary.monthlyTrend,
    )


@app.post("/api/v1/bootstrap/sample-data", response_model=SampleDataResponse)
async def bootstrap_sample_data() -> SampleDataResponse:
    return SampleDataResponse(inserted=seed_sample_data(persistence))
