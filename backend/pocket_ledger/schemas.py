from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import settings


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class Theme(str, Enum):
    light = "light"
    dark = "dark"
    system = "system"


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str


def _normalize_type(value: object) -> object:
    if isinstance(value, str):
        return value.lower().strip()
    return value


def _normalize_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    up = value.upper()
    if len(up) != 3 or not up.isalpha():
        raise ValueError("must be 3-letter ISO code")
    return up


class TransactionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    amount: Decimal = Field(gt=Decimal("0"), max_digits=14, decimal_places=2, allow_inf_nan=False)
    category: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    date: datetime
    type: TransactionType

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, value: object) -> object:
        return _normalize_type(value)


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    amount: Optional[Decimal] = Field(default=None, gt=Decimal("0"), max_digits=14, decimal_places=2, allow_inf_nan=False)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    date: Optional[datetime] = None
    type: Optional[TransactionType] = None

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, value: object) -> object:
        return _normalize_type(value)


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str
    amount: Decimal
    category: str
    description: str = ""
    date: datetime
    type: TransactionType
    createdAt: datetime
    updatedAt: datetime


class AppSettings(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    currency: str = settings.default_currency
    language: str = "en"
    theme: Theme = Theme.system
    isPremium: bool = False


class AppSettingsUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    currency: Optional[str] = None
    language: Optional[str] = Field(default=None, min_length=2, max_length=16)
    theme: Optional[Theme] = None
    isPremium: Optional[bool] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency(value)

    @field_validator("theme", mode="before")
    @classmethod
    def validate_theme(cls, value: object) -> object:
        return _normalize_type(value)


class MonthSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    totalIncome: Decimal = Decimal("0")
    totalExpenses: Decimal = Decimal("0")


class CategoryAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Decimal


class TrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: Decimal
    year: int
    month: int


class DashboardSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int
    balance: Decimal
    summary: MonthSummary
    categoryBreakdown: list[CategoryAmount]
    monthlyTrend: list[TrendPoint]


class CategoryShareResponse(BaseModel):
    category: str
    amount: Decimal
    percentage: Decimal
    color: str


class DashboardResponse(BaseModel):
    year: int
    month: int
    currency: str
    balance: Decimal
    formattedBalance: str
    totalIncome: Decimal
    totalExpenses: Decimal
    categoryBreakdown: list[CategoryShareResponse]
    monthlyTrend: list[TrendPoint]


class SampleDataResponse(BaseModel):
    inserted: int
