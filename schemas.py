from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from aggregation import CalendarEvent, MonthlySeries
from models import CurrencyCode, Expense, Income, IncomeFrequency, User

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"


def _money(value: Decimal) -> float:
    return float(round(value, 2))


class _InputModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class SignupIn(_InputModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class LoginIn(_InputModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class UserOut(BaseModel):
    id: int
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, name=user.name, email=user.email)


class IncomeIn(_InputModel):
    source: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    currency: CurrencyCode = CurrencyCode.usd
    frequency: IncomeFrequency
    date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=1000)


class ExpenseIn(_InputModel):
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    currency: CurrencyCode = CurrencyCode.usd
    date: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class _CamelOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IncomeOut(_CamelOut):
    id: int
    source: str
    amount: float
    currency: CurrencyCode
    frequency: IncomeFrequency
    date: datetime
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_income(cls, income: Income) -> "IncomeOut":
        return cls(
            id=income.id,
            source=income.source,
            amount=_money(income.amount),
            currency=income.currency,
            frequency=income.frequency,
            date=income.date,
            description=income.description,
            created_at=income.created_at,
            updated_at=income.updated_at,
        )


class ExpenseOut(_CamelOut):
    id: int
    category: str
    amount: float
    currency: CurrencyCode
    date: datetime
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_expense(cls, expense: Expense) -> "ExpenseOut":
        return cls(
            id=expense.id,
            category=expense.category,
            amount=_money(expense.amount),
            currency=expense.currency,
            date=expense.date,
            notes=expense.notes,
            created_at=expense.created_at,
            updated_at=expense.updated_at,
        )


class MonthlyBucketOut(_CamelOut):
    month_key: str
    month: str
    total: float


class StatsOut(_CamelOut):
    total_for_current_month: float
    series: list[MonthlyBucketOut]

    @classmethod
    def from_series(cls, stats: MonthlySeries) -> "StatsOut":
        return cls(
            total_for_current_month=_money(stats.total_for_current_month),
            series=[
                MonthlyBucketOut(
                    month_key=bucket.month_key,
                    month=bucket.label,
                    total=_money(bucket.total),
                )
                for bucket in stats.series
            ],
        )


class CalendarEventOut(_CamelOut):
    id: str
    title: str
    amount: float
    currency: Optional[str]
    date: datetime
    frequency: Optional[str]

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "CalendarEventOut":
        return cls(
            id=event.id,
            title=event.title,
            amount=_money(event.amount),
            currency=event.currency,
            date=event.date,
            frequency=event.frequency,
        )
