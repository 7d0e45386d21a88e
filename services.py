from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aggregation import (
    CalendarEvent,
    CalendarProjector,
    ExpenseAggregator,
    IncomeAggregator,
    MonthlySeries,
)
from auth import hash_password, verify_password
from models import Expense, Income, User
from periods import (
    Period,
    local_now,
    month_period,
    resolve_month,
    to_local_naive,
    trailing_window,
)
from schemas import ExpenseIn, IncomeIn, LoginIn, SignupIn

logger = logging.getLogger(__name__)

LIST_LIMIT = 100


class RecordNotFound(ValueError):
    pass


class EmailAlreadyRegistered(ValueError):
    pass


class InvalidCredentials(ValueError):
    pass


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise RecordNotFound("User not found")
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )

    def signup(self, data: SignupIn) -> User:
        if self.find_by_email(data.email):
            raise EmailAlreadyRegistered("User with this email already exists")
        user = User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailAlreadyRegistered("User with this email already exists") from exc
        self.session.refresh(user)
        logger.info(f"signup: user_id={user.id}")
        return user

    def authenticate(self, data: LoginIn) -> User:
        user = self.find_by_email(data.email)
        if not user or not verify_password(data.password, user.password_hash):
            logger.info("login: rejected invalid credentials")
            raise InvalidCredentials("Invalid credentials")
        logger.info(f"login: user_id={user.id}")
        return user


class IncomeService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, limit: int = LIST_LIMIT) -> list[Income]:
        stmt = (
            select(Income)
            .where(Income.user_id == self.user_id)
            .order_by(Income.date.desc(), Income.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def in_period(self, period: Period) -> list[Income]:
        stmt = (
            select(Income)
            .where(
                Income.user_id == self.user_id,
                Income.date.between(period.start_at(), period.end_at()),
            )
            .order_by(Income.date, Income.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, income_id: int) -> Income:
        income = self.session.get(Income, income_id)
        if not income or income.user_id != self.user_id:
            raise RecordNotFound("Income record not found")
        return income

    def create(self, data: IncomeIn) -> Income:
        income = Income(
            user_id=self.user_id,
            source=data.source,
            amount=data.amount,
            currency=data.currency,
            frequency=data.frequency,
            date=to_local_naive(data.date) if data.date else local_now(),
            description=data.description or None,
        )
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        logger.info(f"income_created: user_id={self.user_id} id={income.id}")
        return income

    def update(self, income_id: int, data: IncomeIn) -> Income:
        income = self.get(income_id)
        income.source = data.source
        income.amount = data.amount
        income.currency = data.currency
        income.frequency = data.frequency
        if data.date:
            income.date = to_local_naive(data.date)
        income.description = data.description or None
        self.session.commit()
        self.session.refresh(income)
        return income

    def delete(self, income_id: int) -> None:
        income = self.get(income_id)
        self.session.delete(income)
        self.session.commit()
        logger.info(f"income_deleted: user_id={self.user_id} id={income_id}")

    def stats(self, now: Optional[datetime] = None) -> MonthlySeries:
        now = now or local_now()
        aggregator = IncomeAggregator()
        window = trailing_window(now.date(), aggregator.months)
        return aggregator.aggregate(self.in_period(window), now.date())

    def calendar(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> list[CalendarEvent]:
        target_year, target_month = resolve_month(year, month, today=today)
        records = self.in_period(month_period(target_year, target_month))
        return CalendarProjector().project(records, target_year, target_month)


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, limit: int = LIST_LIMIT) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(Expense.user_id == self.user_id)
            .order_by(Expense.date.desc(), Expense.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def in_period(self, period: Period) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(
                Expense.user_id == self.user_id,
                Expense.date.between(period.start_at(), period.end_at()),
            )
            .order_by(Expense.date, Expense.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise RecordNotFound("Expense not found")
        return expense

    def create(self, data: ExpenseIn) -> Expense:
        expense = Expense(
            user_id=self.user_id,
            category=data.category,
            amount=data.amount,
            currency=data.currency,
            date=to_local_naive(data.date) if data.date else local_now(),
            notes=data.notes or None,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        logger.info(f"expense_created: user_id={self.user_id} id={expense.id}")
        return expense

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.get(expense_id)
        expense.category = data.category
        expense.amount = data.amount
        expense.currency = data.currency
        if data.date:
            expense.date = to_local_naive(data.date)
        expense.notes = data.notes or None
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()
        logger.info(f"expense_deleted: user_id={self.user_id} id={expense_id}")

    def stats(self, now: Optional[datetime] = None) -> MonthlySeries:
        now = now or local_now()
        aggregator = ExpenseAggregator()
        window = trailing_window(now.date(), aggregator.months)
        return aggregator.aggregate(self.in_period(window), now.date())
