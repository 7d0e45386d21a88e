import logging
import time
import tomllib
from datetime import datetime, timezone
from typing import Iterator, Optional

from fastapi import Cookie, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import TOKEN_COOKIE, generate_token, token_from_headers, verify_token
from config import get_settings
from database import Database
from models import User
from schemas import (
    CalendarEventOut,
    ExpenseIn,
    ExpenseOut,
    IncomeIn,
    IncomeOut,
    LoginIn,
    SignupIn,
    StatsOut,
    UserOut,
)
from services import (
    EmailAlreadyRegistered,
    ExpenseService,
    IncomeService,
    InvalidCredentials,
    RecordNotFound,
    UserService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def _load_app_version() -> str:
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Finance Tracker", version=APP_VERSION)


def _cors_origins() -> list[str]:
    try:
        return get_settings().cors_origins
    except RuntimeError:
        # the missing secret is reported when the app starts
        return ["*"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    settings = get_settings()
    db = Database(settings.database_url)
    if settings.create_schema:
        db.create_schema()
    app.state.db = db
    logger.info(f"startup: environment={settings.environment}")


@app.on_event("shutdown")
def shutdown_event():
    db: Optional[Database] = getattr(app.state, "db", None)
    if db is not None:
        db.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


def current_user_id(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None),
) -> int:
    raw = token_from_headers(authorization, token)
    if not raw:
        raise HTTPException(status_code=401, detail="Authentication required")
    payload = verify_token(raw)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return payload["id"]


def ok(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _login_response(user: User, status_code: int) -> JSONResponse:
    settings = get_settings()
    response = ok(UserOut.from_user(user).model_dump(), status_code)
    response.set_cookie(
        TOKEN_COOKIE,
        generate_token(user.id, user.email),
        max_age=settings.token_max_age_secs,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.get("/api/health")
def health():
    settings = get_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "version": APP_VERSION,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@app.post("/api/auth/signup")
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).signup(payload)
    except EmailAlreadyRegistered as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _login_response(user, 201)


@app.post("/api/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).authenticate(payload)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return _login_response(user, 200)


@app.post("/api/auth/logout")
def logout():
    response = JSONResponse(
        content={"success": True, "message": "Logged out successfully"}
    )
    response.delete_cookie(TOKEN_COOKIE, path="/")
    return response


@app.get("/api/auth/me")
def me(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    try:
        user = UserService(db).get(user_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ok(UserOut.from_user(user).model_dump())


@app.get("/api/income")
def list_income(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    items = IncomeService(db, user_id).list()
    return ok([_dump(IncomeOut.from_income(item)) for item in items])


@app.post("/api/income")
def create_income(
    payload: IncomeIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    income = IncomeService(db, user_id).create(payload)
    return ok(_dump(IncomeOut.from_income(income)), 201)


@app.get("/api/income/stats")
def income_stats(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    stats = IncomeService(db, user_id).stats()
    return ok(_dump(StatsOut.from_series(stats)))


@app.get("/api/income/calendar")
def income_calendar(
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        events = IncomeService(db, user_id).calendar(year, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ok([_dump(CalendarEventOut.from_event(event)) for event in events])


@app.get("/api/income/{income_id}")
def get_income(
    income_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        income = IncomeService(db, user_id).get(income_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ok(_dump(IncomeOut.from_income(income)))


@app.put("/api/income/{income_id}")
def update_income(
    income_id: int,
    payload: IncomeIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        income = IncomeService(db, user_id).update(income_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ok(_dump(IncomeOut.from_income(income)))


@app.delete("/api/income/{income_id}")
def delete_income(
    income_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        IncomeService(db, user_id).delete(income_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True, "message": "Income record deleted successfully"}


@app.get("/api/expenses")
def list_expenses(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    items = ExpenseService(db, user_id).list()
    return ok([_dump(ExpenseOut.from_expense(item)) for item in items])


@app.post("/api/expenses")
def create_expense(
    payload: ExpenseIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    expense = ExpenseService(db, user_id).create(payload)
    return ok(_dump(ExpenseOut.from_expense(expense)), 201)


@app.get("/api/expenses/stats")
def expense_stats(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    stats = ExpenseService(db, user_id).stats()
    return ok(_dump(StatsOut.from_series(stats)))


@app.get("/api/expenses/{expense_id}")
def get_expense(
    expense_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, user_id).get(expense_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ok(_dump(ExpenseOut.from_expense(expense)))


@app.put("/api/expenses/{expense_id}")
def update_expense(
    expense_id: int,
    payload: ExpenseIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, user_id).update(expense_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ok(_dump(ExpenseOut.from_expense(expense)))


@app.delete("/api/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        ExpenseService(db, user_id).delete(expense_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True, "message": "Expense deleted successfully"}
