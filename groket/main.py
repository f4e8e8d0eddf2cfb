import logging
import threading
from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from fastapi import APIRouter, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from groket.auth import AuthService, SessionContext
from groket.config import Settings
from groket.currency import CURRENCIES, resolve_default_currency
from groket.dashboard import DashboardSnapshot, DashboardView
from groket.db import init_db, make_engine
from groket.errors import AuthError, StoreError, ValidationError
from groket.forms import parse_transaction_form
from groket.models import Session, Transaction
from groket.periods import Period, resolve_period
from groket.store import ProfileStore, TransactionStore

router = APIRouter()


class CredentialsPayload(BaseModel):
    email: str
    password: str


class PasswordResetPayload(BaseModel):
    email: str


class UserResponse(BaseModel):
    id: str
    email: str
    created_at: datetime | None = None


class SessionResponse(BaseModel):
    token: str
    user_id: str
    email: str
    created_at: datetime | None = None


class ProfilePayload(BaseModel):
    name: str
    surname: str


class ProfileResponse(ProfilePayload):
    user_id: str
    created_at: datetime | None = None


class TransactionPayload(BaseModel):
    # amounts and dates arrive as entered text and are validated by the form parser
    kind: str | None = None
    amount: str | int | float | None = None
    category: str | None = None
    description: str | None = None
    date: str | None = None


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    kind: str
    amount: Decimal
    category: str
    description: str
    date: date
    created_at: datetime | None = None


class CurrencyResponse(BaseModel):
    code: str
    symbol: str
    multiplier: Decimal


class Services:
    def __init__(self, engine: Engine, settings: Settings, today: Callable[[], date]) -> None:
        self.engine = engine
        self.settings = settings
        self.today = today
        self.auth = AuthService(engine)
        self.transactions = TransactionStore(engine)
        self.profiles = ProfileStore(engine)
        self.default_currency = resolve_default_currency(settings.default_currency)
        self._views: OrderedDict[str, DashboardView] = OrderedDict()
        self._view_limit = max(1, settings.dashboard_view_limit)
        self._views_lock = threading.Lock()

    def view_for(self, session: Session) -> DashboardView:
        with self._views_lock:
            view = self._views.get(session.token)
            if view is not None:
                self._views.move_to_end(session.token)
                return view
            view = DashboardView(
                self.transactions,
                SessionContext(session),
                today=self.today,
                currency=self.default_currency,
            )
            self._views[session.token] = view
            # least recently used views go first; an evicted session gets a fresh view
            while len(self._views) > self._view_limit:
                self._views.popitem(last=False)
            return view

    def cached_view_count(self) -> int:
        with self._views_lock:
            return len(self._views)

    def drop_view(self, token: str) -> None:
        with self._views_lock:
            view = self._views.pop(token, None)
        if view is not None:
            view.context.clear()


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    today: Callable[[], date] = date.today,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.log_level)
    engine = engine or make_engine(settings.database_url)

    app = FastAPI(title="Groket Finance")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = Services(engine, settings, today)

    @app.on_event("startup")
    def startup() -> None:
        init_db(engine)

    app.include_router(router)
    return app


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_session(services: Services, token: str | None) -> Session:
    try:
        return services.auth.get_session(token)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def to_transaction_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        user_id=txn.user_id,
        kind=txn.kind,
        amount=txn.amount,
        category=txn.category,
        description=txn.description,
        date=txn.date,
        created_at=txn.created_at,
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/currencies", response_model=list[CurrencyResponse])
def list_currencies() -> list[CurrencyResponse]:
    return [
        CurrencyResponse(code=info.code, symbol=info.symbol, multiplier=info.multiplier)
        for info in CURRENCIES.values()
    ]


@router.post("/auth/signup", response_model=UserResponse)
def signup(payload: CredentialsPayload, request: Request) -> UserResponse:
    services = get_services(request)
    try:
        user = services.auth.sign_up(payload.email, payload.password)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AuthError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return UserResponse(id=user.id, email=user.email, created_at=user.created_at)


@router.post("/auth/login", response_model=SessionResponse)
def login(payload: CredentialsPayload, request: Request) -> SessionResponse:
    services = get_services(request)
    try:
        session = services.auth.sign_in(payload.email, payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SessionResponse(
        token=session.token,
        user_id=session.user_id,
        email=session.email,
        created_at=session.created_at,
    )


@router.post("/auth/logout")
def logout(
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> dict:
    services = get_services(request)
    try:
        services.auth.sign_out(x_session_token)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if x_session_token:
        services.drop_view(x_session_token)
    return {"status": "signed_out"}


@router.post("/auth/reset-password")
def reset_password(payload: PasswordResetPayload, request: Request) -> dict:
    services = get_services(request)
    try:
        services.auth.request_password_reset(payload.email)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"status": "requested"}


@router.get("/auth/session", response_model=SessionResponse)
def current_session(
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> SessionResponse:
    session = get_session(get_services(request), x_session_token)
    return SessionResponse(
        token=session.token,
        user_id=session.user_id,
        email=session.email,
        created_at=session.created_at,
    )


@router.post("/profiles", response_model=ProfileResponse)
def create_profile(
    payload: ProfilePayload,
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> ProfileResponse:
    services = get_services(request)
    session = get_session(services, x_session_token)
    try:
        profile = services.profiles.create(session.user_id, payload.name, payload.surname)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ProfileResponse(
        user_id=profile.user_id,
        name=profile.name,
        surname=profile.surname,
        created_at=profile.created_at,
    )


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    request: Request,
    period: str = Query(Period.CURRENT_MONTH),
    start: str | None = Query(None),
    end: str | None = Query(None),
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> list[TransactionResponse]:
    services = get_services(request)
    session = get_session(services, x_session_token)
    try:
        date_range = resolve_period(period, services.today(), start, end)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        rows = services.transactions.list(session.user_id, date_range)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [to_transaction_response(txn) for txn in rows]


@router.post("/transactions", response_model=TransactionResponse)
def create_transaction(
    payload: TransactionPayload,
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> TransactionResponse:
    services = get_services(request)
    session = get_session(services, x_session_token)
    try:
        fields = parse_transaction_form(payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        txn = services.transactions.create(session.user_id, fields)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return to_transaction_response(txn)


@router.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> dict:
    services = get_services(request)
    session = get_session(services, x_session_token)
    try:
        deleted = services.transactions.remove(session.user_id, transaction_id)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return {"status": "deleted"}


@router.get("/dashboard", response_model=DashboardSnapshot)
def dashboard(
    request: Request,
    period: str | None = Query(None),
    start: str | None = Query(None),
    end: str | None = Query(None),
    currency: str | None = Query(None),
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> DashboardSnapshot:
    services = get_services(request)
    view = services.view_for(get_session(services, x_session_token))
    if currency and not view.select_currency(currency):
        # skip the reload so its success does not wipe the rejection message
        return view.render()
    if period:
        view.select_period(period, start, end)
    else:
        view.refresh()
    return view.render()


@router.post("/dashboard/transactions", response_model=DashboardSnapshot)
def dashboard_create_transaction(
    payload: TransactionPayload,
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> DashboardSnapshot:
    services = get_services(request)
    view = services.view_for(get_session(services, x_session_token))
    view.submit(payload.model_dump())
    return view.render()


@router.delete("/dashboard/transactions/{transaction_id}", response_model=DashboardSnapshot)
def dashboard_remove_transaction(
    transaction_id: str,
    request: Request,
    x_session_token: str | None = Header(None, alias="x-session-token"),
) -> DashboardSnapshot:
    services = get_services(request)
    view = services.view_for(get_session(services, x_session_token))
    view.remove(transaction_id)
    return view.render()


app = create_app()
