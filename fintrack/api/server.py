from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Dict, List, Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import AfterValidator, BaseModel, Field
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fintrack import __version__
from fintrack.config import Config, load_config
from fintrack.db import (
    connect,
    delete_result,
    get_db,
    init_db,
    insert_result,
    parse_object_id,
    ping,
    to_jsonable,
    update_result,
)
from fintrack.models import OwnerScope
from fintrack.compute.stats import admin_overview, user_totals
from fintrack.records import categories, goals, tips, transactions

from fintrack.auth import owner_scope, require_admin, require_authenticated
from fintrack.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    delete_user,
    get_user_by_email,
    list_users,
    normalize_email,
    public_user,
    set_user_role,
    update_profile,
    verify_user_credentials,
)
from fintrack.auth.security import create_access_token
from fintrack.util.paging import MAX_PAGE, total_pages
from fintrack.util.time import normalize_iso_date


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


def _check_iso_date(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        return normalize_iso_date(v)
    except ValueError:
        raise ValueError("must be a valid ISO-8601 date (YYYY-MM-DD...)")


IsoDate = Annotated[Optional[str], AfterValidator(_check_iso_date)]


def _cfg(request: Request) -> Config:
    return request.app.state.cfg


def _oid(raw: str, what: str) -> ObjectId:
    # Malformed ids are reported as missing records.
    oid = parse_object_id(raw)
    if oid is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return oid


def _changes(payload: BaseModel) -> Dict[str, Any]:
    return payload.model_dump(exclude_unset=True, exclude_none=True)


def _matched_or_404(result: Any, what: str) -> Dict[str, Any]:
    if int(result.matched_count) == 0:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return update_result(result)


def _deleted_or_404(result: Any, what: str) -> Dict[str, Any]:
    if int(result.deleted_count) == 0:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return delete_result(result)


# -----------------------------
# App factory
# -----------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    cfg: Config = app.state.cfg
    try:
        ping(app.state.mongo)
        _debug("Pinged your deployment. You successfully connected to MongoDB!")
        init_db(app.state.db)
        boot = bootstrap_admin_if_needed(app.state.db, cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: email={boot.get('email')} role={boot.get('role')}")
    except PyMongoError as e:
        # Keep serving; requests will fail with 500 until the database is reachable.
        _debug(f"Failed to connect to MongoDB: {type(e).__name__}: {e}")

    try:
        yield
    finally:
        app.state.mongo.close()
        _debug("MongoDB client closed")


def create_app(cfg: Optional[Config] = None, client: Optional[MongoClient] = None) -> FastAPI:
    """Build the API.

    The MongoClient is created here once and shared by every request via
    app.state; tests pass their own client. Exits the process when no
    connection string is configured.
    """

    cfg = cfg or load_config()
    if client is None:
        if not cfg.MONGO_URL:
            _debug("Error: MONGO_URL is not defined in the environment.")
            raise SystemExit(1)
        client = connect(cfg)

    app = FastAPI(title="FinTrack Server", version=__version__, lifespan=_lifespan)
    app.state.cfg = cfg
    app.state.mongo = client
    app.state.db = client[cfg.MONGO_DB_NAME]

    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(PyMongoError, _storage_error)

    app.include_router(router)
    return app


# -----------------------------
# Error bodies
# -----------------------------


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for e in exc.errors():
        loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "error": str(e.get("msg", ""))})
    return JSONResponse({"success": False, "message": "Invalid request", "errors": errors}, status_code=400)


async def _storage_error(request: Request, exc: PyMongoError) -> JSONResponse:
    # Never echo driver text back to the client.
    _debug(f"storage error on {request.method} {request.url.path}: {type(exc).__name__}")
    return JSONResponse({"success": False, "message": "Internal server error"}, status_code=500)


# -----------------------------
# Health
# -----------------------------


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "FinTrack Server is running!"


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Session
# -----------------------------


def _set_session_cookie(response: Response, *, token: str, cfg: Config) -> None:
    """Set the httpOnly session cookie.

    Production serves the frontend from another site, so the cookie must be
    SameSite=None (which browsers only accept together with Secure).
    """
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        secure=cfg.is_production,
        samesite="none" if cfg.is_production else "strict",
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        path=cfg.AUTH_COOKIE_PATH,
    )


def _clear_session_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH,
        secure=cfg.is_production,
        httponly=True,
        samesite="none" if cfg.is_production else "strict",
    )


def _issue_token(cfg: Config, email: str) -> str:
    return create_access_token(
        secret=cfg.ACCESS_TOKEN_SECRET,
        email=email,
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


class TokenRequest(BaseModel):
    email: str


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/jwt")
def issue_jwt(payload: TokenRequest, request: Request, response: Response) -> Dict[str, Any]:
    """Issue a session cookie for a principal the frontend already identified.

    Only the email is signed into the token; any other body fields are ignored.

    No credential is checked here, so whoever can reach this route can get a
    session for any email, admin accounts included. Deploy it only behind an
    upstream identity provider that authenticates the caller first.
    """
    cfg = _cfg(request)
    email = normalize_email(payload.email)
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    _set_session_cookie(response, token=_issue_token(cfg, email), cfg=cfg)
    return {"success": True}


@router.post("/logout")
def logout(request: Request, response: Response) -> Dict[str, Any]:
    _clear_session_cookie(response, _cfg(request))
    return {"success": True}


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    user, reason = verify_user_credentials(db, payload.email, payload.password)
    if user is None:
        if reason == "user_not_found":
            raise HTTPException(status_code=404, detail="User not found")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    _set_session_cookie(response, token=_issue_token(cfg, str(user["email"])), cfg=cfg)
    return {
        "success": True,
        "user": {
            "fullname": user.get("fullname"),
            "email": user.get("email"),
            "photo": user.get("photo"),
            "role": user.get("role"),
        },
    }


@router.get("/me")
def me(
    identity: Dict[str, Any] = Depends(require_authenticated),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    row = get_user_by_email(db, identity["email"])
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "user": public_user(row)}


# -----------------------------
# Users
# -----------------------------


class RegisterRequest(BaseModel):
    """Public self-serve registration. The role is always "user"."""

    email: str
    password: str = Field(min_length=1)
    fullname: Optional[str] = None
    photo: Optional[str] = None


class RoleRequest(BaseModel):
    role: Literal["user", "admin"]


class ProfileRequest(BaseModel):
    fullname: Optional[str] = None
    photo: Optional[str] = None


@router.post("/users", status_code=201)
def register_user(payload: RegisterRequest, db: Database = Depends(get_db)) -> Any:
    try:
        user_id = create_user(
            db,
            email=payload.email,
            password=payload.password,
            fullname=payload.fullname,
            photo=payload.photo,
        )
    except ValueError as e:
        detail = str(e)
        if detail == "user_exists":
            return JSONResponse(
                {"success": False, "message": "User already exists", "insertedId": None},
                status_code=409,
            )
        raise HTTPException(status_code=400, detail=detail)
    return {"acknowledged": True, "insertedId": str(user_id)}


@router.get("/users")
def admin_list_users(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    users, total = list_users(db, page=page, limit=limit, search=search)
    return {
        "users": to_jsonable(users),
        "total": total,
        "totalPages": total_pages(total, limit),
        "currentPage": page,
    }


@router.patch("/users/profile")
def patch_profile(
    payload: ProfileRequest,
    identity: Dict[str, Any] = Depends(require_authenticated),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    try:
        res = update_profile(db, identity["email"], _changes(payload))
    except ValueError:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return _matched_or_404(res, "User")


@router.patch("/users/role/{user_id}")
def admin_set_role(
    user_id: str,
    payload: RoleRequest,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    res = set_user_role(db, _oid(user_id, "User"), payload.role)
    return _matched_or_404(res, "User")


@router.delete("/users/{user_id}")
def admin_delete_user(
    user_id: str,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    return _deleted_or_404(delete_user(db, _oid(user_id, "User")), "User")


# -----------------------------
# Categories
# -----------------------------


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1)


@router.get("/categories")
def list_categories(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return to_jsonable(categories.list_all(db))


@router.post("/categories", status_code=201)
def add_category(
    payload: CategoryRequest,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    try:
        res = categories.insert(db, _changes(payload))
    except ValueError:
        raise HTTPException(status_code=400, detail="Category name is required")
    return insert_result(res)


@router.delete("/categories/{category_id}")
def remove_category(
    category_id: str,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    return _deleted_or_404(categories.delete(db, _oid(category_id, "Category")), "Category")


# -----------------------------
# Admin stats
# -----------------------------


@router.get("/admin/stats")
def admin_stats(
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    return admin_overview(db)


# -----------------------------
# Transactions
# -----------------------------


class TransactionCreate(BaseModel):
    type: Literal["income", "expense"]
    amount: float = Field(ge=0, allow_inf_nan=False)
    category: Optional[str] = None
    note: Optional[str] = None
    date: IsoDate = None


class TransactionUpdate(BaseModel):
    type: Optional[Literal["income", "expense"]] = None
    amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    category: Optional[str] = None
    note: Optional[str] = None
    date: IsoDate = None


@router.get("/transactions/all")
def all_transactions(
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> List[Dict[str, Any]]:
    return to_jsonable(transactions.list_all(db, scope))


@router.get("/transactions")
def list_transactions(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=100),
    type_: str = Query("all", alias="type", pattern="^(all|income|expense)$"),
    category: str = "all",
    search: str = "",
    sort_by: str = Query("date", alias="sortBy"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Paginated, filterable listing.

    `stats` always covers every transaction of the caller, regardless of the
    filters applied to the page.
    """
    try:
        rows, total = transactions.list_page(
            db,
            scope,
            page=page,
            limit=limit,
            type_=type_,
            category=category,
            search=search,
            sort_by=sort_by,
            order=order,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid sortBy")

    return {
        "transactions": to_jsonable(rows),
        "total": total,
        "totalPages": total_pages(total, limit),
        "currentPage": page,
        "stats": user_totals(db, scope.owner),
    }


@router.post("/transactions", status_code=201)
def add_transaction(
    payload: TransactionCreate,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    return insert_result(transactions.insert(db, scope, _changes(payload)))


@router.patch("/transactions/{txn_id}")
def patch_transaction(
    txn_id: str,
    payload: TransactionUpdate,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _oid(txn_id, "Transaction")
    try:
        res = transactions.update(db, scope, oid, _changes(payload))
    except ValueError:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return _matched_or_404(res, "Transaction")


@router.delete("/transactions/{txn_id}")
def remove_transaction(
    txn_id: str,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _oid(txn_id, "Transaction")
    return _deleted_or_404(transactions.delete(db, scope, oid), "Transaction")


# -----------------------------
# Goals
# -----------------------------


class GoalCreate(BaseModel):
    title: str = Field(min_length=1)
    targetAmount: float = Field(ge=0, allow_inf_nan=False)
    currentAmount: float = Field(default=0, ge=0, allow_inf_nan=False)
    deadline: IsoDate = None
    category: Optional[str] = None
    note: Optional[str] = None


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    targetAmount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currentAmount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    deadline: IsoDate = None
    category: Optional[str] = None
    note: Optional[str] = None


@router.get("/goals")
def list_goals(
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> List[Dict[str, Any]]:
    return to_jsonable(goals.list_for_owner(db, scope))


@router.post("/goals", status_code=201)
def add_goal(
    payload: GoalCreate,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    # currentAmount has a default, so dump it even when unset.
    return insert_result(goals.insert(db, scope, payload.model_dump(exclude_none=True)))


@router.patch("/goals/{goal_id}")
def patch_goal(
    goal_id: str,
    payload: GoalUpdate,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    oid = _oid(goal_id, "Goal")
    try:
        res = goals.update(db, scope, oid, _changes(payload))
    except ValueError:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return _matched_or_404(res, "Goal")


@router.delete("/goals/{goal_id}")
def remove_goal(
    goal_id: str,
    scope: OwnerScope = Depends(owner_scope),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    return _deleted_or_404(goals.delete(db, scope, _oid(goal_id, "Goal")), "Goal")


# -----------------------------
# Tips
# -----------------------------


class TipCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: Optional[str] = None


class TipUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None


@router.get("/tips")
def list_tips(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return to_jsonable(tips.list_all(db))


@router.post("/tips", status_code=201)
def add_tip(
    payload: TipCreate,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    return insert_result(tips.insert(db, _changes(payload)))


@router.patch("/tips/{tip_id}")
def patch_tip(
    tip_id: str,
    payload: TipUpdate,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    oid = _oid(tip_id, "Tip")
    try:
        res = tips.update(db, oid, _changes(payload))
    except ValueError:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return _matched_or_404(res, "Tip")


@router.delete("/tips/{tip_id}")
def remove_tip(
    tip_id: str,
    db: Database = Depends(get_db),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    return _deleted_or_404(tips.delete(db, _oid(tip_id, "Tip")), "Tip")
