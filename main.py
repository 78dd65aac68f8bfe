import logging
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from schemas import CatalogItem, DialogName, Order, PageName, find_coin_package, find_rank
from store import (
    AddToCart,
    ApplyDiscountCode,
    CloseDialog,
    Command,
    CopyDiscordInvite,
    CopyServerAddress,
    DeleteOrder,
    Effect,
    JoinDiscord,
    Login,
    Logout,
    Navigate,
    Notification,
    OpenDialog,
    Purchase,
    Register,
    SearchSkin,
    SelectSkin,
    SessionStore,
    SetAdminMode,
    StoreError,
    StoreSettings,
)
from views import StorefrontView, select_view

logger = logging.getLogger(__name__)

# App and CORS
app = FastAPI(title="CookieMC Store API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security setup
http_bearer = HTTPBearer()
JWT_SECRET = os.getenv("JWT_SECRET", "supersecret")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

settings = StoreSettings(
    admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
    discount_code=os.getenv("DISCOUNT_CODE", "nightermc"),
    server_address=os.getenv("SERVER_ADDRESS", "cookiemc.vaulthosting.in"),
    discord_invite_url=os.getenv("DISCORD_INVITE_URL", "https://discord.gg/r9km3pQV"),
    avatar_url_template=os.getenv("AVATAR_URL_TEMPLATE", "https://mc-heads.net/avatar/{username}/64"),
)

store = SessionStore(settings=settings)


def get_store() -> SessionStore:
    return store


# Utility functions
class TokenData(BaseModel):
    username: str
    role: str


def create_access_token(username: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": username,
        "role": role,
        "exp": now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
        "iat": now,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(http_bearer)):
    token = credentials.credentials
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
        username = payload.get("sub")
        role = payload.get("role", "user")
        if username is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        return TokenData(username=username, role=role)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def require_admin(user: TokenData = Depends(get_current_user)):
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def catalog_item(kind: str, key: str) -> CatalogItem:
    item = None
    if kind == "ranks":
        item = find_rank(key)
    elif kind == "coins" and key.isdigit():
        item = find_coin_package(int(key))
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    note = Notification(message=exc.message, severity="error", duration_ms=4000)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "effects": [note.model_dump()]},
    )


# Models
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    admin_requested: bool = False
    admin_password: str = ""


class RegisterRequest(LoginRequest):
    avatar_url: Optional[str] = None


class CommandResponse(BaseModel):
    effects: List[Effect]


class AuthResponse(CommandResponse):
    access_token: str
    token_type: str = "bearer"
    username: str
    role: str


class NavigateRequest(BaseModel):
    page: PageName


class DialogRequest(BaseModel):
    dialog: DialogName


class AdminModeRequest(BaseModel):
    enabled: bool


class SkinSelectRequest(BaseModel):
    url: str


class SkinSearchRequest(BaseModel):
    username: str


class DiscountRequest(BaseModel):
    code: str


def run(command: Command, s: SessionStore) -> CommandResponse:
    return CommandResponse(effects=s.dispatch(command))


def issue_token(effects: List[Effect], s: SessionStore) -> AuthResponse:
    session = s.state.session
    role = "admin" if session.is_admin else "user"
    return AuthResponse(
        effects=effects,
        access_token=create_access_token(username=session.username, role=role),
        username=session.username,
        role=role,
    )


# Health
@app.get("/")
def read_root():
    return {"message": "CookieMC Store API running"}


@app.get("/view", response_model=StorefrontView)
def get_view(s: SessionStore = Depends(get_store)):
    return select_view(s.state, s.now(), s.settings)


# Auth endpoints
@app.post("/auth/login", response_model=AuthResponse)
def login(data: LoginRequest, s: SessionStore = Depends(get_store)):
    effects = s.dispatch(Login(**data.model_dump()))
    return issue_token(effects, s)


@app.post("/auth/register", response_model=AuthResponse)
def register(data: RegisterRequest, s: SessionStore = Depends(get_store)):
    effects = s.dispatch(Register(**data.model_dump()))
    return issue_token(effects, s)


@app.post("/auth/logout", response_model=CommandResponse)
def logout(s: SessionStore = Depends(get_store)):
    return run(Logout(), s)


@app.post("/dialog", response_model=CommandResponse)
def open_dialog(data: DialogRequest, s: SessionStore = Depends(get_store)):
    return run(OpenDialog(dialog=data.dialog), s)


@app.delete("/dialog", response_model=CommandResponse)
def close_dialog(s: SessionStore = Depends(get_store)):
    return run(CloseDialog(), s)


@app.post("/dialog/admin-mode", response_model=CommandResponse)
def set_admin_mode(data: AdminModeRequest, s: SessionStore = Depends(get_store)):
    return run(SetAdminMode(enabled=data.enabled), s)


# Navigation and skins
@app.post("/navigate", response_model=CommandResponse)
def navigate(data: NavigateRequest, s: SessionStore = Depends(get_store)):
    return run(Navigate(page=data.page), s)


@app.post("/skins/select", response_model=CommandResponse)
def select_skin(data: SkinSelectRequest, s: SessionStore = Depends(get_store)):
    return run(SelectSkin(url=data.url), s)


@app.post("/skins/search", response_model=CommandResponse)
def search_skin(data: SkinSearchRequest, s: SessionStore = Depends(get_store)):
    return run(SearchSkin(username=data.username), s)


# Shop
@app.post("/discount", response_model=CommandResponse)
def apply_discount(data: DiscountRequest, s: SessionStore = Depends(get_store)):
    return run(ApplyDiscountCode(code=data.code), s)


@app.post("/purchase/{kind}/{key}", response_model=CommandResponse)
def purchase(kind: str, key: str, s: SessionStore = Depends(get_store)):
    return run(Purchase(item=catalog_item(kind, key)), s)


@app.post("/cart/{kind}/{key}", response_model=CommandResponse)
def add_to_cart(kind: str, key: str, s: SessionStore = Depends(get_store)):
    return run(AddToCart(item=catalog_item(kind, key)), s)


# Community links
@app.post("/share/server-ip", response_model=CommandResponse)
def copy_server_ip(s: SessionStore = Depends(get_store)):
    return run(CopyServerAddress(), s)


@app.post("/share/discord-invite", response_model=CommandResponse)
def copy_discord_invite(s: SessionStore = Depends(get_store)):
    return run(CopyDiscordInvite(), s)


@app.post("/share/discord", response_model=CommandResponse)
def join_discord(s: SessionStore = Depends(get_store)):
    return run(JoinDiscord(), s)


# Orders - admin
@app.get("/admin/orders", response_model=List[Order])
def list_orders(_: TokenData = Depends(require_admin), s: SessionStore = Depends(get_store)):
    return s.state.orders


@app.delete("/admin/orders/{order_id}", response_model=CommandResponse)
def delete_order(order_id: str, _: TokenData = Depends(require_admin), s: SessionStore = Depends(get_store)):
    return run(DeleteOrder(order_id=order_id), s)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
