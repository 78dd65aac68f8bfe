"""
Session store for the CookieMC Store

All mutable state of one running storefront lives in a StoreState value.
Commands are applied by reduce(), which returns the next state together with
the effects (notifications, clipboard writes, links) the shell should carry
out. reduce() raises a StoreError instead of returning when a command is
rejected, so a rejected command never changes the state.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Annotated, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from schemas import (
    DEFAULT_AVATAR,
    Account,
    CatalogItem,
    DialogName,
    DiscountState,
    Order,
    PageName,
    Session,
    discounted_price,
    seed_accounts,
    verify_password,
)

logger = logging.getLogger(__name__)

LOGIN_COINS = 2500
REGISTER_COINS = 100

RANK_COLORS = {
    "Admin": "#FF0000",
    "VIP": "#FFD700",
    "Member": "#90EE90",
}

PURCHASE_MESSAGE = (
    "Purchase Successful! Thank you for your purchase! "
    "Go to Discord and make a ticket to get your rank/coins!"
)


# Errors

class StoreError(Exception):
    """A command was rejected. Nothing in the store changed."""

    status_code = 400
    message = "Request rejected"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class AccountNotFound(StoreError):
    status_code = 404
    message = "Account does not exist! Please register first."


class InvalidCredentials(StoreError):
    status_code = 401
    message = "Incorrect password!"


class InvalidAdminPassword(StoreError):
    status_code = 401
    message = "Incorrect admin password!"


class NotAnAdminAccount(StoreError):
    status_code = 403
    message = "This account is not an admin account!"


class InvalidDiscountCode(StoreError):
    status_code = 400
    message = "Invalid discount code!"


class Unauthorized(StoreError):
    status_code = 403
    message = "Admin access required"


# Effects

class Notification(BaseModel):
    type: Literal["notification"] = "notification"
    message: str
    severity: Literal["success", "error"] = "success"
    duration_ms: int = 2000


class ClipboardWrite(BaseModel):
    type: Literal["clipboard"] = "clipboard"
    text: str


class OpenLink(BaseModel):
    type: Literal["open_link"] = "open_link"
    url: str


Effect = Annotated[Union[Notification, ClipboardWrite, OpenLink], Field(discriminator="type")]


class StoreSettings(BaseModel):
    admin_password: str = "admin123"
    discount_code: str = "nightermc"
    server_name: str = "CookieMC"
    server_address: str = "cookiemc.vaulthosting.in"
    discord_invite_url: str = "https://discord.gg/r9km3pQV"
    avatar_url_template: str = "https://mc-heads.net/avatar/{username}/64"


# Commands

Item = Annotated[CatalogItem, Field(discriminator="kind")]


class Login(BaseModel):
    username: str
    password: str
    admin_requested: bool = False
    admin_password: str = ""


class Register(BaseModel):
    username: str
    password: str
    admin_requested: bool = False
    admin_password: str = ""
    avatar_url: Optional[str] = Field(None, description="Defaults to the selected skin")


class Logout(BaseModel):
    pass


class Purchase(BaseModel):
    item: Item


class AddToCart(BaseModel):
    item: Item


class DeleteOrder(BaseModel):
    order_id: str


class ApplyDiscountCode(BaseModel):
    code: str


class SelectSkin(BaseModel):
    url: str


class SearchSkin(BaseModel):
    username: str


class Navigate(BaseModel):
    page: PageName


class OpenDialog(BaseModel):
    dialog: DialogName


class CloseDialog(BaseModel):
    pass


class SetAdminMode(BaseModel):
    enabled: bool


class CopyServerAddress(BaseModel):
    pass


class CopyDiscordInvite(BaseModel):
    pass


class JoinDiscord(BaseModel):
    pass


Command = Union[
    Login, Register, Logout, Purchase, AddToCart, DeleteOrder, ApplyDiscountCode,
    SelectSkin, SearchSkin, Navigate, OpenDialog, CloseDialog, SetAdminMode,
    CopyServerAddress, CopyDiscordInvite, JoinDiscord,
]


class StoreState(BaseModel):
    accounts: List[Account] = Field(default_factory=seed_accounts)
    session: Optional[Session] = None
    orders: List[Order] = Field(default_factory=list, description="Newest first")
    discount: DiscountState = Field(default_factory=DiscountState)
    page: PageName = "home"
    selected_skin: str = DEFAULT_AVATAR
    dialog: Optional[DialogName] = None
    admin_mode: bool = False
    cart: List[Item] = Field(default_factory=list)

    def find_account(self, username: str) -> Optional[Account]:
        # First match wins when usernames repeat
        for account in self.accounts:
            if account.username == username:
                return account
        return None

    @property
    def is_admin_session(self) -> bool:
        return self.session is not None and self.session.is_admin


Result = Tuple[StoreState, List[Effect]]


def _notify(message: str, duration_ms: int = 2000) -> Notification:
    return Notification(message=message, duration_ms=duration_ms)


def _admin_secret_matches(given: str, settings: StoreSettings) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), settings.admin_password.encode("utf-8"))


def _order_id(orders: List[Order], now: datetime) -> str:
    base = f"payment_{int(now.timestamp() * 1000)}"
    taken = {o.id for o in orders}
    candidate, n = base, 1
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def _display_date(now: datetime) -> str:
    return f"{now.month}/{now.day}/{now.year}"


def _login(state: StoreState, cmd: Login, now: datetime, settings: StoreSettings) -> Result:
    account = state.find_account(cmd.username)
    if account is None:
        raise AccountNotFound()
    if not verify_password(cmd.password, account.password_hash):
        raise InvalidCredentials()
    if cmd.admin_requested:
        if not _admin_secret_matches(cmd.admin_password, settings):
            raise InvalidAdminPassword()
        if not account.is_admin:
            raise NotAnAdminAccount()

    rank_name = "Admin" if account.is_admin else account.rank
    # Login always shows the default skin, whatever was picked before
    session = Session(
        id=secrets.token_hex(8),
        username=account.username,
        avatar_url=DEFAULT_AVATAR,
        coin_balance=LOGIN_COINS,
        rank_name=rank_name,
        rank_color=RANK_COLORS.get(rank_name, RANK_COLORS["VIP"]),
        is_admin=account.is_admin,
    )
    suffix = " (Admin)" if account.is_admin else ""
    new_state = state.model_copy(update={"session": session, "dialog": None, "admin_mode": False})
    return new_state, [_notify(f"Welcome back, {account.username}!{suffix}")]


def _register(state: StoreState, cmd: Register, now: datetime, settings: StoreSettings) -> Result:
    if not cmd.username or not cmd.password:
        return state, []
    if cmd.admin_requested and not _admin_secret_matches(cmd.admin_password, settings):
        raise InvalidAdminPassword()

    is_admin = cmd.admin_requested
    rank_name = "Admin" if is_admin else "Member"
    account = Account.create(cmd.username, cmd.password, is_admin=is_admin, rank=rank_name)
    session = Session(
        id=secrets.token_hex(8),
        username=cmd.username,
        avatar_url=cmd.avatar_url or state.selected_skin,
        coin_balance=REGISTER_COINS,
        rank_name=rank_name,
        rank_color=RANK_COLORS[rank_name],
        is_admin=is_admin,
    )
    suffix = " (Admin)" if is_admin else ""
    new_state = state.model_copy(update={
        "accounts": state.accounts + [account],
        "session": session,
        "dialog": None,
        "admin_mode": False,
    })
    return new_state, [_notify(f"Account created! Welcome, {cmd.username}!{suffix}")]


def _logout(state: StoreState, cmd: Logout, now: datetime, settings: StoreSettings) -> Result:
    new_state = state.model_copy(update={
        "session": None,
        "page": "home",
        "discount": DiscountState(),
    })
    return new_state, [_notify("Logged out successfully!")]


def _purchase(state: StoreState, cmd: Purchase, now: datetime, settings: StoreSettings) -> Result:
    item = cmd.item
    discount_used = state.discount.applied
    amount = discounted_price(item.price) if discount_used else item.price
    session = state.session
    order = Order(
        id=_order_id(state.orders, now),
        amount=amount,
        item=item.label,
        date=_display_date(now),
        status="completed",
        player_name=session.username if session else "Guest",
        player_skin=session.avatar_url if session else DEFAULT_AVATAR,
        purchased_at=now,
        original_price=item.price if discount_used else None,
        discount_applied=discount_used,
    )
    updates = {"orders": [order] + state.orders}
    if discount_used:
        updates["discount"] = DiscountState()
    return state.model_copy(update=updates), [_notify(PURCHASE_MESSAGE, duration_ms=5000)]


def _add_to_cart(state: StoreState, cmd: AddToCart, now: datetime, settings: StoreSettings) -> Result:
    new_state = state.model_copy(update={"cart": state.cart + [cmd.item]})
    return new_state, [_notify(f"{cmd.item.label} added to cart!")]


def _delete_order(state: StoreState, cmd: DeleteOrder, now: datetime, settings: StoreSettings) -> Result:
    if not state.is_admin_session:
        raise Unauthorized()
    remaining = [o for o in state.orders if o.id != cmd.order_id]
    if len(remaining) == len(state.orders):
        return state, []
    return state.model_copy(update={"orders": remaining}), [_notify("Payment deleted successfully!")]


def _apply_discount(state: StoreState, cmd: ApplyDiscountCode, now: datetime, settings: StoreSettings) -> Result:
    if cmd.code.lower() != settings.discount_code.lower():
        raise InvalidDiscountCode()
    new_state = state.model_copy(update={"discount": DiscountState(code=cmd.code, applied=True)})
    return new_state, [_notify("Discount code applied! 50% off your next purchase!", duration_ms=3000)]


def _select_skin(state: StoreState, cmd: SelectSkin, now: datetime, settings: StoreSettings) -> Result:
    return state.model_copy(update={"selected_skin": cmd.url}), []


def _search_skin(state: StoreState, cmd: SearchSkin, now: datetime, settings: StoreSettings) -> Result:
    username = cmd.username.strip()
    if not username:
        return state, []
    url = settings.avatar_url_template.format(username=username)
    return state.model_copy(update={"selected_skin": url}), [_notify(f"Skin loaded for {username}!")]


def _navigate(state: StoreState, cmd: Navigate, now: datetime, settings: StoreSettings) -> Result:
    return state.model_copy(update={"page": cmd.page}), []


def _open_dialog(state: StoreState, cmd: OpenDialog, now: datetime, settings: StoreSettings) -> Result:
    return state.model_copy(update={"dialog": cmd.dialog}), []


def _close_dialog(state: StoreState, cmd: CloseDialog, now: datetime, settings: StoreSettings) -> Result:
    return state.model_copy(update={"dialog": None, "admin_mode": False}), []


def _set_admin_mode(state: StoreState, cmd: SetAdminMode, now: datetime, settings: StoreSettings) -> Result:
    return state.model_copy(update={"admin_mode": cmd.enabled}), []


def _copy_server_address(state: StoreState, cmd: CopyServerAddress, now: datetime, settings: StoreSettings) -> Result:
    return state, [
        ClipboardWrite(text=settings.server_address),
        _notify("Server IP copied to clipboard!"),
    ]


def _copy_discord_invite(state: StoreState, cmd: CopyDiscordInvite, now: datetime, settings: StoreSettings) -> Result:
    return state, [
        ClipboardWrite(text=settings.discord_invite_url),
        _notify("Discord invite copied to clipboard!"),
    ]


def _join_discord(state: StoreState, cmd: JoinDiscord, now: datetime, settings: StoreSettings) -> Result:
    return state, [OpenLink(url=settings.discord_invite_url)]


_HANDLERS: Dict[type, Callable[..., Result]] = {
    Login: _login,
    Register: _register,
    Logout: _logout,
    Purchase: _purchase,
    AddToCart: _add_to_cart,
    DeleteOrder: _delete_order,
    ApplyDiscountCode: _apply_discount,
    SelectSkin: _select_skin,
    SearchSkin: _search_skin,
    Navigate: _navigate,
    OpenDialog: _open_dialog,
    CloseDialog: _close_dialog,
    SetAdminMode: _set_admin_mode,
    CopyServerAddress: _copy_server_address,
    CopyDiscordInvite: _copy_discord_invite,
    JoinDiscord: _join_discord,
}


def reduce(state: StoreState, command: Command, now: datetime, settings: StoreSettings) -> Result:
    """Apply one command. Raises StoreError when the command is rejected."""
    try:
        handler = _HANDLERS[type(command)]
    except KeyError:
        raise TypeError(f"Unknown command: {type(command).__name__}")
    return handler(state, command, now, settings)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Owns the state of one storefront instance and applies commands to it one at a time."""

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        accounts: Optional[List[Account]] = None,
    ):
        self.settings = settings or StoreSettings()
        self.clock = clock
        self._seed_accounts = accounts
        self.state = self._initial_state()

    def _initial_state(self) -> StoreState:
        if self._seed_accounts is None:
            return StoreState()
        return StoreState(accounts=list(self._seed_accounts))

    def now(self) -> datetime:
        return self.clock()

    def dispatch(self, command: Command) -> List[Effect]:
        name = type(command).__name__
        previous = self.state
        try:
            self.state, effects = reduce(self.state, command, self.now(), self.settings)
        except StoreError as e:
            logger.warning("%s rejected: %s", name, e.message)
            raise
        logger.debug("%s applied, %d effect(s)", name, len(effects))
        if isinstance(command, (Login, Register)) and self.state is not previous:
            logger.info("Session opened for %s", self.state.session.username)
        elif isinstance(command, Logout):
            logger.info("Session closed")
        elif isinstance(command, Purchase):
            order = self.state.orders[0]
            logger.info("Order %s: %s for $%d", order.id, order.item, order.amount)
        return effects

    def seed(self, accounts: Optional[List[Account]] = None, orders: Optional[List[Order]] = None) -> None:
        updates = {}
        if accounts is not None:
            updates["accounts"] = list(accounts)
        if orders is not None:
            updates["orders"] = list(orders)
        self.state = self.state.model_copy(update=updates)

    def reset(self) -> None:
        self.state = self._initial_state()
