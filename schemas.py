"""
Data Schemas for the CookieMC Store

Each Pydantic model describes one kind of record held by the session store.
Nothing is persisted: records live for the lifetime of the running instance.

Records:
- account
- session
- rank / coinpackage (static catalog)
- order
- discountstate
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Literal, Optional, Union

from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

DEFAULT_AVATAR = "https://mc-heads.net/avatar/steve/64"
DISCOUNT_RATE = Decimal("0.5")

OrderStatus = Literal["completed", "pending", "failed"]
PageName = Literal["home", "coins", "ranks", "admin-tickets"]
DialogName = Literal["login", "register"]


def discounted_price(price: int) -> int:
    # Halves round up: $9 -> $5, $3 -> $2
    return int((Decimal(price) * DISCOUNT_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


class Account(BaseModel):
    """
    Account directory entry
    Usernames are case-sensitive and not required to be unique.
    """
    username: str = Field(..., description="In-game name")
    password_hash: str = Field(..., description="Password hash (not plain text)")
    is_admin: bool = Field(False, description="Whether the account may open the admin panel")
    rank: str = Field("VIP", description="Rank shown when a non-admin logs in")

    @classmethod
    def create(cls, username: str, password: str, is_admin: bool = False, rank: str = "VIP") -> "Account":
        return cls(username=username, password_hash=hash_password(password), is_admin=is_admin, rank=rank)


class Session(BaseModel):
    """
    The logged-in player for the current run
    """
    id: str
    username: str
    avatar_url: str = Field(DEFAULT_AVATAR, description="Skin head image URL")
    coin_balance: int = Field(..., ge=0, description="Displayed coins, never adjusted by purchases")
    rank_name: str
    rank_color: str = Field(..., description="Hex color of the rank badge")
    is_admin: bool = False


class Rank(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["rank"] = "rank"
    name: str
    price: int = Field(..., ge=0, description="Price in USD")
    color: str

    @property
    def label(self) -> str:
        return self.name


class CoinPackage(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["coins"] = "coins"
    coins: int = Field(..., gt=0)
    price: int = Field(..., ge=0, description="Price in USD")

    @property
    def label(self) -> str:
        return f"{self.coins} coins"


CatalogItem = Union[Rank, CoinPackage]


class Order(BaseModel):
    """
    Orders collection schema
    Called "payment" in the storefront. Never mutated after creation.
    """
    id: str = Field(..., description="payment_<epoch ms>, suffixed when it collides")
    amount: int = Field(..., ge=0, description="Amount charged after discount")
    item: str = Field(..., description="Rank name or '<n> coins'")
    date: str = Field(..., description="Display date, M/D/YYYY")
    status: OrderStatus = Field("completed", description="Order status: completed, pending, failed")
    player_name: str
    player_skin: str
    purchased_at: datetime
    original_price: Optional[int] = Field(None, description="Catalog price when a discount was used")
    discount_applied: bool = False


class DiscountState(BaseModel):
    code: str = ""
    applied: bool = False


class SkinPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str


RANKS: List[Rank] = [
    Rank(name="Knight", price=3, color="#8B4513"),
    Rank(name="Titan", price=6, color="#4169E1"),
    Rank(name="Zeus", price=9, color="#FFD700"),
    Rank(name="Devil", price=12, color="#DC143C"),
]

# 1000 coins per $2
COIN_PACKAGES: List[CoinPackage] = [
    CoinPackage(coins=1000 * n, price=2 * n) for n in range(1, 7)
]

SKIN_PRESETS: List[SkinPreset] = [
    SkinPreset(name="Steve", url="https://mc-heads.net/avatar/steve/64"),
    SkinPreset(name="Alex", url="https://mc-heads.net/avatar/alex/64"),
    SkinPreset(name="Herobrine", url="https://mc-heads.net/avatar/herobrine/64"),
    SkinPreset(name="Notch", url="https://mc-heads.net/avatar/notch/64"),
    SkinPreset(name="Jeb", url="https://mc-heads.net/avatar/jeb_/64"),
    SkinPreset(name="Dinnerbone", url="https://mc-heads.net/avatar/dinnerbone/64"),
]

SEED_ACCOUNTS = [
    ("steve123", "password123", False),
    ("alex456", "mypass456", False),
    ("notch", "minecraft", False),
    ("admin", "admin123", True),
]


def seed_accounts() -> List[Account]:
    return [Account.create(u, p, is_admin=a, rank="Admin" if a else "VIP") for u, p, a in SEED_ACCOUNTS]


def find_rank(name: str) -> Optional[Rank]:
    for rank in RANKS:
        if rank.name.lower() == name.lower():
            return rank
    return None


def find_coin_package(coins: int) -> Optional[CoinPackage]:
    for pkg in COIN_PACKAGES:
        if pkg.coins == coins:
            return pkg
    return None
