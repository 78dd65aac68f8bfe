"""
View selection for the storefront

select_view() maps the store state to the page a player should see plus the
sidebar shown next to every page. It reads the clock it is given on every
call; nothing here is cached.
"""

from datetime import datetime, timedelta
from typing import List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from schemas import (
    COIN_PACKAGES,
    RANKS,
    SKIN_PRESETS,
    CatalogItem,
    DiscountState,
    Order,
    PageName,
    Session,
    SkinPreset,
    discounted_price,
)
from store import Item, StoreSettings, StoreState

RECENT_WINDOW = timedelta(days=14)
RECENT_LIMIT = 8


class Listing(BaseModel):
    item: Item
    label: str
    price: int
    discounted_price: Optional[int] = None


class HomeContent(BaseModel):
    kind: Literal["home"] = "home"
    server_name: str
    server_address: str
    discord_invite_url: str


class CatalogContent(BaseModel):
    kind: Literal["coins", "ranks"]
    title: str
    listings: List[Listing]


class AdminContent(BaseModel):
    kind: Literal["admin-tickets"] = "admin-tickets"
    orders: List[Order]
    order_count: int
    # Tickets are opened on Discord; none are tracked here yet
    tickets: List[str] = []


class Sidebar(BaseModel):
    session: Optional[Session]
    selected_skin: str
    skin_presets: List[SkinPreset]
    discount: DiscountState
    recent_orders: List[Order]
    can_open_admin: bool


class StorefrontView(BaseModel):
    page: PageName
    content: Union[HomeContent, CatalogContent, AdminContent] = Field(..., discriminator="kind")
    sidebar: Sidebar


def resolve_page(page: str, session: Optional[Session]) -> PageName:
    """Pages a session may not see fall back to home."""
    if page == "admin-tickets":
        return page if session is not None and session.is_admin else "home"
    if page in ("coins", "ranks"):
        return page
    return "home"


def recent_orders(orders: Sequence[Order], now: datetime, limit: Optional[int] = RECENT_LIMIT) -> List[Order]:
    """Completed orders from the last 14 days, newest first."""
    cutoff = now - RECENT_WINDOW
    recent = [o for o in orders if o.status == "completed" and o.purchased_at >= cutoff]
    if limit is not None:
        recent = recent[:limit]
    return recent


def listings(items: Sequence[CatalogItem], discount: DiscountState) -> List[Listing]:
    return [
        Listing(
            item=item,
            label=item.label,
            price=item.price,
            discounted_price=discounted_price(item.price) if discount.applied else None,
        )
        for item in items
    ]


def select_view(state: StoreState, now: datetime, settings: StoreSettings) -> StorefrontView:
    page = resolve_page(state.page, state.session)
    if page == "admin-tickets":
        content = AdminContent(orders=state.orders, order_count=len(state.orders))
    elif page == "coins":
        content = CatalogContent(kind="coins", title="Coins Store", listings=listings(COIN_PACKAGES, state.discount))
    elif page == "ranks":
        content = CatalogContent(kind="ranks", title="Ranks Store", listings=listings(RANKS, state.discount))
    else:
        content = HomeContent(
            server_name=settings.server_name,
            server_address=settings.server_address,
            discord_invite_url=settings.discord_invite_url,
        )
    sidebar = Sidebar(
        session=state.session,
        selected_skin=state.selected_skin,
        skin_presets=SKIN_PRESETS,
        discount=state.discount,
        recent_orders=recent_orders(state.orders, now),
        can_open_admin=state.is_admin_session,
    )
    return StorefrontView(page=page, content=content, sidebar=sidebar)
