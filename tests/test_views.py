from datetime import timedelta

import pytest

from schemas import Order
from store import ApplyDiscountCode, Login, Navigate, Register
from views import AdminContent, CatalogContent, HomeContent, recent_orders, resolve_page, select_view


def make_order(n, purchased_at, status="completed"):
    return Order(
        id=f"payment_{n}",
        amount=3,
        item="Knight",
        date="10/1/2026",
        status=status,
        player_name=f"player{n}",
        player_skin="https://mc-heads.net/avatar/steve/64",
        purchased_at=purchased_at,
    )


def test_recent_orders_window(clock):
    now = clock.now
    orders = [
        make_order(1, now - timedelta(days=13, hours=23)),
        make_order(2, now - timedelta(days=14)),
        make_order(3, now - timedelta(days=14, seconds=1)),
        make_order(4, now - timedelta(days=30)),
    ]
    assert [o.id for o in recent_orders(orders, now)] == ["payment_1", "payment_2"]


def test_recent_orders_only_completed(clock):
    now = clock.now
    orders = [
        make_order(1, now, status="pending"),
        make_order(2, now, status="failed"),
        make_order(3, now),
    ]
    assert [o.id for o in recent_orders(orders, now)] == ["payment_3"]


def test_recent_orders_capped_and_ordered(clock):
    now = clock.now
    orders = [make_order(n, now - timedelta(hours=n)) for n in range(12)]
    recent = recent_orders(orders, now)
    assert len(recent) == 8
    assert [o.id for o in recent] == [f"payment_{n}" for n in range(8)]
    assert len(recent_orders(orders, now, limit=None)) == 12


def test_recent_orders_age_out_as_time_passes(store, clock):
    store.seed(orders=[make_order(1, clock.now - timedelta(days=13))])
    assert len(select_view(store.state, store.now(), store.settings).sidebar.recent_orders) == 1
    clock.advance(days=2)
    assert select_view(store.state, store.now(), store.settings).sidebar.recent_orders == []


@pytest.mark.parametrize("page", ["home", "coins", "ranks"])
def test_resolve_public_pages(page):
    assert resolve_page(page, None) == page


def test_resolve_unknown_page():
    assert resolve_page("checkout", None) == "home"


def test_admin_page_falls_back_to_home_when_logged_out(store):
    store.dispatch(Navigate(page="admin-tickets"))
    view = select_view(store.state, store.now(), store.settings)
    assert view.page == "home"
    assert isinstance(view.content, HomeContent)
    assert view.content.server_address == "cookiemc.vaulthosting.in"


def test_admin_page_falls_back_to_home_for_members(store):
    store.dispatch(Register(username="creeper", password="boom"))
    store.dispatch(Navigate(page="admin-tickets"))
    view = select_view(store.state, store.now(), store.settings)
    assert view.page == "home"
    assert not view.sidebar.can_open_admin


def test_admin_page_lists_all_orders(store, clock):
    old = make_order(1, clock.now - timedelta(days=60))
    store.seed(orders=[old])
    store.dispatch(Login(username="admin", password="admin123"))
    store.dispatch(Navigate(page="admin-tickets"))

    view = select_view(store.state, store.now(), store.settings)
    assert view.page == "admin-tickets"
    assert isinstance(view.content, AdminContent)
    assert view.content.order_count == 1
    assert view.content.orders == [old]
    assert view.sidebar.recent_orders == []
    assert view.sidebar.can_open_admin


def test_catalog_pages_show_discounted_prices(store):
    store.dispatch(Navigate(page="ranks"))
    view = select_view(store.state, store.now(), store.settings)
    assert isinstance(view.content, CatalogContent)
    assert [(l.label, l.price, l.discounted_price) for l in view.content.listings] == [
        ("Knight", 3, None), ("Titan", 6, None), ("Zeus", 9, None), ("Devil", 12, None),
    ]

    store.dispatch(ApplyDiscountCode(code="nightermc"))
    store.dispatch(Navigate(page="coins"))
    view = select_view(store.state, store.now(), store.settings)
    assert view.content.kind == "coins"
    assert [l.discounted_price for l in view.content.listings] == [1, 2, 3, 4, 5, 6]
    assert view.content.listings[0].label == "1000 coins"
