import pytest

from app.core.errors import DependencyFailure, ForbiddenError, NotFoundError


@pytest.mark.asyncio
async def test_notify_stores_then_pushes(dispatcher, store, push_sink, seller):
    notification = await dispatcher.notify(seller.id, "Hello", "World", product_id="p1")

    assert store.tables["notifications"][notification["id"]]["read"] is False
    assert notification["type_id"] == 2
    [(recipient, payload)] = push_sink.sent
    assert recipient == seller.id
    assert payload["type"] == "notification"
    assert payload["data"]["id"] == notification["id"]
    assert payload["data"]["title"] == "Hello"


@pytest.mark.asyncio
async def test_push_failure_is_swallowed(dispatcher, store, push_sink, seller):
    push_sink.fail = True

    notification = await dispatcher.notify(seller.id, "Hello", "World")

    assert notification["id"] in store.tables["notifications"]
    assert push_sink.sent == []


@pytest.mark.asyncio
async def test_storage_failure_is_raised(dispatcher, store, push_sink, seller):
    store.failing.add(("create", "notifications"))

    with pytest.raises(DependencyFailure):
        await dispatcher.notify(seller.id, "Hello", "World")
    assert push_sink.sent == []


@pytest.mark.asyncio
async def test_notify_safely_returns_none_on_storage_failure(dispatcher, store, seller):
    store.failing.add(("create", "notifications"))
    assert await dispatcher.notify_safely(seller.id, "Hello", "World") is None


def test_staff_recipients(dispatcher, make_user):
    admin = make_user("Administrator", name="admin")
    both = make_user("Moderator", "Administrator", name="both")
    make_user("User", name="user")

    assert sorted(dispatcher.staff_recipients()) == sorted([admin.id, both.id])


@pytest.mark.asyncio
async def test_incidence_resolved_without_product_sends_nothing(dispatcher, store):
    incidence = {"id": "i1", "product_id": "p1"}
    assert await dispatcher.incidence_resolved(incidence, None, "approved", False) is None
    assert store.tables["notifications"] == {}


@pytest.mark.asyncio
async def test_list_and_mark_read(dispatcher, seller, make_user):
    stranger = make_user("User", name="stranger")
    first = await dispatcher.notify(seller.id, "One", "1")
    await dispatcher.notify(stranger.id, "Other", "2")

    assert [n["id"] for n in dispatcher.list_for_user(seller)] == [first["id"]]
    assert dispatcher.mark_read(first["id"], seller)["read"] is True
    with pytest.raises(ForbiddenError):
        dispatcher.mark_read(first["id"], stranger)
    with pytest.raises(NotFoundError):
        dispatcher.mark_read("0123456789abcdef01234567", seller)
