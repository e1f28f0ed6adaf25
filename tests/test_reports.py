import pytest

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tests.fakes import notifications_for


@pytest.mark.asyncio
async def test_create_report_notifies_each_staff_member_once(engine, store, make_user, seller, product):
    admin = make_user("Administrator", name="admin")
    moderator = make_user("Moderator", name="moderator")
    both = make_user("Administrator", "Moderator", name="both")
    reporter = make_user("User", name="reporter")

    result = await engine.create_report("scam", "Asks for payment outside the app", reporter.id, product["id"])

    report = result["report"]
    assert result["message"] == "Report created"
    assert result["notified"] == 3
    assert result["auto_suspended"] is False
    assert report["status"] == "pending"
    assert report["incidence_id"] is None
    assert report["user_id"] == reporter.id

    for staff in (admin, moderator, both):
        [note] = notifications_for(store, staff.id)
        assert note["title"] == "New product report"
        assert note["report_id"] == report["id"]
        assert note["product_id"] == product["id"]
        assert '"Vintage bike" was reported for: scam' in note["message"]
    assert notifications_for(store, seller.id) == []


@pytest.mark.asyncio
async def test_long_description_is_truncated_in_notification(engine, store, moderator, seller, product):
    await engine.create_report("spam", "x" * 150, seller.id, product["id"])

    [note] = notifications_for(store, moderator.id)
    assert note["message"].endswith("x" * 100 + "...")


@pytest.mark.asyncio
async def test_report_without_staff_still_succeeds(engine, store, seller, product):
    result = await engine.create_report("spam", "Duplicate listing", seller.id, product["id"])

    assert result["notified"] == 0
    assert result["message"] == "Report created (no moderators to notify)"
    assert result["report"]["id"] in store.tables["reports"]


@pytest.mark.asyncio
async def test_report_on_missing_product(engine, seller):
    with pytest.raises(NotFoundError):
        await engine.create_report("spam", "Duplicate listing", seller.id, "0123456789abcdef01234567")


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["type_report", "description", "reporter_id", "product_id"])
async def test_report_requires_every_field(engine, missing):
    fields = {"type_report": "spam", "description": "d", "reporter_id": "u", "product_id": "p"}
    fields[missing] = ""
    with pytest.raises(ValidationError):
        await engine.create_report(**fields)


@pytest.mark.asyncio
async def test_failed_staff_notification_keeps_report(engine, store, moderator, seller, product):
    store.failing.add(("create", "notifications"))

    result = await engine.create_report("spam", "Duplicate listing", seller.id, product["id"])

    assert result["notified"] == 0
    assert store.tables["reports"][result["report"]["id"]]["status"] == "pending"


@pytest.mark.asyncio
async def test_fifth_pending_report_auto_suspends_product(engine, store, make_user, moderator, seller, product):
    reporters = [make_user("User", name=f"reporter{i}") for i in range(5)]

    for reporter in reporters[:4]:
        result = await engine.create_report("scam", "Fake item", reporter.id, product["id"])
        assert result["auto_suspended"] is False
    assert store.tables["products"][product["id"]]["moderation_status"] == "active"

    result = await engine.create_report("scam", "Fake item", reporters[4].id, product["id"])

    assert result["auto_suspended"] is True
    assert result["message"].endswith("and product auto-suspended")
    incidence = result["incidence"]
    assert incidence["status"] == "resolved"
    assert incidence["resolution"] == "suspended"
    assert incidence["assigned_to"] is None
    assert result["report"]["status"] == "converted_to_incidence"

    stored = store.tables["products"][product["id"]]
    assert (stored["moderation_status"], stored["status"]) == ("suspended", "inactive")
    assert all(
        r["status"] == "converted_to_incidence" and r["incidence_id"] == incidence["id"]
        for r in store.tables["reports"].values()
    )
    assert [n["title"] for n in notifications_for(store, seller.id)] == ["Product suspended"]


@pytest.mark.asyncio
async def test_escalation_runs_under_the_product_lock(engine, store, seller, product):
    for _ in range(5):
        await engine.create_report("scam", "Fake item", seller.id, product["id"])

    lock = f"product:{product['id']}"
    assert store.transaction_keys.count(lock) == 5
    store.transaction_keys.clear()
    store.operations.clear()

    await engine.create_report("scam", "Still fake", seller.id, product["id"])

    # already suspended: the section reads the product and stops
    assert store.transaction_keys == [lock]
    assert ("create", "incidences") not in store.writes()


@pytest.mark.asyncio
async def test_suspended_product_is_not_escalated_twice(engine, store, seller, product):
    for _ in range(5):
        await engine.create_report("scam", "Fake item", seller.id, product["id"])
    for _ in range(5):
        result = await engine.create_report("scam", "Still fake", seller.id, product["id"])
        assert result["auto_suspended"] is False

    assert len(store.tables["incidences"]) == 1


@pytest.mark.asyncio
async def test_escalation_can_be_disabled(engine, store, seller, product):
    engine.auto_escalate = False
    for _ in range(6):
        await engine.create_report("scam", "Fake item", seller.id, product["id"])

    assert store.tables["incidences"] == {}
    assert store.tables["products"][product["id"]]["moderation_status"] == "active"


@pytest.mark.asyncio
async def test_dismissed_reports_do_not_count_towards_escalation(engine, store, moderator, seller, product):
    first = (await engine.create_report("scam", "Fake item", seller.id, product["id"]))["report"]
    engine.dismiss_report(first["id"], moderator)
    for _ in range(4):
        result = await engine.create_report("scam", "Fake item", seller.id, product["id"])

    assert result["auto_suspended"] is False


@pytest.mark.asyncio
async def test_dismiss_report(engine, store, moderator, seller, product):
    report = (await engine.create_report("spam", "d", seller.id, product["id"]))["report"]

    result = engine.dismiss_report(report["id"], moderator)

    assert result["report"]["status"] == "dismissed"
    with pytest.raises(ConflictError):
        engine.dismiss_report(report["id"], moderator)
    with pytest.raises(ForbiddenError):
        engine.dismiss_report(report["id"], seller)


@pytest.mark.asyncio
async def test_delete_report_is_admin_only(engine, store, admin, moderator, seller, product):
    report = (await engine.create_report("spam", "d", seller.id, product["id"]))["report"]

    with pytest.raises(ForbiddenError):
        engine.delete_report(report["id"], moderator)
    engine.delete_report(report["id"], admin)

    assert report["id"] not in store.tables["reports"]
    with pytest.raises(NotFoundError):
        engine.get_report(report["id"])


@pytest.mark.asyncio
async def test_reports_by_user(engine, make_user, seller, product):
    other = make_user("User", name="other")
    mine = (await engine.create_report("spam", "d", seller.id, product["id"]))["report"]
    await engine.create_report("spam", "d", other.id, product["id"])

    assert [r["id"] for r in engine.reports_by_user(seller.id)] == [mine["id"]]
    assert len(engine.list_reports()) == 2
