import pytest

from app.core.errors import ForbiddenError, ValidationError
from app.core.security import create_access_token, verify_access_token, verify_token
from app.models.common import parse_enum, require_fields
from app.models.incidence_model import Resolution
from app.models.user_model import Actor
from app.services.access import require_admin, require_moderator_or_admin, require_owner_or_admin

ADMIN = Actor(id="a1", roles=frozenset({"Administrator"}))
MODERATOR = Actor(id="m1", roles=frozenset({"Moderator"}))
SELLER = Actor(id="s1", roles=frozenset({"User"}))
STRANGER = Actor(id="x1")


def test_owner_or_admin():
    product = {"id": "p1", "seller_id": "s1"}
    require_owner_or_admin(SELLER, product)
    require_owner_or_admin(ADMIN, product)
    for actor in (MODERATOR, STRANGER):
        with pytest.raises(ForbiddenError):
            require_owner_or_admin(actor, product)


def test_moderator_or_admin():
    require_moderator_or_admin(ADMIN)
    require_moderator_or_admin(MODERATOR)
    with pytest.raises(ForbiddenError):
        require_moderator_or_admin(SELLER)


def test_admin_only():
    require_admin(ADMIN)
    with pytest.raises(ForbiddenError):
        require_admin(MODERATOR)


def test_parse_enum():
    assert parse_enum(Resolution, "approved", "resolution") is Resolution.APPROVED
    with pytest.raises(ValidationError) as excinfo:
        parse_enum(Resolution, "banned", "resolution")
    assert excinfo.value.details == {"field": "resolution", "value": "banned"}


def test_require_fields_names_missing():
    require_fields(a="x", b=0)
    with pytest.raises(ValidationError) as excinfo:
        require_fields(a="", b=None, c="ok")
    assert excinfo.value.details == {"missing": ["a", "b"]}


def test_access_token_round_trip():
    token = create_access_token("user-1")
    assert verify_access_token(token) == "user-1"
    assert verify_token(token, "refresh") is None


def test_tampered_or_expired_token():
    assert verify_access_token("garbage") is None
    expired = create_access_token("user-1", expires_delta=-1)
    assert expired and verify_access_token(expired) is None
