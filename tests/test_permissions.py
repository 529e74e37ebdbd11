from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from app.core.permissions import (
    GroupType,
    Permission,
    effective_permissions,
    has_permission,
    sanitize_overrides,
)
from app.deps import require_permission
from app.services.authorization_service import AuthorizationService
from tests.fixtures_data import ACCESS_DENIED_SEND


def _build_request(path: str = "/api/v1/whatsapp/send", method: str = "POST") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def _user(group_type: str, overrides: dict | None = None, user_id: int = 1):
    group = SimpleNamespace(group_type=group_type, custom_permissions=overrides or {})
    return SimpleNamespace(id=user_id, tenant_id=1, user_group=group)


@pytest.mark.parametrize(
    ("group_type", "permission", "expected"),
    [
        ("admin", Permission.CAN_DELETE_USERS, True),
        ("admin", Permission.CAN_MANAGE_GROUPS, True),
        ("editor", Permission.CAN_SEND_MESSAGES, True),
        ("editor", Permission.CAN_LINK_DEVICES, True),
        ("editor", Permission.CAN_CREATE_USERS, False),
        ("viewer", Permission.CAN_VIEW_LOGS, True),
        ("viewer", Permission.CAN_SEND_MESSAGES, False),
        ("viewer", Permission.CAN_LINK_DEVICES, False),
    ],
)
def test_group_type_defaults(group_type, permission, expected):
    assert has_permission(group_type, permission) is expected


def test_override_wins_over_default_in_both_directions():
    assert has_permission("viewer", Permission.CAN_SEND_MESSAGES, {"canSendMessages": True}) is True
    assert has_permission("admin", Permission.CAN_DELETE_USERS, {"canDeleteUsers": False}) is False


def test_unknown_group_type_denies_everything():
    assert not any(effective_permissions("superuser").values())
    assert has_permission(None, Permission.CAN_VIEW_LOGS) is False


def test_effective_permissions_uses_wire_names():
    permissions = effective_permissions(GroupType.EDITOR, {"canCreateUsers": True})

    assert set(permissions) == {permission.value for permission in Permission}
    assert permissions["canCreateUsers"] is True
    assert permissions["canDeleteUsers"] is False


def test_sanitize_overrides_drops_unknown_keys():
    assert sanitize_overrides({"canSendMessages": 1, "canFly": True, "canViewLogs": None}) == {
        "canSendMessages": True
    }


def test_require_permission_denies_viewer_sending():
    dependency = require_permission(Permission.CAN_SEND_MESSAGES)

    with pytest.raises(HTTPException) as exc:
        dependency(request=_build_request(), user=_user("viewer"))

    assert exc.value.status_code == ACCESS_DENIED_SEND["expected_status_code"]
    assert exc.value.detail == ACCESS_DENIED_SEND["expected_detail"]


def test_require_permission_checks_every_listed_capability():
    dependency = require_permission(Permission.CAN_VIEW_LOGS, Permission.CAN_LINK_DEVICES)
    editor = _user("editor")

    assert dependency(request=_build_request(), user=editor) is editor
    with pytest.raises(HTTPException):
        dependency(request=_build_request(), user=_user("viewer"))


def test_user_without_group_is_denied():
    user = SimpleNamespace(id=5, tenant_id=1, user_group=None)

    assert AuthorizationService.user_has_permission(user, Permission.CAN_VIEW_LOGS) is False


def test_self_action_is_allowed_without_permission():
    viewer = _user("viewer", user_id=7)

    AuthorizationService.ensure_self_or_permission(
        user=viewer,
        target_user_id=7,
        permission=Permission.CAN_CREATE_USERS,
        request=_build_request(path="/api/v1/users/7", method="PATCH"),
    )

    with pytest.raises(HTTPException) as exc:
        AuthorizationService.ensure_self_or_permission(
            user=viewer,
            target_user_id=8,
            permission=Permission.CAN_CREATE_USERS,
            request=_build_request(path="/api/v1/users/8", method="PATCH"),
        )
    assert exc.value.status_code == 403
    assert exc.value.detail == "You can only modify your own profile"


def test_viewer_gets_403_from_api_when_sending(client, make_member):
    viewer = make_member("viewer")

    response = client.post(
        "/api/v1/whatsapp/send",
        json={"deviceId": "any", "phoneNumber": "+5511999990000", "content": "oi"},
        headers=viewer["headers"],
    )

    assert response.status_code == 403
    assert response.json()["detail"] == ACCESS_DENIED_SEND["expected_detail"]


def test_group_override_grants_capability_through_api(client, make_member):
    viewer = make_member("viewer", {"canSendMessages": True})

    response = client.post(
        "/api/v1/contacts",
        json={"phoneNumber": "+5511977776666"},
        headers=viewer["headers"],
    )

    assert response.status_code == 201
