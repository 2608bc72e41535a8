import pytest

from app.branchlink.core.error_catalog import AppError
from app.branchlink.db.models import RequestStatus
from app.branchlink.services.request_state_machine import TransferRequestStateMachine
from tests.network_helpers import approve, create_request, move_to_delivered, seed_network, stock_of


def _actions(request_id):
    base = f"/branchlink/transfers/{request_id}"
    return {
        "update_quantity": ("patch", base, {"quantity": 3}),
        "approve": ("post", f"{base}/approve", {"issue_number": "IS-2", "issued_quantity": 1}),
        "reject": ("post", f"{base}/reject", {"reason": "late"}),
        "cancel": ("post", f"{base}/cancel", None),
        "assign_driver": ("post", f"{base}/assign-driver", {"driver_id": "driver1"}),
        "confirm_pickup": ("post", f"{base}/pickup", None),
        "complete_delivery": ("post", f"{base}/deliver", None),
        "confirm_reception": ("post", f"{base}/receive", {"receipt_number": "RC-2"}),
        "archive": ("post", f"{base}/archive", None),
        "delete": ("delete", base, None),
    }


LEGAL_FROM = {
    "PENDING": {"update_quantity", "approve", "reject", "cancel"},
    "DISTRIBUTION": {"assign_driver"},
    "ASSIGNED": {"confirm_pickup"},
    "PICKED_UP": {"complete_delivery"},
    "DELIVERED": {"confirm_reception"},
    "COMPLETED": {"archive"},
    "REJECTED": {"archive", "delete"},
    "CANCELLED": {"archive", "delete"},
    "EXPIRED": {"archive", "delete"},
}


def _drive_to(client, clock, request_id, status):
    if status == "PENDING":
        return
    if status == "EXPIRED":
        clock.advance(minutes=31)
        return
    if status == "REJECTED":
        client.post(f"/branchlink/transfers/{request_id}/reject", json={"reason": "no"})
        return
    if status == "CANCELLED":
        client.post(f"/branchlink/transfers/{request_id}/cancel")
        return
    approve(client, request_id, 5)
    steps = [
        ("ASSIGNED", "assign-driver", {"driver_id": "driver1"}),
        ("PICKED_UP", "pickup", None),
        ("DELIVERED", "deliver", None),
        ("COMPLETED", "receive", {"receipt_number": "RC-1"}),
    ]
    current = "DISTRIBUTION"
    for target, path, body in steps:
        if current == status:
            return
        client.post(f"/branchlink/transfers/{request_id}/{path}", json=body)
        current = target


@pytest.mark.parametrize("status", sorted(LEGAL_FROM))
def test_illegal_transitions_change_nothing(client, db_session, clock, status):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=5)
    _drive_to(client, clock, request["id"], status)
    current = client.get(f"/branchlink/transfers/{request['id']}").json()
    assert current["status"] == status
    donor_before = stock_of(client, "d-near", "P1")
    requester_before = stock_of(client, "r", "P1")

    for action, (method, url, body) in _actions(request["id"]).items():
        if action in LEGAL_FROM[status]:
            continue
        response = getattr(client, method)(url, json=body) if body is not None else getattr(client, method)(url)
        assert response.status_code == 409, (status, action, response.text)
        assert response.json()["code"] == "STATE_CONFLICT"
        assert response.json()["details"]["status"] == status

    after = client.get(f"/branchlink/transfers/{request['id']}").json()
    assert after["status"] == status
    assert after["version"] == current["version"]
    assert stock_of(client, "d-near", "P1") == donor_before
    assert stock_of(client, "r", "P1") == requester_before


def test_second_approval_loses(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)

    first = approve(client, request["id"], 6)
    second = approve(client, request["id"], 10, issue_number="IS-2")

    assert first.status_code == 200
    assert second.status_code == 409
    # the shortfall was credited once
    assert stock_of(client, "d-near", "P1") == 14


def test_cancel_after_reject_does_not_release_twice(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)

    client.post(f"/branchlink/transfers/{request['id']}/reject", json={"reason": "no"})
    late_cancel = client.post(f"/branchlink/transfers/{request['id']}/cancel")

    assert late_cancel.status_code == 409
    assert stock_of(client, "d-near", "P1") == 20


def test_reception_credits_requester_once(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)
    approve(client, request["id"], 10)
    move_to_delivered(client, request["id"])

    first = client.post(f"/branchlink/transfers/{request['id']}/receive", json={"receipt_number": "RC-1"})
    second = client.post(f"/branchlink/transfers/{request['id']}/receive", json={"receipt_number": "RC-1"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert stock_of(client, "r", "P1") == 10


def test_stale_version_write_is_refused(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)
    machine = TransferRequestStateMachine(db_session, clock=clock)
    stale = machine.get(request["id"])
    assert stale.version == 1

    client.patch(f"/branchlink/transfers/{request['id']}", json={"quantity": 12})

    with pytest.raises(AppError) as excinfo:
        machine.apply(
            stale,
            action="reject",
            to_status=RequestStatus.REJECTED,
            values={"rejection_reason": "stale"},
        )
    assert excinfo.value.error.code == "STATE_CONFLICT"

    current = client.get(f"/branchlink/transfers/{request['id']}").json()
    assert current["status"] == "PENDING"
    assert current["requested_quantity"] == 12
    assert current["version"] == 2


def test_failed_compare_and_set_leaves_stock_alone(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)
    machine = TransferRequestStateMachine(db_session, clock=clock)
    stale = machine.get(request["id"])

    client.post(f"/branchlink/transfers/{request['id']}/cancel")
    assert stock_of(client, "d-near", "P1") == 20

    with pytest.raises(AppError):
        machine.reject(stale.id, "too late")

    assert stock_of(client, "d-near", "P1") == 20
