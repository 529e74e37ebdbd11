from tests.fixtures_data import CONTACT_PAYLOAD, TEXT_MESSAGE

CONTACTS_URL = "/api/v1/contacts"


def test_create_contact_normalizes_phone(client, admin):
    response = client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=admin["headers"])

    assert response.status_code == 201
    body = response.json()
    assert body["phoneNumber"] == "+5511999990000"
    assert body["tags"] == ["vip", "sp"]
    assert body["messagesSent"] == 0
    assert body["createdBy"] == admin["id"]


def test_invalid_phone_is_rejected(client, admin):
    response = client.post(CONTACTS_URL, json={"phoneNumber": "12-ab"}, headers=admin["headers"])

    assert response.status_code == 422


def test_duplicate_phone_is_rejected_until_deleted(client, admin):
    first = client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=admin["headers"]).json()

    duplicate = client.post(CONTACTS_URL, json={"phoneNumber": "+5511999990000"}, headers=admin["headers"])
    client.delete(f"{CONTACTS_URL}/{first['id']}", headers=admin["headers"])
    recreated = client.post(CONTACTS_URL, json={"phoneNumber": "+5511999990000"}, headers=admin["headers"])

    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Contact with this phone number already exists"
    assert recreated.status_code == 201


def test_list_contacts_search_and_tag(client, admin):
    client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=admin["headers"])
    client.post(
        CONTACTS_URL,
        json={"phoneNumber": "+5521988887777", "firstName": "Carla", "tags": ["rj"]},
        headers=admin["headers"],
    )

    by_name = client.get(CONTACTS_URL, params={"search": "carla"}, headers=admin["headers"]).json()
    by_tag = client.get(CONTACTS_URL, params={"tag": "vip"}, headers=admin["headers"]).json()
    everything = client.get(CONTACTS_URL, params={"limit": 1}, headers=admin["headers"]).json()

    assert [entry["firstName"] for entry in by_name["contacts"]] == ["Carla"]
    assert [entry["firstName"] for entry in by_tag["contacts"]] == ["João"]
    assert everything["total"] == 2
    assert len(everything["contacts"]) == 1


def test_update_contact_checks_phone_uniqueness(client, admin):
    first = client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=admin["headers"]).json()
    second = client.post(CONTACTS_URL, json={"phoneNumber": "+5521988887777"}, headers=admin["headers"]).json()

    clash = client.patch(f"{CONTACTS_URL}/{second['id']}", json={"phoneNumber": first["phoneNumber"]}, headers=admin["headers"])
    renamed = client.patch(
        f"{CONTACTS_URL}/{second['id']}",
        json={"firstName": "Bia", "tags": ["novo"]},
        headers=admin["headers"],
    )

    assert clash.status_code == 400
    assert renamed.json()["firstName"] == "Bia"
    assert renamed.json()["tags"] == ["novo"]


def test_contact_stats_include_recent_messages(client, admin, connected_device):
    contact = client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=admin["headers"]).json()
    client.post("/api/v1/whatsapp/send", json={**TEXT_MESSAGE, "deviceId": connected_device}, headers=admin["headers"])

    stats = client.get(f"{CONTACTS_URL}/{contact['id']}/stats", headers=admin["headers"]).json()

    assert stats["contactId"] == contact["id"]
    assert stats["messagesSent"] == 1
    assert stats["lastMessageAt"] is not None
    assert len(stats["recentMessages"]) == 1


def test_missing_contact_is_404(client, admin):
    response = client.get(f"{CONTACTS_URL}/999", headers=admin["headers"])

    assert response.status_code == 404
    assert response.json()["detail"] == "Contact not found"


def test_viewer_cannot_create_contacts(client, make_member):
    viewer = make_member("viewer")

    response = client.post(CONTACTS_URL, json=CONTACT_PAYLOAD, headers=viewer["headers"])

    assert response.status_code == 403
