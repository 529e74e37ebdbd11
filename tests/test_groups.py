from tests.fixtures_data import CHAT_GROUP_PAYLOAD, TEXT_MESSAGE

GROUPS_URL = "/api/v1/groups"


def test_create_and_get_group(client, admin):
    created = client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"])

    assert created.status_code == 201
    body = created.json()
    assert body["groupId"] == CHAT_GROUP_PAYLOAD["groupId"]
    assert body["participants"] == CHAT_GROUP_PAYLOAD["participants"]
    assert body["isAnnouncement"] is False

    fetched = client.get(f"{GROUPS_URL}/{body['id']}", headers=admin["headers"])
    assert fetched.json()["name"] == "Clientes VIP"


def test_duplicate_group_id_is_rejected(client, admin):
    client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"])

    response = client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"])

    assert response.status_code == 400
    assert response.json()["detail"] == "Group with this ID already exists"


def test_participants_are_added_and_removed(client, admin):
    group = client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"]).json()
    url = f"{GROUPS_URL}/{group['id']}/participants"

    added = client.post(url, json={"phoneNumber": "+55 21 97777-6666"}, headers=admin["headers"])
    again = client.post(url, json={"phoneNumber": "+5521977776666"}, headers=admin["headers"])
    removed = client.delete(f"{url}/+5511999990000", headers=admin["headers"])
    missing = client.delete(f"{url}/+5511999990000", headers=admin["headers"])

    assert added.json()["participants"][-1] == "+5521977776666"
    assert again.status_code == 400
    assert again.json()["detail"] == "Participant already in group"
    assert "+5511999990000" not in removed.json()["participants"]
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Participant not found in group"


def test_update_and_delete_group(client, admin):
    group = client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"]).json()

    updated = client.patch(
        f"{GROUPS_URL}/{group['id']}",
        json={"name": "VIP 2", "isAnnouncement": True},
        headers=admin["headers"],
    )
    deleted = client.delete(f"{GROUPS_URL}/{group['id']}", headers=admin["headers"])
    listed = client.get(GROUPS_URL, headers=admin["headers"]).json()

    assert updated.json()["name"] == "VIP 2"
    assert updated.json()["isAnnouncement"] is True
    assert deleted.json() == {"message": "Group deleted successfully"}
    assert listed["total"] == 0


def test_group_stats_count_group_messages(client, admin, connected_device):
    group = client.post(GROUPS_URL, json=CHAT_GROUP_PAYLOAD, headers=admin["headers"]).json()
    client.post(
        "/api/v1/whatsapp/send",
        json={**TEXT_MESSAGE, "deviceId": connected_device, "groupId": CHAT_GROUP_PAYLOAD["groupId"]},
        headers=admin["headers"],
    )

    stats = client.get(f"{GROUPS_URL}/{group['id']}/stats", headers=admin["headers"]).json()

    assert stats["participantCount"] == 2
    assert stats["messageCount"] == 1
    assert stats["lastMessageAt"] is not None


def test_missing_group_is_404(client, admin):
    response = client.get(f"{GROUPS_URL}/42", headers=admin["headers"])

    assert response.status_code == 404
    assert response.json()["detail"] == "Group not found"
