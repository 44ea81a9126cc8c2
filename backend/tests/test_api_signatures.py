from fastapi import status
from fastapi.testclient import TestClient

from securesign.core.config import settings

from tests.conftest import auth_headers, make_pdf, make_signature_data_uri, register_and_login, upload_pdf

API = settings.api_prefix


def _guest_token(client: TestClient, token: dict, document_id: str, role: str = "Signer", email: str = "guest@example.com") -> str:
    response = client.post(
        f"{API}/docs/invite/{document_id}",
        headers=auth_headers(token),
        json={"name": "Gina Guest", "email": email, "role": role},
    )
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    return response.json()["link"].rsplit("/sign/", 1)[1]


def _field_payload(document_id: str, **overrides) -> dict:
    payload = {"documentId": document_id, "page": 1, "x": 100, "y": 100, "width": 200, "height": 60}
    payload.update(overrides)
    return payload


def test_owner_places_signs_and_finalizes(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token, make_pdf(size=(600, 750)))

    created = client.post(f"{API}/signatures/", headers=auth_headers(token), json=_field_payload(document["id"]))
    assert created.status_code == status.HTTP_201_CREATED, created.json()
    assert created.json()["signature_data"] is None

    field_id = created.json()["id"]
    signed = client.put(
        f"{API}/signatures/{field_id}",
        headers=auth_headers(token),
        json={"signatureData": make_signature_data_uri()},
    )
    assert signed.status_code == status.HTTP_200_OK
    assert signed.json()["signed_at"] is not None

    finalized = client.post(f"{API}/signatures/finalize", headers=auth_headers(token), json={"documentId": document["id"]})
    assert finalized.status_code == status.HTTP_200_OK, finalized.json()
    body = finalized.json()
    assert body["status"] == "Signed"
    assert body["skipped"] == []
    placement = body["embedded"][0]
    assert (placement["x"], placement["y"], placement["width"], placement["height"]) == (75, 630, 150, 45)

    download = client.get(f"{API}/docs/download/{document['id']}", headers=auth_headers(token))
    assert download.status_code == status.HTTP_200_OK
    assert download.content.startswith(b"%PDF")
    assert 'signed.pdf"' in download.headers["content-disposition"]

    again = client.post(f"{API}/signatures/", headers=auth_headers(token), json=_field_payload(document["id"]))
    assert again.status_code == status.HTTP_400_BAD_REQUEST
    assert again.json()["code"] == "document_not_pending"


def test_owner_finalize_blocked_while_guest_active(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)
    _guest_token(client, token, document["id"])
    client.post(
        f"{API}/signatures/",
        headers=auth_headers(token),
        json=_field_payload(document["id"], signatureData=make_signature_data_uri()),
    )

    response = client.post(f"{API}/signatures/finalize", headers=auth_headers(token), json={"documentId": document["id"]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "active_guests_pending"


def test_guest_signs_and_finalizes_with_token(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)
    guest_token = _guest_token(client, token, document["id"])

    created = client.post(
        f"{API}/signatures/",
        params={"token": guest_token},
        json=_field_payload(document["id"], signatureData=make_signature_data_uri()),
    )
    assert created.status_code == status.HTTP_201_CREATED, created.json()
    assert created.json()["signer_email"] == "guest@example.com"

    listed = client.get(f"{API}/signatures/{document['id']}", params={"token": guest_token})
    assert len(listed.json()) == 1

    finalized = client.post(f"{API}/signatures/finalize", json={"documentId": document["id"], "token": guest_token})
    assert finalized.status_code == status.HTTP_200_OK, finalized.json()
    assert finalized.json()["status"] == "Signed"

    invitations = client.get(f"{API}/docs/invite/{document['id']}", headers=auth_headers(token)).json()
    assert invitations[0]["status"] == "Completed"


def test_viewer_is_read_only(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)
    viewer_token = _guest_token(client, token, document["id"], role="Viewer")

    listed = client.get(f"{API}/signatures/{document['id']}", params={"token": viewer_token})
    created = client.post(f"{API}/signatures/", params={"token": viewer_token}, json=_field_payload(document["id"]))
    finalized = client.post(f"{API}/signatures/finalize", json={"documentId": document["id"], "token": viewer_token})
    rejected = client.post(f"{API}/docs/reject/{document['id']}", params={"token": viewer_token})

    assert listed.status_code == status.HTTP_200_OK
    assert created.status_code == status.HTTP_403_FORBIDDEN
    assert finalized.status_code == status.HTTP_403_FORBIDDEN
    assert rejected.status_code == status.HTTP_403_FORBIDDEN


def test_guest_cannot_touch_owner_fields_and_clear_is_scoped(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)
    guest_token = _guest_token(client, token, document["id"])
    owner_field = client.post(f"{API}/signatures/", headers=auth_headers(token), json=_field_payload(document["id"])).json()
    client.post(f"{API}/signatures/", params={"token": guest_token}, json=_field_payload(document["id"], y=300))

    forbidden = client.delete(f"{API}/signatures/{owner_field['id']}", params={"token": guest_token})
    cleared = client.delete(f"{API}/signatures/all/{document['id']}", params={"token": guest_token})
    remaining = client.get(f"{API}/signatures/{document['id']}", headers=auth_headers(token)).json()

    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert cleared.json() == {"deleted": 1}
    assert [item["id"] for item in remaining] == [owner_field["id"]]


def test_invalid_geometry_and_missing_field(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)

    bad = client.post(f"{API}/signatures/", headers=auth_headers(token), json=_field_payload(document["id"], width=0))
    missing = client.put(f"{API}/signatures/{document['id']}", headers=auth_headers(token), json={"x": 10})

    assert bad.status_code == status.HTTP_400_BAD_REQUEST
    assert bad.json()["code"] == "invalid_geometry"
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_nothing_to_sign(client: TestClient) -> None:
    token, _ = register_and_login(client, "owner@example.com")
    document = upload_pdf(client, token)
    client.post(f"{API}/signatures/", headers=auth_headers(token), json=_field_payload(document["id"]))

    response = client.post(f"{API}/signatures/finalize", headers=auth_headers(token), json={"documentId": document["id"]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "nothing_to_sign"
