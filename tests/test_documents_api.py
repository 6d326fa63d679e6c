"""Tests for the document REST endpoints."""

from datetime import date, datetime, timedelta

from conftest import document_payload, register_user


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestDocumentCrud:
    """Create, read, update and delete through the API."""

    def test_create_and_get(self, api_client):
        headers = {**register_user(api_client), "X-Device-Id": "laptop-1"}
        response = api_client.post("/v1/documents", json=document_payload(), headers=headers)

        assert response.status_code == 201
        created = response.json()["data"]
        assert created["title"] == "US Passport"
        assert created["sync_status"] == "pending"
        assert created["last_modified_device"] == "laptop-1"

        fetched = api_client.get(f"/v1/documents/{created['id']}", headers=headers).json()["data"]
        assert fetched["id"] == created["id"]

    def test_create_rejects_invalid_payload(self, api_client):
        headers = register_user(api_client)
        response = api_client.post("/v1/documents", json=document_payload(category="recipes"), headers=headers)
        assert response.status_code in (400, 422)

        response = api_client.post("/v1/documents", json=document_payload(title="   "), headers=headers)
        assert response.status_code in (400, 422)

    def test_patch_merges_fields(self, api_client):
        headers = register_user(api_client)
        created = api_client.post("/v1/documents", json=document_payload(), headers=headers).json()["data"]

        response = api_client.patch(
            f"/v1/documents/{created['id']}", json={"location": "Bank box"}, headers=headers
        )
        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["location"] == "Bank box"
        assert updated["title"] == created["title"]
        assert _ts(updated["updated_at"]) > _ts(created["updated_at"])
        assert updated["sync_status"] == "pending"

    def test_delete_then_404(self, api_client):
        headers = register_user(api_client)
        created = api_client.post("/v1/documents", json=document_payload(), headers=headers).json()["data"]

        assert api_client.delete(f"/v1/documents/{created['id']}", headers=headers).status_code == 204
        assert api_client.delete(f"/v1/documents/{created['id']}", headers=headers).status_code == 404
        response = api_client.get(f"/v1/documents/{created['id']}", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Resource not found"

    def test_documents_are_private(self, api_client):
        owner = register_user(api_client)
        stranger = register_user(api_client, email="stranger@example.com")
        created = api_client.post("/v1/documents", json=document_payload(), headers=owner).json()["data"]

        assert api_client.get(f"/v1/documents/{created['id']}", headers=stranger).status_code == 404
        assert api_client.get("/v1/documents", headers=stranger).json()["data"] == []


class TestDocumentQueries:
    """Search, category, expiring and stats endpoints."""

    def _seed(self, client, headers):
        today = date.today()
        client.post(
            "/v1/documents",
            json=document_payload(expiration_date=(today + timedelta(days=20)).isoformat()),
            headers=headers,
        )
        client.post(
            "/v1/documents",
            json=document_payload(
                title="Tax folder",
                category="financial",
                description="W-2 and passport renewal receipt",
                urgency_tags=["need-for-taxes"],
            ),
            headers=headers,
        )
        client.post(
            "/v1/documents",
            json=document_payload(
                title="Vaccination card",
                category="medical",
                expiration_date=(today + timedelta(days=120)).isoformat(),
            ),
            headers=headers,
        )

    def test_search(self, api_client):
        headers = register_user(api_client)
        self._seed(api_client, headers)

        results = api_client.get("/v1/documents/search", params={"q": "PASSPORT"}, headers=headers).json()["data"]
        assert {d["title"] for d in results} == {"US Passport", "Tax folder"}

    def test_search_requires_query(self, api_client):
        headers = register_user(api_client)
        response = api_client.get("/v1/documents/search", headers=headers)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_by_category(self, api_client):
        headers = register_user(api_client)
        self._seed(api_client, headers)

        results = api_client.get("/v1/documents/category/medical", headers=headers).json()["data"]
        assert [d["title"] for d in results] == ["Vaccination card"]

    def test_expiring_defaults_to_ninety_days(self, api_client):
        headers = register_user(api_client)
        self._seed(api_client, headers)

        default = api_client.get("/v1/documents/expiring", headers=headers).json()["data"]
        assert [d["title"] for d in default] == ["US Passport"]

        wide = api_client.get("/v1/documents/expiring", params={"days": 365}, headers=headers).json()["data"]
        assert [d["title"] for d in wide] == ["US Passport", "Vaccination card"]

    def test_stats(self, api_client):
        headers = register_user(api_client)
        self._seed(api_client, headers)

        stats = api_client.get("/v1/documents/stats", headers=headers).json()["data"]
        assert stats == {"total_docs": 3, "expiring_docs": 1, "categories": 3}
