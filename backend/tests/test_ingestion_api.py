from rexai.services.documents.extraction import DownloadFailure

OWNER = {"X-User-Id": "user-1"}
OTHER = {"X-User-Id": "user-2"}

NOTE = " ".join(
    f"Visit {i} notes stable blood pressure readings." for i in range(12)
).encode()


def _ingest(client, api_context, headers=OWNER, name="note.txt"):
    api_context.fetcher.data = NOTE
    response = client.post(
        "/api/ingest",
        json={"file_url": f"https://files.example.com/{name}", "file_name": name, "file_type": "text/plain"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_ingest_returns_document_and_chunk_count(client, api_context):
    body = _ingest(client, api_context)

    assert body["success"] is True
    assert body["document_id"] == 1
    assert body["chunk_count"] >= 2
    assert body["message"] == "File ingested successfully"


def test_ingest_accepts_camel_case_fields(client, api_context):
    api_context.fetcher.data = NOTE
    response = client.post(
        "/api/ingest",
        json={"fileUrl": "https://files.example.com/a.txt", "fileName": "a.txt", "fileType": "text/plain"},
        headers=OWNER,
    )

    assert response.status_code == 200
    assert response.json()["chunk_count"] > 0


def test_ingest_requires_caller_and_fields(client):
    missing_user = client.post(
        "/api/ingest", json={"file_url": "https://x/a.txt", "file_name": "a.txt"}
    )
    missing_fields = client.post("/api/ingest", json={"file_name": "a.txt"}, headers=OWNER)

    assert missing_user.status_code == 401
    assert missing_fields.status_code == 400
    assert "file_url" in missing_fields.json()["error"]["message"]


def test_ingest_maps_failures_to_status_codes(client, api_context):
    api_context.embeddings.fail = True
    api_context.fetcher.data = NOTE
    unavailable = client.post(
        "/api/ingest",
        json={"file_url": "https://x/a.txt", "file_name": "a.txt", "file_type": "text/plain"},
        headers=OWNER,
    )

    api_context.embeddings.fail = False
    api_context.fetcher.error = DownloadFailure("HTTP 404")
    download = client.post(
        "/api/ingest",
        json={"file_url": "https://x/b.txt", "file_name": "b.txt"},
        headers=OWNER,
    )

    assert unavailable.status_code == 503
    assert download.status_code == 502
    statuses = client.get("/api/ingest", headers=OWNER).json()["documents"]
    assert {d["status"] for d in statuses} == {"failed"}


def test_list_documents_is_owner_scoped_newest_first(client, api_context):
    _ingest(client, api_context, name="first.txt")
    _ingest(client, api_context, name="second.txt")
    _ingest(client, api_context, headers=OTHER, name="theirs.txt")

    documents = client.get("/api/ingest", headers=OWNER).json()["documents"]

    assert [d["file_name"] for d in documents] == ["second.txt", "first.txt"]
    assert all(d["owner_id"] == "user-1" for d in documents)


def test_status_and_chunks_endpoints(client, api_context):
    document_id = _ingest(client, api_context)["document_id"]

    status = client.get(f"/api/ingest/status/{document_id}", headers=OWNER).json()
    chunks = client.get(f"/api/ingest/{document_id}/chunks", headers=OWNER).json()
    limited = client.get(f"/api/ingest/{document_id}/chunks?limit=1", headers=OWNER).json()

    assert status["status"] == "complete"
    assert status["chunk_count"] == len(chunks)
    assert [c["chunk_index"] for c in chunks] == list(range(len(chunks)))
    assert len(limited) == 1
    assert client.get(f"/api/ingest/status/{document_id}", headers=OTHER).status_code == 404


def test_delete_document(client, api_context):
    document_id = _ingest(client, api_context)["document_id"]

    assert client.delete(f"/api/ingest/{document_id}", headers=OTHER).status_code == 404
    deleted = client.delete(f"/api/ingest/{document_id}", headers=OWNER)
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "Document deleted"}
    assert client.get(f"/api/ingest/{document_id}/chunks", headers=OWNER).status_code == 404


def test_search_is_owner_scoped_and_limited(client, api_context):
    _ingest(client, api_context)

    mine = client.post("/api/search", json={"query": "blood pressure", "top_k": 2}, headers=OWNER)
    theirs = client.post("/api/search", json={"query": "blood pressure"}, headers=OTHER)

    assert mine.status_code == 200
    assert mine.json()["total"] == 2
    assert mine.json()["results"][0]["similarity"] == 1.0
    assert theirs.json()["results"] == []


def test_validate_endpoint_flags_unknown_drug_and_risky_words(client):
    response = client.post(
        "/api/validate",
        json={
            "voice_summary": "This is a guaranteed cure",
            "structured_data": {
                "type": "medication_list",
                "data": [{"drug_name": "Fakeamol", "dosage": "5000mg"}],
            },
        },
        headers=OWNER,
    )

    body = response.json()
    assert response.status_code == 200
    assert body["is_valid"] is False
    assert len(body["flags"]) == 3
    assert body["flags"][0].startswith('Unknown drug name detected: "Fakeamol"')


def test_health_and_root(client):
    health = client.get("/health")
    root = client.get("/")

    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert root.json()["docs"] == "/docs"
    assert "X-Request-Id" in health.headers
