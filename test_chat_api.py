#!/usr/bin/env python3
"""
Test script for the HTTP endpoints (chat, admin indexing, health)
"""
from fastapi.testclient import TestClient

from sitechat.chat import NO_CONTEXT_REPLY
from sitechat.main import RATE_LIMITED_REPLY, create_app
from sitechat.models.site_content import Post, SiteInfo
from sitechat.security import PASSKEY_HEADER
from sitechat.site_content import InMemorySiteContent
from testing_fakes import FakeChatProvider, make_services


def make_client(**overrides):
    site = InMemorySiteContent(
        site_info=SiteInfo(name="Hotel Las Palmas"),
        posts=[Post(42, "Horarios", "Abrimos de lunes a viernes de 8 a 5.")],
    )
    services = make_services(site=site, chat_providers=[FakeChatProvider("openai", reply="Abrimos a las 8.")],
                             admin_passkey="secret", **overrides)
    return TestClient(create_app(services)), services


def test_health():
    client, _ = make_client()
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    print("✅ Health check")


def test_chat_returns_reply():
    client, _ = make_client()
    response = client.post("/chat", json={"message": "¿Qué horario tienen?", "post_id": 42,
                                          "current_url": "https://laspalmas.example/horarios",
                                          "session_id": "abc"})
    assert response.status_code == 200
    assert response.json() == {"response": "Abrimos a las 8."}
    print("✅ Chat reply returned")


def test_chat_rejects_invalid_messages():
    client, _ = make_client()
    response = client.post("/chat", json={"message": "   "})
    assert response.status_code == 400
    assert response.json() == {"error": "Mensaje vacío"}

    response = client.post("/chat", json={"message": "x" * 1001})
    assert response.status_code == 400
    assert "1000" in response.json()["error"]
    print("✅ Empty and oversized messages rejected with 400")


def test_chat_rate_limited():
    client, _ = make_client()
    statuses = [client.post("/chat", json={"message": "hola", "session_id": "rl"}).status_code
                for _ in range(4)]
    assert statuses == [200, 200, 200, 429]
    assert client.post("/chat", json={"message": "hola", "session_id": "rl"}).json() == {"error": RATE_LIMITED_REPLY}

    # A different session has its own counters
    assert client.post("/chat", json={"message": "hola", "session_id": "other"}).status_code == 200
    print("✅ Burst of requests rejected with 429")


def test_authenticated_callers_are_not_rate_limited():
    client, _ = make_client()
    for _ in range(8):
        response = client.post("/chat", json={"message": "hola", "session_id": "admin"},
                               headers={PASSKEY_HEADER: "secret"})
        assert response.status_code == 200
    print("✅ Passkey holders bypass the rate limiter")


def test_admin_requires_passkey():
    client, _ = make_client()
    assert client.post("/admin/reindex").status_code == 401
    assert client.post("/admin/reindex", headers={PASSKEY_HEADER: "wrong"}).status_code == 401
    assert client.delete("/admin/documents/5").status_code == 401

    response = client.post("/admin/reindex", headers={PASSKEY_HEADER: "secret"})
    assert response.status_code == 200
    summary = response.json()
    assert summary["sources"] == 2
    assert summary["errors"] == []
    print("✅ Admin endpoints require the passkey")


def test_admin_document_lifecycle():
    client, services = make_client()
    headers = {PASSKEY_HEADER: "secret"}

    response = client.post("/admin/documents/5", json={"text": "Manual de check-in del hotel."}, headers=headers)
    assert response.status_code == 200
    assert response.json()["chunks_embedded"] == 1

    response = client.post("/admin/documents/6", json={"text": ""}, headers=headers)
    assert response.status_code == 422
    assert response.json()["error"]

    response = client.post("/admin/documents/7", json={"text": "x", "source_type": "nope"}, headers=headers)
    assert response.status_code == 400

    response = client.delete("/admin/documents/5", headers=headers)
    assert response.json() == {"deleted": 1}
    assert services.store.count() == 0
    print("✅ Documents indexed and removed through the admin API")


def test_admin_index_post_and_term():
    client, services = make_client()
    headers = {PASSKEY_HEADER: "secret"}

    response = client.post("/admin/index/post/42", headers=headers)
    assert response.status_code == 200
    assert response.json()["chunks_embedded"] == 1
    assert client.post("/admin/index/post/999", headers=headers).status_code == 404
    assert client.post("/admin/index/term/category/1", headers=headers).status_code == 404
    print("✅ Single post indexing through the admin API")


def test_admin_content_push():
    services = make_services(site=InMemorySiteContent(), chat_providers=[], admin_passkey="secret")
    client = TestClient(create_app(services))
    headers = {PASSKEY_HEADER: "secret"}

    assert client.post("/admin/content/posts", json={"id": 11, "title": "Piscina"}).status_code == 401

    response = client.put("/admin/content/site", json={"name": "Hotel Las Palmas", "description": "Frente al mar"},
                          headers=headers)
    assert response.status_code == 200
    assert services.site.get_site_info().name == "Hotel Las Palmas"

    response = client.post("/admin/content/posts", headers=headers, json={
        "id": 11, "title": "Piscina", "content": "<p>La piscina abre de 9 a 18 horas todos los días.</p>",
    })
    assert response.status_code == 200
    assert response.json()["indexed"]["chunks_embedded"] == 1

    response = client.post("/admin/content/products", headers=headers, json={
        "id": 30, "name": "Tour en kayak", "description": "Recorrido guiado por la bahía.",
        "price": "25", "variations": [{"attributes": {"duración": "2 horas"}, "price": "25"}],
    })
    assert response.status_code == 200
    assert services.site.get_product(30).variations[0].attributes == {"duración": "2 horas"}
    assert services.site.get_post(30).post_type == "product"

    response = client.post("/admin/content/terms", headers=headers,
                           json={"id": 4, "taxonomy": "category", "name": "Actividades"})
    assert response.status_code == 200
    assert response.json()["indexed"]["chunks_embedded"] == 1

    # Pushed content is answerable
    reply = client.post("/chat", json={"message": "¿A qué hora abre la piscina?"}).json()["response"]
    assert reply.startswith("**Piscina**\n"), reply

    # Unpublishing drops the rows, deleting drops the post
    rows_before = services.store.count()
    response = client.post("/admin/content/posts", headers=headers,
                           json={"id": 11, "title": "Piscina", "status": "draft"})
    assert response.json()["indexed"] is None
    assert response.json()["removed"] == 1
    assert services.store.count() == rows_before - 1

    response = client.delete("/admin/content/posts/30", headers=headers)
    assert response.json() == {"deleted": 1}
    assert services.site.get_product(30) is None

    assert client.post("/admin/content/posts", headers=headers, json={"title": "Sin id"}).status_code == 400
    assert client.post("/admin/content/terms", headers=headers, json={"id": 5}).status_code == 400
    print("✅ Site content pushed, indexed and removed through the admin API")


def test_no_context_reply_over_http():
    services = make_services(site=InMemorySiteContent(), chat_providers=[])
    client = TestClient(create_app(services))
    response = client.post("/chat", json={"message": "asdkjhasd"})
    assert response.json() == {"response": NO_CONTEXT_REPLY}
    print("✅ No-context reply served over HTTP")


if __name__ == "__main__":
    print("=" * 60)
    print("Testing Chat API")
    print("=" * 60)
    test_health()
    test_chat_returns_reply()
    test_chat_rejects_invalid_messages()
    test_chat_rate_limited()
    test_authenticated_callers_are_not_rate_limited()
    test_admin_requires_passkey()
    test_admin_document_lifecycle()
    test_admin_index_post_and_term()
    test_admin_content_push()
    test_no_context_reply_over_http()
    print("\n✅ ALL TESTS PASSED!")
