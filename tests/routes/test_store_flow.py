"""End-to-end purchase flow through the HTTP surface."""
from __future__ import annotations

from urllib.parse import urlparse

import pytest  # type: ignore[import-not-found]
from sqlalchemy.exc import OperationalError

from storefront.db.engine import init_engine_once, reset_for_tests
from storefront.db.repositories import books_repo, purchases_repo
from storefront.routes.common import SECURITY_CLEARANCE_FAILED
from storefront.services import access_gate, storage_service
from storefront.services.storage_service import PRIVATE_BUCKET, PUBLIC_BUCKET
from storefront.startup import create_app

ADMIN = "admin@example.com"


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch, tmp_path):
    reset_for_tests(drop=True)
    monkeypatch.setenv("STOREFRONT_DB_PATH", ":memory:")
    monkeypatch.setenv("STOREFRONT_STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("STOREFRONT_ADMIN_EMAIL", ADMIN)
    monkeypatch.setenv("STOREFRONT_MERCHANT_UPI_ID", "merchant@upi")
    monkeypatch.setenv("STOREFRONT_MERCHANT_NAME", "Book Store")
    init_engine_once()
    yield
    reset_for_tests(drop=True)


@pytest.fixture
def app(in_memory_db):
    return create_app({"TESTING": True, "SECRET_KEY": "flow-secret", "WTF_CSRF_ENABLED": False})


@pytest.fixture
def buyer(app):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = "buyer-1"
        sess["email"] = "buyer@example.com"
    return client


@pytest.fixture
def admin(app):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = "admin-1"
        sess["email"] = ADMIN
    return client


@pytest.fixture
def book():
    pdf = storage_service.upload(PRIVATE_BUCKET, "gita.pdf", b"%PDF-1.4 gita")
    thumb = storage_service.upload(PUBLIC_BUCKET, "gita.png", b"\x89PNG")
    return books_repo.create_book("Gita", "Commentary", 999, pdf, thumbnail_path=thumb)


def _signed_path(url: str) -> str:
    return urlparse(url).path


def test_store_page_lists_books_with_prices(app, book):
    resp = app.test_client().get("/")

    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Gita" in body
    assert "₹999" in body
    assert "admin-link" not in body


def test_catalog_api_is_public(app, book):
    resp = app.test_client().get("/api/books")

    assert resp.status_code == 200
    assert [b["title"] for b in resp.get_json()["books"]] == ["Gita"]
    assert "pdf_path" not in resp.get_json()["books"][0]


def test_anonymous_checkout_redirects_to_auth(app, book):
    client = app.test_client()

    page = client.get(f"/store/checkout/{book.id}")
    api = client.get(f"/api/checkout/{book.id}")

    assert page.status_code == 302
    assert page.headers["Location"].startswith("/auth/?next=")
    assert api.status_code == 401
    assert api.get_json()["error"] == "auth_required"
    assert purchases_repo.count_by_status("pending") == 0


def test_checkout_page_shows_upi_link_and_payee(buyer, book):
    resp = buyer.get(f"/store/checkout/{book.id}")

    body = resp.get_data(as_text=True)
    assert resp.status_code == 200
    assert "upi://pay?" in body
    assert "am=999" in body
    assert "merchant@upi" in body


def test_duplicate_confirmation_posts_create_two_rows(buyer, book):
    first = buyer.post(f"/store/checkout/{book.id}/confirm")
    second = buyer.post(f"/api/checkout/{book.id}/confirm", json={})

    assert first.status_code == 302
    assert first.headers["Location"] == "/"
    assert second.status_code == 201
    assert second.get_json()["status"] == "pending"
    assert purchases_repo.count_by_status("pending") == 2


def test_full_purchase_verification_and_reading(buyer, admin, book):
    confirm = buyer.post(f"/api/checkout/{book.id}/confirm", json={})
    purchase_id = confirm.get_json()["purchase"]["id"]

    assert buyer.get("/library/api/books").get_json()["items"] == []
    denied = buyer.post(f"/library/api/{book.id}/signed-url", json={})
    assert denied.status_code == 403
    assert denied.get_json()["message"] == SECURITY_CLEARANCE_FAILED

    verify = admin.post(f"/admin/purchases/api/{purchase_id}/status", json={"status": "completed"})
    assert verify.status_code == 200

    items = buyer.get("/library/api/books").get_json()["items"]
    assert [i["book"]["title"] for i in items] == ["Gita"]
    granted = buyer.post(f"/library/api/{book.id}/signed-url", json={})
    assert granted.status_code == 200
    assert granted.get_json()["expires_in"] == 600

    download = buyer.get(_signed_path(granted.get_json()["url"]))
    assert download.status_code == 200
    assert download.data == b"%PDF-1.4 gita"
    assert download.headers["Cache-Control"] == "private, no-store"


def test_failed_purchase_never_reaches_library(buyer, admin, book):
    confirm = buyer.post(f"/api/checkout/{book.id}/confirm", json={})
    purchase_id = confirm.get_json()["purchase"]["id"]

    admin.post(f"/admin/purchases/{purchase_id}/status", data={"status": "failed"})

    assert buyer.get("/library/api/books").get_json()["items"] == []
    opened = buyer.get(f"/library/open/{book.id}")
    assert opened.status_code == 302
    assert opened.headers["Location"] == "/library/"
    page = buyer.get("/library/")
    assert SECURITY_CLEARANCE_FAILED in page.get_data(as_text=True)


def test_download_failure_is_indistinguishable_from_denial(buyer, book, monkeypatch):
    purchases_repo.create_purchase("buyer-1", book.id, "completed")

    def broken(*_a, **_k):
        raise storage_service.StorageError("bucket offline")

    monkeypatch.setattr(storage_service, "create_signed_url", broken)

    resp = buyer.post(f"/library/api/{book.id}/signed-url", json={})

    assert resp.status_code == 403
    assert resp.get_json() == {"error": "security_clearance_failed", "message": SECURITY_CLEARANCE_FAILED}


def test_book_lookup_error_returns_security_clearance_failure(buyer, book, monkeypatch):
    purchases_repo.create_purchase("buyer-1", book.id, "completed")

    def locked(*_a, **_k):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(access_gate.books_repo, "get_book", locked)

    api = buyer.post(f"/library/api/{book.id}/signed-url", json={})
    opened = buyer.get(f"/library/open/{book.id}")

    assert api.status_code == 403
    assert api.get_json() == {"error": "security_clearance_failed", "message": SECURITY_CLEARANCE_FAILED}
    assert opened.status_code == 302
    assert opened.headers["Location"] == "/library/"


def test_private_objects_are_not_served_publicly(app, book):
    client = app.test_client()

    assert client.get(f"/storage/public/{PRIVATE_BUCKET}/{book.pdf_path}").status_code == 404
    assert client.get(f"/storage/public/{PUBLIC_BUCKET}/{book.thumbnail_path}").status_code == 200
    assert client.get("/storage/signed/not-a-token").status_code == 403


def test_json_checkout_is_csrf_exempt_but_forms_are_not(book, in_memory_db):
    app = create_app({"TESTING": True, "SECRET_KEY": "csrf-secret"})
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = "buyer-1"
        sess["email"] = "buyer@example.com"

    assert client.post(f"/store/checkout/{book.id}/confirm").status_code == 400
    assert client.post(f"/api/checkout/{book.id}/confirm", json={}).status_code == 201


def test_csrf_exempt_apis_reject_form_posts(book, in_memory_db):
    app = create_app({"TESTING": True, "SECRET_KEY": "csrf-secret"})
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = "buyer-1"
        sess["email"] = "buyer@example.com"

    confirm = client.post(f"/api/checkout/{book.id}/confirm", data={"anything": "1"})
    signed = client.post(f"/library/api/{book.id}/signed-url", data={})

    assert confirm.status_code == 415
    assert confirm.get_json()["error"] == "json_required"
    assert signed.status_code == 415
    assert purchases_repo.count_by_status("pending") == 0


def test_healthz(app):
    resp = app.test_client().get("/healthz")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "db": True}
