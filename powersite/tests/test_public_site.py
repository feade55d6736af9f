from powersite.backend import BackendError
from powersite.content import (
    CATEGORY_IMAGES,
    DEFAULT_SERVICE_ICON,
    ProductCard,
    category_image,
    service_icon,
    tel_link,
    whatsapp_link,
)
from powersite.models import ContactSubmission, Service, db


def test_home_page_renders_seeded_sections_and_security_headers(client):
    response = client.get("/")
    assert response.status_code == 200
    html = response.get_data(as_text=True)

    assert "Reliable Electrical Solutions" in html
    assert "Fault Finding" in html
    assert "Modular Switches" in html
    assert 'id="contact"' in html
    assert "https://wa.me/919667000377?text=" in html
    assert 'href="tel:+918949272586"' in html
    assert "https://www.google.com/maps/embed" in html
    assert "style=" not in html
    assert '<script nonce="' in html

    csp = response.headers.get("Content-Security-Policy", "")
    assert "script-src 'self' 'nonce-" in csp
    assert "frame-src https://www.google.com" in csp
    assert response.headers.get("X-Content-Type-Options") == "nosniff"
    assert response.headers.get("X-Request-ID")


def test_hsts_header_on_https_requests(client):
    response = client.get("/", base_url="https://example.com")
    assert response.headers.get("Strict-Transport-Security") == "max-age=31536000; includeSubDomains"


def test_health_endpoint_reports_ok(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_unknown_page_renders_404_template(client):
    response = client.get("/no-such-page")
    assert response.status_code == 404
    assert "does not exist" in response.get_data(as_text=True)


def test_empty_services_table_renders_empty_grid(make_app):
    app = make_app({"SEED_DEFAULT_CONTENT": False})
    response = app.test_client().get("/")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert 'class="row g-4 services-grid"' in html
    assert "Fault Finding" not in html
    assert "Visit our store" in html


def test_inactive_services_are_hidden(app, client):
    with app.app_context():
        Service.query.update({"status": "inactive"})
        db.session.add(Service(title="Solar Panel Setup", description="Rooftop solar wiring.", sort_order=1))
        db.session.commit()

    html = client.get("/").get_data(as_text=True)
    assert "Solar Panel Setup" in html
    assert "Fault Finding" not in html


def test_services_fall_back_to_defaults_when_read_fails(client, backend, monkeypatch):
    def failing_select(*args, **kwargs):
        raise BackendError("relation services does not exist", code="database_error")

    monkeypatch.setattr(backend.table("services"), "select", failing_select)
    html = client.get("/").get_data(as_text=True)
    assert "Earthing" in html
    assert "Industrial Electrical Work" in html


def test_hero_falls_back_to_defaults_when_read_fails(client, backend, monkeypatch):
    def failing_first(*args, **kwargs):
        raise BackendError("hero unavailable", code="database_error")

    monkeypatch.setattr(backend.table("hero_section"), "first", failing_first)
    response = client.get("/")
    assert response.status_code == 200
    assert "Reliable Electrical Solutions" in response.get_data(as_text=True)


def test_lookup_helpers_fall_back_to_defaults():
    assert service_icon("House & Commercial Wiring") == "fa-solid fa-house"
    assert service_icon("Something New") == DEFAULT_SERVICE_ICON
    assert category_image("Fans") == CATEGORY_IMAGES["Fans"]
    assert category_image("Unknown") == CATEGORY_IMAGES["LED Lights"]
    assert ProductCard(name="X", category="Unknown", description="").display_image == CATEGORY_IMAGES["LED Lights"]
    assert ProductCard(name="X", category="Fans", description="", image_url="/storage/a.png").display_image == "/storage/a.png"
    assert tel_link("+91 89492 72586") == "tel:+918949272586"
    assert whatsapp_link("+91 96670 00377", "Hi there!") == "https://wa.me/919667000377?text=Hi%20there%21"


def test_contact_post_requires_csrf(client, app):
    response = client.post(
        "/contact",
        data={"name": "No Token", "phone": "9999999999", "message": "Should fail"},
        follow_redirects=False,
    )
    assert response.status_code in (302, 400)
    with app.app_context():
        assert ContactSubmission.query.count() == 0


def test_contact_post_with_csrf_saves_unread_submission(client, app, csrf):
    response = client.post(
        "/contact",
        data={
            "_csrf_token": csrf(client),
            "name": "Ravi Kumar",
            "phone": "+91 99999 11111",
            "message": "Need a new DB panel installed.",
        },
        follow_redirects=False,
    )
    assert response.status_code in (302, 303)
    assert response.headers["Location"].endswith("/#contact")

    with app.app_context():
        saved = ContactSubmission.query.filter_by(name="Ravi Kumar").one()
        assert saved.message == "Need a new DB panel installed."
        assert saved.is_read is False
        assert saved.read_at is None

    follow = client.get("/")
    assert "Message Sent Successfully!" in follow.get_data(as_text=True)


def test_contact_post_missing_fields_is_rejected(client, app, csrf):
    response = client.post(
        "/contact",
        data={"_csrf_token": csrf(client), "name": "Only Name", "phone": "", "message": ""},
    )
    assert response.status_code == 400
    assert "Name, phone, and message are required." in response.get_data(as_text=True)
    with app.app_context():
        assert ContactSubmission.query.count() == 0


def test_contact_form_rate_limit_blocks_extra_submissions(make_app, csrf):
    app = make_app({"CONTACT_FORM_LIMIT": 1, "CONTACT_FORM_WINDOW_SECONDS": 3600})
    client = app.test_client()
    token = csrf(client)
    data = {"_csrf_token": token, "name": "Asha", "phone": "9876543210", "message": "Fan repair please."}

    first = client.post("/contact", data=data)
    assert first.status_code in (302, 303)
    second = client.post("/contact", data=data, follow_redirects=True)
    assert "Too many messages" in second.get_data(as_text=True)

    with app.app_context():
        assert ContactSubmission.query.count() == 1
