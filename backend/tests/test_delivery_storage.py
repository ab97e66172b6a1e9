"""
Email gateway and image storage adapters, without real SMTP or Cloudinary.
"""

import cloudinary.uploader
import pytest

from marketbook.errors import DeliveryFailure, UploadFailure
from marketbook.extensions import mail
from marketbook.services.delivery_service import Attachment, MailDeliveryGateway, render_invoice_email
from marketbook.services.storage_service import CloudinaryStorage


class TestMailDeliveryGateway:
    def test_sends_html_with_attachment(self, app):
        gateway = MailDeliveryGateway()
        pdf = Attachment("invoice-7.pdf", "application/pdf", b"%PDF-1.4")

        with mail.record_messages() as outbox:
            gateway.send("chidi@example.com", "Invoice for Chair", "<p>Hi</p>", [pdf])

        assert len(outbox) == 1
        msg = outbox[0]
        assert msg.recipients == ["chidi@example.com"]
        assert msg.subject == "Invoice for Chair"
        assert msg.sender == "invoices@marketbook.test"
        assert [a.filename for a in msg.attachments] == ["invoice-7.pdf"]

    def test_transport_error_is_delivery_failure(self, app, monkeypatch):
        def boom(message):
            raise ConnectionRefusedError("smtp down")

        monkeypatch.setattr(mail, "send", boom)
        with pytest.raises(DeliveryFailure):
            MailDeliveryGateway().send("chidi@example.com", "Invoice", "<p>Hi</p>")


class TestInvoiceEmail:
    def test_body(self):
        html = render_invoice_email(
            owner_name="Ada Obi",
            customer_name="Chidi",
            title="Chair",
            amount="₦99.99",
            status_label="Pending",
            customer_address="5 Allen Avenue",
        )
        assert "Invoice from Ada Obi" in html
        assert "Dear Chidi," in html
        assert "₦99.99" in html
        assert "5 Allen Avenue" in html

    def test_fallbacks(self):
        html = render_invoice_email(
            owner_name="Ada Obi",
            customer_name=None,
            title="Chair",
            amount="₦99.99",
            status_label="Pending",
            customer_address=None,
        )
        assert "Dear Customer," in html
        assert "N/A" in html

    def test_escapes_customer_input(self):
        html = render_invoice_email(
            owner_name="Ada Obi",
            customer_name="<img src=x>",
            title="Chair",
            amount="₦1.00",
            status_label="Paid",
            customer_address=None,
        )
        assert "<img src=x>" not in html


class TestCloudinaryStorage:
    def test_missing_credentials(self):
        with pytest.raises(UploadFailure):
            CloudinaryStorage(None, "key", "secret").upload(b"data", "items")

    def test_returns_secure_url(self, monkeypatch):
        calls = []

        def fake_upload(data, **options):
            calls.append((data, options))
            return {"secure_url": "https://res.cloudinary.com/demo/items/abc.png"}

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
        url = CloudinaryStorage("demo", "key", "secret").upload(b"data", "items")
        assert url == "https://res.cloudinary.com/demo/items/abc.png"
        assert calls == [(b"data", {"folder": "items", "resource_type": "image"})]

    def test_upload_error_is_upload_failure(self, monkeypatch):
        def fake_upload(data, **options):
            raise RuntimeError("network")

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
        with pytest.raises(UploadFailure):
            CloudinaryStorage("demo", "key", "secret").upload(b"data", "items")

    def test_missing_url_is_upload_failure(self, monkeypatch):
        monkeypatch.setattr(cloudinary.uploader, "upload", lambda data, **options: {})
        with pytest.raises(UploadFailure):
            CloudinaryStorage("demo", "key", "secret").upload(b"data", "avatars")
