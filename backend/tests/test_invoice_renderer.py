"""
Invoice rendering tests.

Covers the view projection (placeholders, omitted lines, numbering), the
local reportlab backend and the remote HTML-to-PDF backend.
"""

from datetime import datetime
from io import BytesIO

import httpx
import pytest
from pypdf import PdfReader

from marketbook.errors import RenderFailure
from marketbook.models import Item, User
from marketbook.services.invoice_renderer import (
    InvoiceDocument,
    LocalPdfRenderer,
    RemotePdfRenderer,
    build_invoice_view,
    build_renderer,
    render_invoice_html,
)


NOW = datetime(2026, 3, 1, 9, 30, 0)


def _owner(**billing):
    user = User(id=3, name="Ada Obi", email="ada@marketbook.test", password_hash="x")
    for key, value in billing.items():
        setattr(user, f"billing_{key}", value)
    return user


def _item(**overrides):
    fields = dict(
        id=7,
        user_id=3,
        title="Chair",
        description="Oak dining chair",
        amount_cents=123450,
        status="paid",
        customer_name="Chidi Okafor",
        customer_email="chidi@example.com",
        customer_address="5 Allen Avenue, Ikeja",
        created_at=datetime(2026, 2, 14, 8, 0, 0),
    )
    fields.update(overrides)
    return Item(**fields)


class TestInvoiceView:
    def test_full_view(self):
        owner = _owner(street="12 Marina Road", city="Lagos", state="Lagos", zip_code="101241", country="Nigeria")
        view = build_invoice_view(_item(), owner, now=NOW)

        assert view.invoice_number == "INV-00000007"
        assert view.issue_date == "02/14/2026"
        assert view.due_date == "03/31/2026"
        assert view.issuer_lines == (
            "12 Marina Road",
            "Lagos, Lagos 101241",
            "Nigeria",
            "Email: ada@marketbook.test",
        )
        assert view.bill_to_name == "Chidi Okafor"
        assert view.bill_to_lines == ("5 Allen Avenue, Ikeja", "chidi@example.com")
        assert len(view.line_items) == 1
        assert view.line_items[0].amount == "₦1,234.50"
        assert view.subtotal == view.total == "₦1,234.50"
        assert view.tax == "₦0.00"
        assert view.status_label == "Paid"
        assert view.status_class == "status-paid"

    def test_placeholders_for_missing_billing(self):
        view = build_invoice_view(_item(), _owner(street="   "), now=NOW)
        assert view.issuer_lines[:3] == ("Street address not provided", "City, State", "Country")

    def test_missing_customer_fields_are_omitted(self):
        item = _item(customer_name=None, customer_email=None, customer_address="")
        view = build_invoice_view(item, _owner(), now=NOW)
        assert view.bill_to_name == "Customer"
        assert view.bill_to_lines == ()

    def test_does_not_mutate_input(self):
        item = _item()
        owner = _owner()
        build_invoice_view(item, owner, now=NOW, currency_symbol="$", issuer_name="Shop")
        assert item.title == "Chair"
        assert item.amount_cents == 123450
        assert owner.billing_street is None

    def test_custom_currency_and_issuer(self):
        view = build_invoice_view(_item(amount_cents=5), _owner(), now=NOW, currency_symbol="$", issuer_name="Shop")
        assert view.total == "$0.05"
        assert view.footer_lines[-1] == "This invoice was generated by Shop"


class TestLocalPdfRenderer:
    def test_renders_pdf(self):
        view = build_invoice_view(_item(), _owner(), now=NOW)
        content = LocalPdfRenderer().render(view)
        assert content.startswith(b"%PDF")

    def test_output_is_deterministic(self):
        renderer = LocalPdfRenderer()
        view = build_invoice_view(_item(), _owner(), now=NOW)
        assert renderer.render(view) == renderer.render(view)

    def test_markup_in_fields_is_escaped(self):
        item = _item(title="<b>Chair & Table", description="<script>")
        content = LocalPdfRenderer().render(build_invoice_view(item, _owner(), now=NOW))
        assert content.startswith(b"%PDF")

    def test_naira_total_is_legible_with_builtin_font(self):
        renderer = LocalPdfRenderer()
        content = renderer.render(build_invoice_view(_item(amount_cents=9999), _owner(), now=NOW))
        text = PdfReader(BytesIO(content)).pages[0].extract_text()
        assert "NGN 99.99" in text
        assert "\u25a0" not in text

    def test_printable_keeps_drawable_signs(self):
        renderer = LocalPdfRenderer()
        assert renderer.printable("$5.00") == "$5.00"
        assert renderer.printable("\u20a61,234.50") == "NGN 1,234.50"

    def test_data_uri(self):
        view = build_invoice_view(_item(), _owner(), now=NOW)
        doc = InvoiceDocument(item_id=7, filename="invoice-7.pdf", media_type="application/pdf", content=b"%PDF-1.4", view=view)
        assert doc.to_data_uri() == "data:application/pdf;base64,JVBERi0xLjQ="


class TestRemotePdfRenderer:
    def _renderer(self, handler, api_key="key_123"):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return RemotePdfRenderer("https://pdf.example.test/convert", api_key, timeout=5, client=client)

    def test_posts_html_and_returns_pdf(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.read().decode()
            return httpx.Response(200, content=b"%PDF-1.7 remote")

        view = build_invoice_view(_item(), _owner(), now=NOW)
        assert self._renderer(handler).render(view) == b"%PDF-1.7 remote"
        assert seen["auth"].startswith("Basic ")
        assert "INV-00000007" in seen["body"]

    def test_non_200_is_render_failure(self):
        renderer = self._renderer(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(RenderFailure):
            renderer.render(build_invoice_view(_item(), _owner(), now=NOW))

    def test_transport_error_is_render_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(RenderFailure):
            self._renderer(handler).render(build_invoice_view(_item(), _owner(), now=NOW))

    def test_missing_api_key(self):
        renderer = self._renderer(lambda request: httpx.Response(200, content=b"%PDF"), api_key=None)
        with pytest.raises(RenderFailure):
            renderer.render(build_invoice_view(_item(), _owner(), now=NOW))


def test_invoice_html_escapes_customer_input():
    item = _item(customer_name="<script>alert(1)</script>")
    html = render_invoice_html(build_invoice_view(item, _owner(), now=NOW))
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
    assert "Payment Status: Paid" in html


def test_build_renderer_selects_backend():
    assert isinstance(build_renderer({"INVOICE_RENDER_BACKEND": "local"}), LocalPdfRenderer)
    remote = build_renderer({
        "INVOICE_RENDER_BACKEND": "remote",
        "PDF_RENDER_API_URL": "https://pdf.example.test/convert",
        "PDF_RENDER_API_KEY": "k",
    })
    assert isinstance(remote, RemotePdfRenderer)
    with pytest.raises(ValueError):
        build_renderer({"INVOICE_RENDER_BACKEND": "carrier-pigeon"})
