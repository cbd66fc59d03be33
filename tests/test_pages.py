import pytest

from nostrelay.pages import render_account_page, render_invoice_page, render_join_page

PUBKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
BOLT11 = "lnbc1000n1placeholder"
QR = "<svg><rect/></svg>"


def test_join_page_has_form_posting_pubkey_to_invoice():
    page = render_join_page()
    assert 'action="/invoice"' in page
    assert 'name="pubkey"' in page
    assert '<a href="/terms">terms and conditions</a>' in page
    assert "<h1>Enter your pubkey</h1>" in page


def test_join_page_requires_terms_and_offers_key_lookup():
    page = render_join_page()
    assert '<input type="checkbox" id="terms" required>' in page
    assert "window.nostr.getPublicKey()" in page
    assert page.startswith("<!DOCTYPE html>")


def test_invoice_page_contains_cost_qr_and_invoice():
    page = render_invoice_page(1000, QR, BOLT11, PUBKEY)
    assert "an admission fee of 1000 sats is required" in page
    assert QR in page
    assert f">{BOLT11}</p>" in page
    assert f'const textToCopy = "{BOLT11}";' in page


def test_invoice_page_links_to_account_with_pubkey():
    page = render_invoice_page(5, QR, BOLT11, PUBKEY)
    assert f"<a href=/account?pubkey={PUBKEY}>here</a>" in page
    assert "This page will not refresh" in page


def test_invoice_page_escapes_invoice_text():
    page = render_invoice_page(5, QR, "<b>", PUBKEY)
    assert "<b></p>" not in page
    assert "&lt;b&gt;</p>" in page


def test_invoice_page_inserts_qr_markup_unescaped():
    page = render_invoice_page(5, "Could not render image", BOLT11, PUBKEY)
    assert "Could not render image" in page


@pytest.mark.parametrize(
    "admitted, text",
    [
        (True, '<span style="color: green;">is</span>'),
        (False, '<span style="color: red;">is not</span>'),
        (None, "Could not get admission status"),
    ],
)
def test_account_page_status(admitted, text):
    page = render_account_page(PUBKEY, admitted)
    assert f"<h5>{PUBKEY} {text} admitted</h5>" in page


def test_account_page_states_differ():
    pages = {render_account_page(PUBKEY, s) for s in (True, False, None)}
    assert len(pages) == 3


def test_account_page_escapes_pubkey():
    page = render_account_page("<script>", True)
    assert "<script>" not in page
    assert "&lt;script&gt;" in page