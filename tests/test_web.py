import json

import pytest

from nostrelay.metrics import create_metrics
from nostrelay.web import (
    Response,
    WebConfig,
    get_header,
    get_pubkey,
    handle_request,
    main,
    read_file_bytes,
)

HEXKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
NPUB = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"


@pytest.fixture
def registry():
    reg, _ = create_metrics()
    return reg


def request(path, registry, config=None, headers=None, query=None, account_status=None):
    return handle_request(
        path, headers or {}, query, config or WebConfig(), registry, account_status
    )


def test_get_pubkey_variants():
    assert get_pubkey("a=1&pubkey=abc") == "abc"
    assert get_pubkey(None) is None
    assert get_pubkey("pubkey=a&pubkey=b") == "b"
    assert get_pubkey("pubkey") is None
    assert get_pubkey("pubkey=a=b") == "a=b"


def test_get_header_case_insensitive():
    headers = {"Content-Type": "text/plain", "Upgrade": "websocket"}
    assert get_header(headers, "upgrade") == "websocket"
    assert get_header(headers, "ACCEPT") is None


def test_read_file_bytes(tmp_path):
    target = tmp_path / "icon.ico"
    target.write_bytes(b"\x00\x01\x02")
    assert read_file_bytes(target) == b"\x00\x01\x02"
    with pytest.raises(OSError):
        read_file_bytes(tmp_path / "missing")


def test_root_plain(registry):
    resp = request("/", registry)
    assert resp.status == 200
    assert resp.text == "Please use a Nostr client to connect."
    assert resp.headers["Content-Type"] == "text/plain"


def test_root_relay_info(registry):
    info = {"name": "relay", "supported_nips": [1, 2]}
    resp = request(
        "/",
        registry,
        WebConfig(relay_info=info),
        headers={"Accept": "application/nostr+json"},
    )
    assert resp.status == 200
    assert json.loads(resp.body) == info
    assert resp.headers["Content-Type"] == "application/nostr+json"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_root_redirects_when_paid(registry):
    resp = request("/", registry, WebConfig(pay_to_relay_enabled=True))
    assert resp.status == 307
    assert resp.headers["location"] == "/join"


def test_upgrade_requests(registry):
    resp = request("/", registry, headers={"upgrade": "websocket"})
    assert resp.status == 400
    assert resp.text.startswith("Failed to create websocket")
    other = request("/metrics", registry, headers={"upgrade": "websocket"})
    assert other.status == 404
    assert other.text == "Nothing here."


def test_unknown_path(registry):
    resp = request("/nope", registry)
    assert resp == Response(404, b"Nothing here.")


def test_metrics_endpoint():
    reg, metrics = create_metrics()
    metrics.connections.inc()
    resp = handle_request("/metrics", {}, None, WebConfig(), reg, None)
    assert resp.status == 200
    assert "nostr_connections_total 1" in resp.text.splitlines()


def test_favicon(registry):
    assert request("/favicon.ico", registry).status == 404
    resp = request("/favicon.ico", registry, WebConfig(favicon=b"ICON"))
    assert resp.status == 200
    assert resp.body == b"ICON"
    assert resp.headers["Content-Type"] == "image/x-icon"
    assert resp.headers["Cache-Control"] == "public, max-age=2419200"


def test_terms(registry):
    resp = request("/terms", registry, WebConfig(terms_message="be nice"))
    assert resp.status == 200
    assert resp.text == "be nice"


def test_join(registry):
    closed = request("/join", registry)
    assert closed.status == 401
    assert closed.text == "Sorry, joining is not allowed at the moment"
    opened = request("/join", registry, WebConfig(sign_ups=True))
    assert opened.status == 200
    assert "Enter your pubkey" in opened.text


def test_invoice_requires_pubkey_and_valid_key(registry):
    config = WebConfig(sign_ups=True)
    missing = request("/invoice", registry, config, query="x=1")
    assert missing.status == 404
    assert missing.headers["location"] == "/join"
    bad = request("/invoice", registry, config, query="pubkey=zz")
    assert bad.status == 401
    assert bad.text == "Looks like your key is invalid"
    off_curve = request("/invoice", registry, config, query="pubkey=" + "f" * 64)
    assert off_curve.status == 401


def test_invoice_already_admitted(registry):
    resp = request(
        "/invoice",
        registry,
        WebConfig(sign_ups=True),
        query="pubkey=" + HEXKEY,
        account_status=lambda key: True,
    )
    assert resp.status == 200
    assert resp.text == "Already admitted"


def test_invoice_page_for_new_account(registry):
    calls = []

    def provider(key, new_account):
        calls.append((key, new_account))
        return "lnbc1invoice"

    config = WebConfig(sign_ups=True, admission_cost=1000, invoice_provider=provider)
    resp = request("/invoice", registry, config, query="pubkey=" + NPUB)
    assert resp.status == 200
    assert calls == [(HEXKEY, True)]
    assert "lnbc1invoice" in resp.text
    assert "Could not render image" in resp.text
    assert f"/account?pubkey={NPUB}" in resp.text


def test_invoice_existing_unpaid_account_uses_renderer(registry):
    calls = []

    def provider(key, new_account):
        calls.append(new_account)
        return "lnbc1invoice"

    config = WebConfig(sign_ups=True, invoice_provider=provider, qr_renderer=lambda s: "<svg>qr</svg>")
    resp = request(
        "/invoice", registry, config, query="pubkey=" + HEXKEY, account_status=lambda key: False
    )
    assert calls == [False]
    assert "<svg>qr</svg>" in resp.text


def test_invoice_failures(registry):
    no_provider = request("/invoice", registry, WebConfig(sign_ups=True), query="pubkey=" + HEXKEY)
    assert no_provider.status == 501
    assert no_provider.text == "Sorry, something went wrong"
    failing = request(
        "/invoice",
        registry,
        WebConfig(sign_ups=True, invoice_provider=lambda key, new: None),
        query="pubkey=" + HEXKEY,
    )
    assert failing.status == 500
    assert failing.text == "Sorry, could not get invoice"


def test_account_page(registry):
    assert request("/account", registry, query="pubkey=" + HEXKEY).text == "This relay is not paid"
    config = WebConfig(pay_to_relay_enabled=True)
    seen = []

    def status(key):
        seen.append(key)
        return True

    admitted = request("/account", registry, config, query="pubkey=" + NPUB, account_status=status)
    assert admitted.status == 200
    assert seen == [HEXKEY]
    assert '<span style="color: green;">is</span>' in admitted.text
    unknown = request("/account", registry, config, query="pubkey=" + HEXKEY)
    assert "Could not get admission status" in unknown.text
    missing = request("/account", registry, config)
    assert missing.status == 404


def test_main_rejects_missing_data_dir(tmp_path):
    assert main(["--data-dir", str(tmp_path / "absent")]) == 1


def test_main_rejects_bad_address(tmp_path):
    with pytest.raises(SystemExit):
        main(["--data-dir", str(tmp_path), "--address", "not-an-address"])