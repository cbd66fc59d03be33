"""HTTP endpoints of the relay: relay info, metrics, favicon and pay-to-relay pages."""

from __future__ import annotations

import argparse
import ipaddress
import json
import logging
import signal
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Mapping
from urllib.parse import urlsplit

from nostrelay.metrics import Registry, create_metrics
from nostrelay.pages import render_account_page, render_invoice_page, render_join_page
from nostrelay.utils import is_hex, nip19_to_hex

__all__ = [
    "Response",
    "WebConfig",
    "get_pubkey",
    "get_header",
    "read_file_bytes",
    "handle_request",
    "main",
]

log = logging.getLogger(__name__)

_SECP256K1_P = 2**256 - 2**32 - 977
_NOSTR_JSON = "application/nostr+json"
_SIGNUPS_CLOSED = "Sorry, joining is not allowed at the moment"
_INVALID_KEY = "Looks like your key is invalid"
_ALREADY_ADMITTED = "Already admitted"
_NO_QR = "Could not render image"

AccountStatus = Callable[[str], "bool | None"]


@dataclass
class Response:
    """An HTTP response: status code, headers and body bytes."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


@dataclass
class WebConfig:
    """Settings that shape the HTTP endpoints.

    ``invoice_provider`` is called with a hex public key and whether the
    account is new, and returns a bolt11 invoice or ``None``.
    ``qr_renderer`` turns an invoice into SVG markup.
    """

    relay_info: dict[str, Any] = field(default_factory=dict)
    favicon: bytes | None = None
    pay_to_relay_enabled: bool = False
    sign_ups: bool = False
    terms_message: str = ""
    admission_cost: int = 0
    invoice_provider: Callable[[str, bool], "str | None"] | None = None
    qr_renderer: Callable[[str], str] | None = None


def get_pubkey(query: str | None) -> str | None:
    """The last ``pubkey`` value of a raw query string, if any."""
    result: str | None = None
    for pair in (query or "").split("&"):
        key, sep, value = pair.partition("=")
        if key == "pubkey":
            result = value if sep else None
    return result


def get_header(headers: Mapping[str, str] | Any, name: str) -> str | None:
    """Case-insensitive lookup of a header value."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted and isinstance(value, str):
            return value
    return None


def read_file_bytes(path: str | Path) -> bytes:
    """Read a whole file; raises :class:`OSError` if it cannot be read."""
    return Path(path).read_bytes()


def _is_curve_x(x: int) -> bool:
    if x >= _SECP256K1_P:
        return False
    y2 = (pow(x, 3, _SECP256K1_P) + 7) % _SECP256K1_P
    return y2 == 0 or pow(y2, (_SECP256K1_P - 1) // 2, _SECP256K1_P) == 1


def _normalize_pubkey(value: str) -> str | None:
    """Hex form of a hex or ``npub`` public key, or ``None`` if it is invalid."""
    if value.startswith("npub1"):
        try:
            candidate = nip19_to_hex(value)
        except ValueError:
            return None
    else:
        candidate = value
    if len(candidate) != 64 or not is_hex(candidate):
        return None
    candidate = candidate.lower()
    return candidate if _is_curve_x(int(candidate, 16)) else None


def _plain(status: int, text: str) -> Response:
    return Response(status, text.encode("utf-8"), {"Content-Type": "text/plain"})


def _html(text: str) -> Response:
    return Response(200, text.encode("utf-8"))


def _redirect_to_join(status: int) -> Response:
    return Response(status, b"", {"location": "/join"})


def _root(headers: Any, config: WebConfig) -> Response:
    accept = get_header(headers, "accept")
    if accept is not None and _NOSTR_JSON in accept:
        body = json.dumps(config.relay_info, indent=2).encode("utf-8")
        return Response(
            200,
            body,
            {"Content-Type": _NOSTR_JSON, "Access-Control-Allow-Origin": "*"},
        )
    if config.pay_to_relay_enabled:
        return _redirect_to_join(307)
    return _plain(200, "Please use a Nostr client to connect.")


def _favicon(config: WebConfig) -> Response:
    if config.favicon is None:
        return Response(404, b"")
    return Response(
        200,
        config.favicon,
        {"Content-Type": "image/x-icon", "Cache-Control": "public, max-age=2419200"},
    )


def _invoice(query: str | None, config: WebConfig, account_status: AccountStatus | None) -> Response:
    if not config.sign_ups:
        return _plain(401, _SIGNUPS_CLOSED)
    pubkey = get_pubkey(query)
    if pubkey is None:
        return _redirect_to_join(404)
    key = _normalize_pubkey(pubkey)
    if key is None:
        return _plain(401, _INVALID_KEY)
    status = account_status(key) if account_status is not None else None
    if status:
        return Response(200, _ALREADY_ADMITTED.encode("utf-8"))
    if config.invoice_provider is None:
        log.warning("no invoice provider configured")
        return _plain(501, "Sorry, something went wrong")
    bolt11 = config.invoice_provider(key, status is None)
    if bolt11 is None:
        return Response(500, b"Sorry, could not get invoice")
    qr_svg = _NO_QR
    if config.qr_renderer is not None:
        try:
            qr_svg = config.qr_renderer(bolt11)
        except ValueError:
            qr_svg = _NO_QR
    return _html(render_invoice_page(config.admission_cost, qr_svg, bolt11, pubkey))


def _account(query: str | None, config: WebConfig, account_status: AccountStatus | None) -> Response:
    if not config.pay_to_relay_enabled:
        return _plain(401, "This relay is not paid")
    pubkey = get_pubkey(query)
    if pubkey is None:
        return _redirect_to_join(404)
    key = _normalize_pubkey(pubkey)
    if key is None:
        return _plain(401, _INVALID_KEY)
    status = account_status(key) if account_status is not None else None
    return _html(render_account_page(pubkey, status))


def handle_request(
    path: str,
    headers: Any,
    query: str | None,
    config: WebConfig,
    registry: Registry,
    account_status: AccountStatus | None = None,
) -> Response:
    """Answer one HTTP request.

    ``account_status`` maps a hex public key to whether it is admitted,
    or to ``None`` when no account could be found.
    """
    upgrade = get_header(headers, "upgrade") is not None
    if upgrade:
        if path == "/":
            log.warning("websocket response failed")
            return Response(400, b"Failed to create websocket: websocket upgrades are not served here")
        return Response(404, b"Nothing here.")
    if path == "/":
        return _root(headers, config)
    if path == "/metrics":
        return _plain(200, registry.encode())
    if path == "/favicon.ico":
        return _favicon(config)
    if path == "/terms":
        return _plain(200, config.terms_message)
    if path == "/join":
        if not config.sign_ups:
            return _plain(401, _SIGNUPS_CLOSED)
        return _html(render_join_page())
    if path == "/invoice":
        return _invoice(query, config, account_status)
    if path == "/account":
        return _account(query, config, account_status)
    return Response(404, b"Nothing here.")


def _make_handler(config: WebConfig, registry: Registry) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            parts = urlsplit(self.path)
            response = handle_request(parts.path, self.headers, parts.query, config, registry)
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            self.wfile.write(response.body)

        def log_message(self, format: str, *args: Any) -> None:
            log.debug("%s - %s", self.address_string(), format % args)

    return _Handler


def _interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> int:
    """Run the relay's HTTP server until interrupted."""
    parser = argparse.ArgumentParser(prog="nostrelay", description="Run the relay web server.")
    parser.add_argument("--address", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--data-dir", default=".")
    parser.add_argument("--favicon")
    parser.add_argument("--name")
    parser.add_argument("--description")
    parser.add_argument("--pay-to-relay", action="store_true")
    parser.add_argument("--sign-ups", action="store_true")
    parser.add_argument("--terms", default="")
    parser.add_argument("--admission-cost", type=int, default=0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    if not Path(args.data_dir).is_dir():
        log.error("Database directory does not exist")
        return 1
    address = args.address.strip()
    try:
        ipaddress.ip_address(address)
    except ValueError:
        parser.error("listening address not valid")

    favicon = None
    if args.favicon:
        log.info("reading favicon...")
        try:
            favicon = read_file_bytes(args.favicon)
        except OSError:
            favicon = None
    relay_info = {
        key: value
        for key, value in (("name", args.name), ("description", args.description))
        if value is not None
    }
    config = WebConfig(
        relay_info=relay_info,
        favicon=favicon,
        pay_to_relay_enabled=args.pay_to_relay,
        sign_ups=args.sign_ups,
        terms_message=args.terms,
        admission_cost=args.admission_cost,
    )
    registry, _metrics = create_metrics()
    server = ThreadingHTTPServer((address, args.port), _make_handler(config, registry))
    signal.signal(signal.SIGTERM, _interrupt)
    log.info("listening on: %s:%s", address, args.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("Shutting down webserver")
    finally:
        server.server_close()
    return 0