"""HTML pages served for pay-to-relay sign ups."""

from __future__ import annotations

import html
import json

__all__ = [
    "render_join_page",
    "render_invoice_page",
    "render_account_page",
]

_BASE_STYLE = (
    "body { display: flex; flex-direction: column; align-items: center; "
    "text-align: center; font-family: Arial, sans-serif; "
    "background-color: #6320a7; color: white; }\n"
    "a { color: pink; }\n"
)

ADMITTED_TEXT = '<span style="color: green;">is</span>'
NOT_ADMITTED_TEXT = '<span style="color: red;">is not</span>'
UNKNOWN_STATUS_TEXT = "Could not get admission status"


def _document(body: str, extra_style: str = "", script: str = "") -> str:
    """Wrap a body fragment in a complete HTML document."""
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="UTF-8">',
        f"<style>\n{_BASE_STYLE}{extra_style}</style>",
        "</head>",
        "<body>",
        body,
    ]
    if script:
        parts.append(f"<script>\n{script}</script>")
    parts += ["</body>", "</html>", ""]
    return "\n".join(parts)


_JOIN_BODY = """<div style="width: 75%;">
<h1>Enter your pubkey</h1>
<form action="/invoice" onsubmit="return termsAccepted(this);">
<input type="text" name="pubkey" id="pubkey-input"><br><br>
<input type="checkbox" id="terms" required>
<label for="terms">I agree to the <a href="/terms">terms and conditions</a></label><br><br>
<button type="submit">Submit</button>
</form>
<button id="fetch-key">Get Public Key</button>
</div>"""

_JOIN_STYLE = (
    'input[type="text"] { width: 100%; max-width: 500px; '
    "box-sizing: border-box; white-space: nowrap; }\n"
)

_JOIN_SCRIPT = """function termsAccepted(form) {
  if (form.terms.checked) { return true; }
  alert("Please agree to the terms and conditions");
  return false;
}
document.getElementById("fetch-key").onclick = async () => {
  try {
    document.getElementById("pubkey-input").value = await window.nostr.getPublicKey();
  } catch (err) {
    console.error(err);
  }
};
"""

_INVOICE_STYLE = (
    "#copy-button { background-color: #bb5f0d; color: white; padding: 10px 20px; "
    "border: none; border-radius: 5px; cursor: pointer; }\n"
    "#copy-button:hover { background-color: #8f29f4; }\n"
    ".invoice { overflow-wrap: break-word; width: 500px; }\n"
)

_ACCOUNT_STYLE = "body { height: 100vh; }\n"


def render_join_page() -> str:
    """The sign-up form asking for a public key."""
    return _document(_JOIN_BODY, _JOIN_STYLE, _JOIN_SCRIPT)


def render_invoice_page(admission_cost: int, qr_svg: str, bolt11: str, pubkey: str) -> str:
    """The page showing a Lightning invoice for the admission fee.

    ``qr_svg`` is inserted as markup; the other values are escaped.
    """
    cost = html.escape(str(admission_cost))
    invoice = html.escape(bolt11)
    key = html.escape(pubkey, quote=True)
    invoice_js = json.dumps(bolt11).replace("</", "<\\/")
    body = "\n".join(
        [
            '<div style="width: 75%;">',
            f"<h3>To use this relay, an admission fee of {cost} sats is required. "
            "By paying the fee, you agree to the <a href='terms'>terms</a>.</h3>",
            "</div>",
            f'<div style="max-height: 300px;">{qr_svg}</div>',
            f'<p class="invoice">{invoice}</p>',
            '<button id="copy-button">Copy</button>',
            "<p>This page will not refresh</p>",
            f"<p>Verify admission <a href=/account?pubkey={key}>here</a> once you have paid</p>",
        ]
    )
    script = (
        'const copyButton = document.getElementById("copy-button");\n'
        f"const textToCopy = {invoice_js};\n"
        "if (navigator.clipboard) {\n"
        "  copyButton.onclick = () => navigator.clipboard.writeText(textToCopy)\n"
        '    .catch((err) => console.error("Could not copy text: ", err));\n'
        "} else {\n"
        '  copyButton.style.display = "none";\n'
        "}\n"
    )
    return _document(body, _INVOICE_STYLE, script)


def render_account_page(pubkey: str, admitted: bool | None) -> str:
    """The page reporting whether a key is admitted.

    ``admitted`` is ``None`` when the status could not be looked up.
    """
    if admitted is None:
        status = UNKNOWN_STATUS_TEXT
    elif admitted:
        status = ADMITTED_TEXT
    else:
        status = NOT_ADMITTED_TEXT
    body = f"<div>\n<h5>{html.escape(pubkey)} {status} admitted</h5>\n</div>"
    return _document(body, _ACCOUNT_STYLE)