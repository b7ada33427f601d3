"""
Paywall and download panel templates.

Templates use ``{{name}}`` placeholders filled by plain string substitution.
Frontmatter text (title, description, file names) is HTML-escaped; preview
HTML and the rendered sections are inserted as-is.
"""

from __future__ import annotations

import html
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import quote

from kiosk.components.entitlements import DownloadableFile
from kiosk.domain.payable import PayableData

CHECKOUT_ROUTE = "/api/kiosk/checkout"

MESSAGE_NO_ACCESS = "You don't have access to this content yet."
MESSAGE_ALREADY_PURCHASED = "Already purchased?"
BUTTON_PURCHASE_ACCESS = "Purchase Access"
LINK_SIGNIN = "Sign in to access"
FALLBACK_TITLE = "Premium Content"
FALLBACK_DESCRIPTION = "This content requires payment to access."

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "CN¥",
    "INR": "₹",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "BRL": "R$",
    "MXN": "MX$",
    "KRW": "₩",
}
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}


def escape_html(text: str) -> str:
    """Escape HTML special characters, quotes included."""
    return html.escape(text, quote=True)


# --- Styles ---

PAYWALL_STYLES = """<style>
  .kiosk-paywall {
    background: #f5f6ff;
    border-radius: 16px;
    padding: 2rem;
    margin: 2rem 0;
    text-align: center;
  }
  .kiosk-paywall h2 {
    font-size: 1.8rem;
    margin-bottom: 1rem;
    color: #1f2933;
  }
  .kiosk-paywall p {
    margin-bottom: 1.5rem;
    color: #475467;
    line-height: 1.6;
  }
  .kiosk-price {
    font-size: 2.5rem;
    font-weight: 700;
    margin-bottom: 1.5rem;
    color: #1f2933;
  }
  .kiosk-actions {
    display: flex;
    flex-direction: column;
    gap: 1rem;
    align-items: center;
  }
  .kiosk-checkout-btn {
    display: inline-block;
    padding: 0.85rem 2rem;
    border-radius: 999px;
    background: #1f2933;
    color: #fff;
    font-weight: 600;
    text-decoration: none;
  }
  .kiosk-divider {
    display: flex;
    align-items: center;
    width: 100%;
    margin: 0.5rem 0;
  }
  .kiosk-divider::before,
  .kiosk-divider::after {
    content: "";
    flex: 1;
    border-bottom: 1px solid #d1d5db;
  }
  .kiosk-divider span {
    padding: 0 1rem;
    color: #6b7280;
    font-size: 0.875rem;
  }
  .kiosk-signin-link {
    color: #667eea;
    text-decoration: none;
    font-weight: 500;
    font-size: 0.9rem;
  }
  .kiosk-downloads-info {
    background: #e0e7ff;
    border-radius: 8px;
    padding: 0.75rem 1rem;
    margin-bottom: 1rem;
  }
  .kiosk-downloads-info p {
    margin: 0;
    color: #3730a3;
    font-size: 0.95rem;
  }
  @media (prefers-color-scheme: dark) {
    .kiosk-paywall { background: #2d3748; }
    .kiosk-paywall h2, .kiosk-price { color: #f7fafc; }
    .kiosk-paywall p { color: #cbd5e0; }
    .kiosk-signin-link { color: #818cf8; }
    .kiosk-downloads-info { background: #4c51bf; }
    .kiosk-downloads-info p { color: #e0e7ff; }
  }
</style>"""

DOWNLOADABLE_STYLES = """<style>
.kiosk-downloadables-panel {
  position: fixed;
  bottom: 20px;
  right: 20px;
  width: 320px;
  max-width: calc(100vw - 40px);
  background: white;
  border-radius: 12px;
  box-shadow: 0 4px 24px rgba(0, 0, 0, 0.15);
  z-index: 1000;
  font-family: system-ui, -apple-system, sans-serif;
}
.kiosk-downloadables-header {
  display: flex;
  justify-content: space-between;
  align-items: center;
  padding: 16px 20px;
  border-bottom: 1px solid #e5e7eb;
}
.kiosk-downloadables-header h3 {
  margin: 0;
  font-size: 16px;
  font-weight: 600;
  color: #111827;
}
.kiosk-downloadables-close {
  background: none;
  border: none;
  font-size: 24px;
  line-height: 1;
  color: #6b7280;
  cursor: pointer;
}
.kiosk-downloadables-body {
  padding: 12px;
  max-height: 400px;
  overflow-y: auto;
}
.kiosk-download-item {
  display: flex;
  align-items: center;
  padding: 12px;
  border-radius: 8px;
  border: 1px solid #e5e7eb;
  margin-bottom: 8px;
  text-decoration: none;
}
.kiosk-download-name {
  font-size: 14px;
  font-weight: 500;
  color: #111827;
  margin: 0 0 4px 0;
  overflow: hidden;
  text-overflow: ellipsis;
  white-space: nowrap;
}
.kiosk-download-size {
  font-size: 12px;
  color: #6b7280;
  margin: 0;
}
.kiosk-download-badge {
  font-size: 11px;
  margin-left: 6px;
  padding: 1px 6px;
  border-radius: 999px;
  background: #e0e7ff;
  color: #3730a3;
}
</style>"""

DEFAULT_PAYWALL_TEMPLATE = f"""{{{{preview}}}}

<hr />

<div class="kiosk-paywall">
  <h2>{{{{title}}}}</h2>
  <p>{{{{description}}}}</p>
  {{{{download_info}}}}
  <div class="kiosk-price">{{{{formatted_price}}}}</div>
  <p>{MESSAGE_NO_ACCESS}</p>
  <div class="kiosk-actions">
    <a href="{{{{checkout_url}}}}" class="kiosk-checkout-btn">{BUTTON_PURCHASE_ACCESS}</a>
    {{{{signin_section}}}}
  </div>
</div>

{PAYWALL_STYLES}"""

DEFAULT_DOWNLOADABLE_TEMPLATE = f"""
<div class="kiosk-downloadables-panel">
  <div class="kiosk-downloadables-header">
    <h3>Downloadable Files</h3>
    <button class="kiosk-downloadables-close" aria-label="Close" onclick="this.closest('.kiosk-downloadables-panel').style.display='none'">×</button>
  </div>
  <div class="kiosk-downloadables-body">
    {{{{file_list}}}}
  </div>
</div>

{DOWNLOADABLE_STYLES}
"""


# --- Formatting ---


def format_price(price: int, currency: str, interval: str | None = None) -> str:
    """500, "usd", "month" -> "$5.00/month"."""
    code = currency.upper()
    amount = price / 100
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    number = f"{amount:,.{decimals}f}"

    symbol = CURRENCY_SYMBOLS.get(code)
    formatted = f"{symbol}{number}" if symbol else f"{code} {number}"

    if interval:
        return f"{formatted}/{interval}"
    return formatted


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            return f"{value:.1f} {unit}"
    return f"{value:.1f} GB"


def build_checkout_url(content_id: str) -> str:
    return f"{CHECKOUT_ROUTE}?content={quote(content_id, safe='')}"


# --- Rendering ---


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace every ``{{key}}``; None renders as an empty string."""
    result = template
    for key, value in context.items():
        result = result.replace(f"{{{{{key}}}}}", "" if value is None else str(value))
    return result


def build_template_context(
    *,
    content_id: str,
    collection: str,
    payable: PayableData,
    preview: str,
    is_authenticated: bool,
    signin_page_path: str,
) -> dict[str, Any]:
    """Values available to paywall templates."""
    signin_section = (
        ""
        if is_authenticated
        else f"""
  <div class="kiosk-divider">
    <span>{MESSAGE_ALREADY_PURCHASED}</span>
  </div>
  <a href="{escape_html(signin_page_path)}" class="kiosk-signin-link">{LINK_SIGNIN}</a>
  """
    )

    download_count = len(payable.downloads)
    plural = "s" if download_count > 1 else ""
    download_info = (
        f"""<div class="kiosk-downloads-info">
    <p><strong>✨ Includes {download_count} downloadable file{plural}</strong></p>
  </div>"""
        if download_count
        else ""
    )

    return {
        "content_id": content_id,
        "collection": collection,
        "title": escape_html(payable.title or FALLBACK_TITLE),
        "description": escape_html(payable.description or FALLBACK_DESCRIPTION),
        "price": payable.price,
        "formatted_price": format_price(payable.price, payable.currency, payable.interval),
        "currency": payable.currency.upper(),
        "checkout_url": build_checkout_url(content_id),
        "preview": preview,
        "is_authenticated": is_authenticated,
        "signin_section": signin_section,
        "signin_page_path": signin_page_path,
        "is_subscription": payable.is_subscription,
        "interval": payable.interval,
        "billing_cycle": payable.interval,
        "has_downloads": download_count > 0,
        "download_count": download_count,
        "download_info": download_info,
    }


def render_error_html(title: str, message: str | None = None, error: Any = None) -> str:
    """Inline error fragment shown in place of a preview."""
    detail = message or ""
    if not detail and error is not None:
        detail = str(error)
    return f"""<div class="kiosk-error" style="background: #fee; border: 2px solid #c00; padding: 1rem; border-radius: 8px; color: #c00;">
      <h3>{escape_html(title)}</h3>
      <p>{escape_html(detail or "An unexpected error occurred.")}</p>
    </div>"""


def _render_file(file: DownloadableFile) -> str:
    badge = ""
    if file.is_new:
        badge = '<span class="kiosk-download-badge">New</span>'
    elif file.is_legacy:
        badge = '<span class="kiosk-download-badge">Legacy</span>'
    name = escape_html(file.name)
    return f"""
<a href="{escape_html(file.download_url)}" class="kiosk-download-item" download="{name}">
  <div class="kiosk-download-info">
    <p class="kiosk-download-name">{name}{badge}</p>
    <p class="kiosk-download-size">{format_file_size(file.size)}</p>
  </div>
</a>
"""


def render_downloadable_section(
    files: Sequence[DownloadableFile], template: str | None = None
) -> str:
    if not files:
        return ""
    file_list = "".join(_render_file(file) for file in files)
    return (template or DEFAULT_DOWNLOADABLE_TEMPLATE).replace("{{file_list}}", file_list, 1)


def inject_html_before_body_close(html: str, content: str) -> str:
    """Insert ``content`` before the first ``</body>``; unchanged without one."""
    return html.replace("</body>", f"{content}\n</body>", 1)
