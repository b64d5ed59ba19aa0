import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

import bleach
from bleach.css_sanitizer import CSSSanitizer
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from utils.config import EMAIL_DEBUG, SMTP_FROM, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USER

logger = logging.getLogger("formbuilder.email")

_CSS_SANITIZER = CSSSanitizer(
    allowed_css_properties=[
        "color", "background-color", "font-weight", "font-style", "text-decoration",
        "text-align", "margin", "padding", "border", "border-radius",
        "display", "width", "max-width", "line-height", "font-size", "letter-spacing",
    ],
    allowed_svg_properties=[],
)


def _elog(msg: str):
    if EMAIL_DEBUG:
        logger.debug(msg)


TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates" / "email"

_templates_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def sanitize_url(url: str) -> str:
    u = str(url or "").strip()
    if u.lower().startswith(("http://", "https://")):
        return u
    return ""


def sanitize_html(html: str) -> str:
    """
    Sanitize a small subset of HTML suitable for email bodies.
    Allows formatting and simple layout while removing scripts, iframes, etc.
    """
    s = str(html or "")
    if not s:
        return ""
    allowed_tags = [
        "a", "p", "br", "strong", "em", "b", "i", "ul", "ol", "li",
        "div", "span", "table", "tr", "td", "th", "h1", "h2", "h3", "hr",
    ]
    allowed_attrs = {
        "*": ["style"],
        "a": ["href", "title", "target", "rel"],
        "td": ["colspan", "align", "style"],
        "th": ["colspan", "align", "style"],
    }
    cleaned = bleach.clean(
        s,
        tags=allowed_tags,
        attributes=allowed_attrs,
        protocols=["http", "https", "mailto"],
        strip=True,
        css_sanitizer=_CSS_SANITIZER,
    )
    # Ensure links are safe targets in emails
    return cleaned.replace(' target="_blank"', ' target="_blank" rel="noopener noreferrer"')


def render_email(template_name: str, context: dict) -> str:
    try:
        template = _templates_env.get_template(template_name)
    except TemplateNotFound:
        logger.error("Email template '%s' not found in %s", template_name, TEMPLATE_DIR)
        raise
    safe_ctx = {"year": datetime.now(timezone.utc).year}
    safe_ctx.update(context or {})
    if "cta_url" in safe_ctx:
        safe_ctx["cta_url"] = sanitize_url(safe_ctx.get("cta_url"))
    if "content_html" in safe_ctx:
        safe_ctx["content_html"] = sanitize_html(safe_ctx.get("content_html"))
    return template.render(**safe_ctx)


def send_email_html(to_email: str, subject: str, html_body: str, from_addr: Optional[str] = None):
    """
    Send an HTML email over SMTP (implicit TLS on port 465, STARTTLS otherwise).

    Raises RuntimeError when SMTP is not configured or the server rejects the message.
    """
    if not SMTP_HOST or not SMTP_PASSWORD:
        logger.error("SMTP_HOST / SMTP_PASSWORD missing; cannot send email")
        raise RuntimeError("Email is not configured. Provide SMTP_HOST and SMTP_PASSWORD.")

    from_addr_effective = (from_addr or "").strip() or SMTP_FROM

    # Build MIME email with plain-text fallback
    msg = EmailMessage()
    msg["From"] = from_addr_effective
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content("This email contains HTML content. If you see this, please view in an HTML-capable client.")
    msg.add_alternative(html_body, subtype="html")

    try:
        context = ssl.create_default_context()
        if SMTP_PORT == 465:
            with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=15) as server:
                server.login(SMTP_USER, SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=15) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                server.login(SMTP_USER, SMTP_PASSWORD)
                server.send_message(msg)
        _elog(f"SMTP send ok via {SMTP_HOST}:{SMTP_PORT} from={from_addr_effective} to={to_email}")
    except smtplib.SMTPResponseException as e:
        err = e.smtp_error.decode("utf-8", "ignore") if isinstance(e.smtp_error, (bytes, bytearray)) else str(e.smtp_error)
        logger.warning("SMTP error %s: %s", e.smtp_code, err)
        raise RuntimeError("Failed to send email via SMTP") from e
    except (smtplib.SMTPException, OSError) as ex:
        logger.exception("SMTP send failed: %s", ex)
        raise RuntimeError("Failed to send email via SMTP") from ex
