"""Markdown composition and sanitised HTML/plaintext rendering for notification emails."""
import re
from typing import Dict, List

import bleach
from markdown_it import MarkdownIt


# Single parser reused across renders; raw HTML disabled
_md = MarkdownIt("commonmark", {"linkify": True, "typographer": True, "html": False}).enable(["linkify", "table"])

EMAIL_ALLOWED_TAGS = [
    "p",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "h2",
    "h3",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
    "hr",
    "a",
    "br",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "th": ["align"],
    "td": ["align"],
}


def _normalize_whitespace(text: str) -> str:
    cleaned = re.sub(r"[\r\t]+", " ", text or "")
    cleaned = re.sub(r" +", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def markdown_to_email_html(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    safe_html = bleach.clean(rendered, tags=EMAIL_ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)
    return (
        "<div style=\"font-family: 'Segoe UI', Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #0f172a;\">"
        f"{safe_html}"
        "</div>"
    )


def markdown_to_plaintext(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    text_only = bleach.clean(rendered, tags=[], attributes={}, strip=True)
    return re.sub(r"\s+", " ", text_only).strip()


def format_sections(sections: List[Dict[str, object]]) -> str:
    """Build markdown from an ordered list of {title, bullets, body} sections."""
    parts: List[str] = []
    for section in sections:
        title = _normalize_whitespace(str(section.get("title", "") or ""))
        if title:
            parts.append(f"## {title}")
        for bullet in section.get("bullets") or []:
            if bullet is None:
                continue
            bullet_text = _normalize_whitespace(str(bullet))
            if bullet_text:
                parts.append(f"- {bullet_text}")
        body = section.get("body") or ""
        if body:
            parts.append(_normalize_whitespace(str(body)))
        parts.append("")
    return "\n".join([p for p in parts if p.strip()])


def _plural_days(days: int) -> str:
    return f"{days} day{'s' if days != 1 else ''}"


def format_certificate_expiry_markdown(context: Dict[str, object]) -> str:
    days = int(context.get("days_until_expiry") or 0)
    return format_sections(
        [
            {
                "body": (
                    f"Hello {context.get('landlord_name') or 'there'}, your "
                    f"**{context.get('certificate_type') or 'certificate'}** for "
                    f"{context.get('property_address') or 'your property'} expires in {_plural_days(days)}."
                ),
            },
            {
                "title": "Certificate Details",
                "bullets": [
                    f"Property: {context.get('property_address') or 'your property'}",
                    f"Certificate: {context.get('certificate_type') or 'Certificate'}",
                    f"Expiry date: {context.get('expiry_date') or 'soon'}",
                ],
            },
            {
                "title": "What to do",
                "body": "Book a qualified engineer and upload the renewed certificate to keep the property compliant.",
            },
        ]
    )


def format_notification_markdown(context: Dict[str, object]) -> str:
    sections: List[Dict[str, object]] = [{"body": str(context.get("message") or "")}]
    details = context.get("details") or {}
    if isinstance(details, dict) and details:
        sections.append(
            {
                "title": "Details",
                "bullets": [f"{k.replace('_', ' ').capitalize()}: {v}" for k, v in details.items() if v is not None],
            }
        )
    return format_sections(sections)
