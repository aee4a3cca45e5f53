"""Post body rendering service.

Turns raw author text into an HTML fragment: bare URLs become links, image
URLs become lazy-loaded ``<img>`` elements, and everything else is escaped
and wrapped in paragraphs. Also builds the HTML bodies for outgoing email.
"""

import html
import re

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_URL_RE = re.compile(r"https?://\S+")
# Extension must end the URL or be followed by a query string / fragment
_IMAGE_EXT_RE = re.compile(r"\.(?:png|jpg|jpeg|gif|webp)(?:[?#]|$)", re.IGNORECASE)

EXCERPT_LENGTH = 240


def is_image_url(url: str) -> bool:
    """Return True if *url* points at an allow-listed image type."""
    return bool(_IMAGE_EXT_RE.search(url))


def _attr(value: str) -> str:
    """Quote-escape a value that has already had ``& < >`` escaped."""
    return value.replace('"', "&quot;").replace("'", "&#x27;")


def _image_element(src: str) -> str:
    return (
        f'<div class="post-image"><img src="{src}" alt="image" loading="lazy"/></div>'
    )


def _link_or_image(match: re.Match[str]) -> str:
    # The line was escaped before matching, so the URL is already safe text.
    url = match.group(0)
    if is_image_url(url):
        return _image_element(_attr(url))
    return (
        f'<a href="{_attr(url)}" target="_blank" rel="noopener noreferrer">{url}</a>'
    )


def _render_line(line: str) -> str:
    trimmed = line.strip()
    if not trimmed:
        return "<br/>"

    if _URL_RE.fullmatch(trimmed) and is_image_url(trimmed):
        return _image_element(html.escape(trimmed))

    escaped = html.escape(line, quote=False)
    return f"<p>{_URL_RE.sub(_link_or_image, escaped)}</p>"


def render_content_to_html(content: str | None) -> str:
    """Render a post body to an HTML fragment, one block per input line.

    Blank lines become ``<br/>``. A line holding nothing but an image URL
    becomes a standalone image. Other lines are escaped, their URLs are
    replaced with anchors (or inline images), and the result is wrapped in
    ``<p>``.
    """
    if not content:
        return ""
    return "\n".join(_render_line(line) for line in _LINE_SPLIT_RE.split(content))


def excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    """Leading slice of a post body for listings."""
    return content[:length]


def render_broadcast_html(subject: str, message: str, site_name: str) -> str:
    """Branded HTML body for an admin broadcast.

    Only ``<`` is escaped in the message so that the author's line breaks and
    entities survive inside the ``pre-wrap`` block.
    """
    body = message.replace("<", "&lt;")
    return f"""
  <div style="font-family: Arial, sans-serif; background:#f6f7f9; padding:24px">
    <div style="max-width:640px; margin:0 auto; background:#ffffff; border-radius:8px; overflow:hidden; box-shadow:0 2px 8px rgba(0,0,0,0.06)">
      <div style="background:#111; color:#fff; padding:16px 20px;">
        <h2 style="margin:0; font-weight:600">{html.escape(site_name)}</h2>
      </div>
      <div style="padding:20px">
        <h3 style="margin-top:0; color:#111">{html.escape(subject)}</h3>
        <div style="white-space:pre-wrap; color:#222; line-height:1.6">{body}</div>
        <p style="margin-top:28px; color:#666; font-size:12px">You are receiving this because you subscribed to {html.escape(site_name)} updates.</p>
      </div>
    </div>
  </div>"""


def render_new_post_email(title: str, url: str) -> tuple[str, str, str]:
    """Return ``(subject, html, text)`` for a new-post notification."""
    subject = f"New post: {title}"
    body_html = (
        f"<p>New post: <strong>{html.escape(title)}</strong></p>"
        f'<p><a href="{html.escape(url)}">Read it here</a></p>'
    )
    text = f"New post: {title}\n{url}"
    return subject, body_html, text


def render_welcome_email(site_name: str) -> tuple[str, str, str]:
    """Return ``(subject, html, text)`` for a new subscriber."""
    name = html.escape(site_name)
    subject = f"Welcome to {site_name}"
    body_html = (
        f"<p>Welcome to <strong>{name}</strong>!</p>"
        "<p>We'll email you when new articles are published.</p>"
    )
    text = f"Welcome to {site_name}! You're subscribed for new articles."
    return subject, body_html, text
