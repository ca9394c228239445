"""HTML rendering for classified results.

Each result variant maps to exactly one display mode; the mode comes from the
variant itself, never from re-inspecting which fields happen to be present.
"""

import html
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from character3d_api.classifier import SHAPE_ERROR
from character3d_api.results import (
    DEFAULT_GALLERY_SOURCE,
    DEFAULT_GALLERY_TITLE,
    ClassifiedResult,
    Failure,
    GalleryImage,
    ImageGallery,
    SingleImage,
    TextOnly,
)

MSG_IMAGE_UNAVAILABLE = "The generated image could not be loaded."
MSG_VIEW_SOURCE = "View source"
MSG_TRY_AGAIN = "Try again"


class RenderMode(str, Enum):
    GALLERY = "gallery"
    SINGLE_IMAGE = "single_image"
    TEXT = "text"
    FAILURE = "failure"


_MODES = {
    ImageGallery: RenderMode.GALLERY,
    SingleImage: RenderMode.SINGLE_IMAGE,
    TextOnly: RenderMode.TEXT,
    Failure: RenderMode.FAILURE,
}

# (group name, pattern, output template). Order matters only between
# alternatives that can start at the same position.
MARKUP_RULES: tuple[tuple[str, str, str], ...] = (
    ("h3", r"^[ \t]*### +(?P<h3>[^\n]+?)[ \t]*$", "<h3>{}</h3>"),
    ("h2", r"^[ \t]*## +(?P<h2>[^\n]+?)[ \t]*$", "<h2>{}</h2>"),
    ("h1", r"^[ \t]*# +(?P<h1>[^\n]+?)[ \t]*$", "<h1>{}</h1>"),
    ("bold", r"\*\*(?P<bold>[^*\n]+)\*\*", "<strong>{}</strong>"),
    ("italic", r"\*(?P<italic>[^*\n]+)\*", "<em>{}</em>"),
    ("para", r"(?P<para>\n(?:[ \t]*\n)+)", "</p><p>"),
)
_INLINE_RULES = {"bold", "italic"}

_MARKUP_PATTERN = re.compile("|".join(pattern for _, pattern, _ in MARKUP_RULES), re.MULTILINE)
_INLINE_PATTERN = re.compile(
    "|".join(pattern for name, pattern, _ in MARKUP_RULES if name in _INLINE_RULES)
)
_TEMPLATES = {name: template for name, _, template in MARKUP_RULES}


def render_mode(result: ClassifiedResult) -> RenderMode:
    return _MODES[type(result)]


def format_text(text: str) -> str:
    escaped = html.escape(text.strip("\n"), quote=False)
    return f"<p>{_MARKUP_PATTERN.sub(_replace_markup, escaped)}</p>"


def _replace_markup(match: re.Match) -> str:
    name = match.lastgroup
    template = _TEMPLATES[name]
    if name == "para":
        return template
    body = match.group(name)
    if name not in _INLINE_RULES:
        body = _INLINE_PATTERN.sub(_replace_markup, body)
    return template.format(body)


def render_result(result: ClassifiedResult) -> str:
    mode = render_mode(result)
    if mode is RenderMode.GALLERY:
        return _render_gallery(result)
    if mode is RenderMode.SINGLE_IMAGE:
        return _render_single_image(result)
    if mode is RenderMode.TEXT:
        return _render_text(result)
    return _render_failure(result)


def render_page(result: ClassifiedResult) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        "<title>3D Character Generator</title>\n"
        '<link rel="stylesheet" href="/static/styles.css">\n'
        "</head>\n"
        "<body>\n"
        f"{render_result(result)}\n"
        "</body>\n"
        "</html>\n"
    )


def _render_gallery(result: ImageGallery) -> str:
    items = "".join(_render_gallery_item(image) for image in result.images)
    parts = ['<section class="result result--gallery">', f'<div class="gallery">{items}</div>']
    if result.analysis:
        parts.append(f'<div class="analysis">{format_text(result.analysis)}</div>')
    parts.append("</section>")
    return "".join(parts)


def _render_gallery_item(image: GalleryImage) -> str:
    src = _attr(_safe_url(image.url))
    source = _safe_url(image.source_url)
    link = _attr(source if source != "#" else _safe_url(image.url))
    title = html.escape(image.title, quote=False)
    # A broken image is swapped for a link to its source; siblings are untouched.
    onerror = (
        "var a=document.createElement('a');a.href=this.dataset.source;"
        f"a.textContent='{MSG_VIEW_SOURCE}';a.target='_blank';a.rel='noopener';"
        "this.replaceWith(a)"
    )
    return (
        '<figure class="gallery-item">'
        f'<img src="{src}" alt="{_attr(image.title)}" data-source="{link}" onerror="{_attr(onerror)}">'
        f"<figcaption>{title}</figcaption>"
        "</figure>"
    )


def _render_single_image(result: SingleImage) -> str:
    # A load failure hides image and caption together and shows the text block.
    fallback = _render_text(TextOnly(text=result.caption or MSG_IMAGE_UNAVAILABLE))
    onerror = "var p=this.parentNode;p.hidden=true;p.nextElementSibling.hidden=false"
    primary = [
        f'<img class="result-image" src="{_attr(_safe_url(result.url))}" alt="3D character" '
        f'onerror="{_attr(onerror)}">'
    ]
    if result.caption:
        primary.append(f'<div class="caption">{format_text(result.caption)}</div>')
    return (
        '<section class="result result--single-image">'
        f'<div class="result-primary">{"".join(primary)}</div>'
        f'<div class="result-fallback" hidden>{fallback}</div>'
        "</section>"
    )


def _render_text(result: TextOnly) -> str:
    parts = ['<section class="result result--text">', f'<div class="text-result">{format_text(result.text)}</div>']
    if result.analysis:
        parts.append(f'<div class="analysis">{format_text(result.analysis)}</div>')
    parts.append("</section>")
    return "".join(parts)


def _render_failure(result: Failure) -> str:
    return (
        '<section class="result result--failure">'
        f'<p class="error-message">{html.escape(result.reason, quote=False)}</p>'
        f'<a class="retry" href="/">{MSG_TRY_AGAIN}</a>'
        "</section>"
    )


def result_from_payload(payload: Any) -> ClassifiedResult:
    """Rebuild a result from a ``/api/generate-3d`` JSON body using its ``resultType`` tag."""
    if not isinstance(payload, Mapping):
        return Failure(reason=SHAPE_ERROR, raw_details=payload)

    result_type = payload.get("resultType")
    if not payload.get("success") or result_type == "failure":
        return Failure(reason=str(payload.get("error") or SHAPE_ERROR), raw_details=payload.get("details"))

    if result_type == "gallery":
        images = tuple(
            GalleryImage(
                url=entry["url"],
                title=entry.get("title") or DEFAULT_GALLERY_TITLE,
                source_url=entry.get("sourceUrl") or DEFAULT_GALLERY_SOURCE,
            )
            for entry in payload.get("images") or []
            if isinstance(entry, Mapping) and entry.get("url")
        )
        if images:
            return ImageGallery(images=images, analysis=payload.get("characterAnalysis"))
    elif result_type == "single_image" and payload.get("imageUrl"):
        return SingleImage(url=payload["imageUrl"], caption=payload.get("textResult"))
    elif result_type == "text" and payload.get("textResult"):
        return TextOnly(text=payload["textResult"], analysis=payload.get("characterAnalysis"))

    return Failure(reason=SHAPE_ERROR, raw_details=payload)


def _safe_url(url: str) -> str:
    lowered = url.strip().lower()
    if lowered.startswith(("http://", "https://", "data:image/")):
        return url.strip()
    return "#"


def _attr(value: str) -> str:
    return html.escape(value, quote=True)
