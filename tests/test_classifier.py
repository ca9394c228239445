import pytest

from character3d_api.classifier import NO_CONTENT_ERROR, SHAPE_ERROR, classify_reply, extract_image_urls
from character3d_api.results import Failure, GalleryImage, ImageGallery, SingleImage, TextOnly


def _reply(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_text_and_image_items_become_single_image_with_caption() -> None:
    reply = _reply(
        [
            {"type": "text", "text": "Great style!"},
            {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
        ]
    )

    result = classify_reply(reply)

    assert result == SingleImage(url="https://x/y.png", caption="Great style!")


def test_top_level_images_become_gallery_with_default_titles() -> None:
    reply = {"images": [{"url": "https://a/1.jpg"}, {"url": "https://a/2.jpg"}]}

    result = classify_reply(reply)

    assert isinstance(result, ImageGallery)
    assert [image.url for image in result.images] == ["https://a/1.jpg", "https://a/2.jpg"]
    assert all(image.title == "Similar 3D Character" for image in result.images)
    assert all(image.source_url == "Web" for image in result.images)


def test_top_level_images_win_over_image_url_item() -> None:
    reply = _reply([{"type": "image_url", "image_url": {"url": "https://x/primary.png"}}])
    reply["images"] = [{"image_url": "https://a/1.jpg", "origin_url": "https://site/page", "title": "Hero"}]

    result = classify_reply(reply)

    assert result == ImageGallery(
        images=(GalleryImage(url="https://a/1.jpg", title="Hero", source_url="https://site/page"),),
    )


def test_gallery_keeps_text_as_analysis() -> None:
    reply = _reply("A cheerful robot with round eyes.")
    reply["images"] = ["https://a/1.webp"]

    result = classify_reply(reply)

    assert isinstance(result, ImageGallery)
    assert result.analysis == "A cheerful robot with round eyes."


def test_plain_text_without_urls_is_text_only_verbatim() -> None:
    text = "  **Step 1**: open Blender.\n\nStep 2: sculpt.  "

    result = classify_reply(_reply(text))

    assert result == TextOnly(text=text)


def test_text_urls_become_fallback_gallery_capped_at_five() -> None:
    urls = [f"https://cdn.test/render{i}.png" for i in range(7)]
    text = "Similar renders: " + ", ".join(urls) + " and https://cdn.test/render0.png again."

    result = classify_reply(_reply(text))

    assert isinstance(result, ImageGallery)
    assert [image.url for image in result.images] == urls[:5]
    assert result.analysis == text


def test_text_repeating_the_primary_url_stays_single_image() -> None:
    reply = _reply(
        [
            {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
            {"type": "text", "text": "Rendered at https://x/y.png"},
        ]
    )

    result = classify_reply(reply)

    assert result == SingleImage(url="https://x/y.png", caption="Rendered at https://x/y.png")


def test_extra_text_urls_promote_single_image_to_gallery() -> None:
    reply = _reply(
        [
            {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
            {"type": "text", "text": "Also see https://x/z.JPG?size=large"},
        ]
    )

    result = classify_reply(reply)

    assert isinstance(result, ImageGallery)
    assert [image.url for image in result.images] == ["https://x/y.png", "https://x/z.JPG?size=large"]


def test_first_image_and_first_text_items_are_taken() -> None:
    reply = _reply(
        [
            {"type": "text", "text": ""},
            {"type": "text", "text": "first"},
            {"type": "image_url", "image_url": {"url": "https://x/1.gif"}},
            {"type": "text", "text": "second"},
            {"type": "image_url", "image_url": {"url": "https://x/2.gif"}},
        ]
    )

    result = classify_reply(reply)

    assert result == SingleImage(url="https://x/1.gif", caption="first")


def test_image_url_item_accepts_plain_string() -> None:
    result = classify_reply(_reply([{"type": "image_url", "image_url": "https://x/y.png"}]))

    assert result == SingleImage(url="https://x/y.png")


@pytest.mark.parametrize("reply", [{}, {"id": "abc"}, {"choices": []}, [], None, "oops", 42])
def test_unrecognized_shapes_fail_with_raw_details(reply) -> None:
    result = classify_reply(reply)

    assert isinstance(result, Failure)
    assert result.reason == SHAPE_ERROR
    assert result.raw_details == reply


def test_choice_without_usable_content_fails_with_no_content() -> None:
    reply = _reply([{"type": "image_url", "image_url": {}}, {"type": "text", "text": "   "}])

    result = classify_reply(reply)

    assert result == Failure(reason=NO_CONTENT_ERROR, raw_details=reply)


def test_parse_errors_never_escape(monkeypatch) -> None:
    def _boom(_choices):
        raise KeyError("content")

    monkeypatch.setattr("character3d_api.classifier._extract_content", _boom)
    reply = _reply("hello")

    result = classify_reply(reply)

    assert result == Failure(reason=SHAPE_ERROR, raw_details=reply)


@pytest.mark.parametrize(
    "reply",
    [
        _reply("text"),
        _reply([{"type": "image_url", "image_url": {"url": "https://x/y.png"}}]),
        {"images": ["https://a/1.png"]},
        {"choices": [{"message": None}]},
        {"choices": "nope"},
    ],
)
def test_exactly_one_variant_is_returned(reply) -> None:
    result = classify_reply(reply)

    assert type(result) in {SingleImage, ImageGallery, TextOnly, Failure}


def test_extract_image_urls_ignores_non_image_links() -> None:
    text = "See https://site.test/page.html, (https://img.test/a.jpeg) and https://img.test/b.pngx"

    assert extract_image_urls(text) == ["https://img.test/a.jpeg"]
