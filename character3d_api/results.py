from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_GALLERY_TITLE = "Similar 3D Character"
DEFAULT_GALLERY_SOURCE = "Web"

# Where a Failure came from; the HTTP status is chosen from this.
FAILURE_INPUT = "input"
FAILURE_TRANSPORT = "transport"
FAILURE_SHAPE = "shape"


@dataclass(frozen=True)
class GalleryImage:
    url: str
    title: str = DEFAULT_GALLERY_TITLE
    source_url: str = DEFAULT_GALLERY_SOURCE


@dataclass(frozen=True)
class SingleImage:
    url: str
    caption: str | None = None
    kind: str = field(default="single_image", init=False)


@dataclass(frozen=True)
class ImageGallery:
    images: tuple[GalleryImage, ...]
    analysis: str | None = None
    kind: str = field(default="gallery", init=False)


@dataclass(frozen=True)
class TextOnly:
    text: str
    analysis: str | None = None
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class Failure:
    reason: str
    raw_details: Any = None
    origin: str = FAILURE_SHAPE
    kind: str = field(default="failure", init=False)


ClassifiedResult = Union[SingleImage, ImageGallery, TextOnly, Failure]
