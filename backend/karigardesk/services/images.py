"""Design reference images.

Pictures are keyed by design code; on bulk upload the file name (without
folder or extension) is the design code. Pillow checks that each upload is a
real picture before it is stored.
"""
import base64
import io
import logging
import posixpath
import zipfile
from typing import Dict, Iterable, Iterator, Tuple

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from karigardesk import config
from karigardesk.errors import ImageReadError, NotFoundError
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")
CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


class ImageInfo(BaseModel):
    content_type: str
    width: int
    height: int


def inspect_image(content: bytes) -> ImageInfo:
    if not content:
        raise ImageReadError("Image is empty")
    if len(content) > config.DESIGN_IMAGE_MAX_BYTES:
        raise ImageReadError(f"Image is {len(content)} bytes; the limit is {config.DESIGN_IMAGE_MAX_BYTES}")
    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ImageReadError(f"Not a readable image: {e}") from e

    content_type = CONTENT_TYPES.get(fmt or "")
    if content_type is None:
        raise ImageReadError(f"Unsupported image format {fmt}; expected JPEG, PNG, GIF or WEBP")
    return ImageInfo(content_type=content_type, width=width, height=height)


def design_code_from_filename(filename: str) -> str:
    base = posixpath.basename((filename or "").replace("\\", "/"))
    stem = base.rsplit(".", 1)[0] if "." in base else base
    return normalize_design_code(stem)


def expand_uploads(filename: str, content: bytes) -> Iterator[Tuple[str, bytes]]:
    """Yield ``(name, bytes)`` per picture; a .zip upload yields each picture inside it."""
    if not (filename or "").lower().endswith(".zip"):
        yield filename, content
        return
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as e:
        raise ImageReadError(f"Could not open archive {filename}: {e}") from e
    with archive:
        for info in archive.infolist():
            name = info.filename
            if info.is_dir() or name.startswith("__MACOSX/"):
                continue
            if name.lower().endswith(IMAGE_SUFFIXES):
                yield name, archive.read(info)


def data_uri(content_type: str, data: bytes) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def load_report_images(store, design_codes: Iterable[str]) -> Dict[str, str]:
    """Data URIs for the designs that have a picture, keyed by design code."""
    uris: Dict[str, str] = {}
    for code in sorted({normalize_design_code(c) for c in design_codes if c}):
        try:
            blob = store.get_design_image(code)
        except NotFoundError:
            continue
        uris[code] = data_uri(blob.content_type, blob.data)
    logger.debug("Loaded %s design images for report", len(uris))
    return uris
