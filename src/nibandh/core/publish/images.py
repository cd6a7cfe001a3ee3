"""Copy images referenced by an article into the repository.

Inline ``data:image/...`` URIs are decoded and remote ``http(s)`` images are
downloaded; their references are rewritten to the repository image URL.
Images that cannot be stored keep their original reference.
"""

import base64
import binascii
import re
import shutil
from pathlib import Path

import requests
from loguru import logger

from nibandh.config import IMAGE_DOWNLOAD_TIMEOUT

_INLINE_IMAGE_RE = re.compile(
    r"!\[([^\]]*)\]\((data:image[^)]+|https?://[^)]+)\)"
    r'|<img([^>]*?)src="(data:image[^"]+|https?://[^"]+)"([^>]*)>'
)

_KNOWN_EXTENSIONS = ("png", "jpg", "jpeg", "webp", "gif", "bmp", "tiff", "avif")


class ImageError(RuntimeError):
    """An image could not be stored."""


def _extension_for_mime(mime: str) -> str | None:
    for needle, ext in (
        ("image/png", "png"),
        ("image/gif", "gif"),
        ("image/webp", "webp"),
        ("image/heic", "heic"),
        ("image/heif", "heic"),
        ("image/jpeg", "jpg"),
    ):
        if needle in mime:
            return ext
    return None


def guess_extension_from_url(url: str) -> str | None:
    filename = url.split("?", 1)[0].rsplit("/", 1)[-1]
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return extension if extension in _KNOWN_EXTENSIONS else None


class ImageLocalizer:
    """Stores images for one article under images_dir, served at url_prefix."""

    def __init__(
        self,
        images_dir: Path,
        url_prefix: str,
        *,
        session: requests.Session | None = None,
        timeout: float = IMAGE_DOWNLOAD_TIMEOUT,
    ) -> None:
        self.images_dir = images_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.sess = session or requests.Session()
        self.timeout = timeout

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def save_data_url(self, data_url: str, stem: str) -> str:
        header, sep, payload = data_url.partition(",")
        if not sep:
            msg = "Invalid data URL format"
            raise ImageError(msg)
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            msg = f"Failed to decode base64: {e}"
            raise ImageError(msg) from e
        return self._write(f"{stem}.{_extension_for_mime(header) or 'jpg'}", data)

    def save_remote(self, url: str, stem: str) -> str:
        logger.debug("Downloading image {}", url)
        try:
            r = self.sess.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            msg = f"Failed to download image: {e}"
            raise ImageError(msg) from e
        extension = (
            _extension_for_mime(r.headers.get("Content-Type", ""))
            or guess_extension_from_url(url)
            or "jpg"
        )
        return self._write(f"{stem}.{extension}", r.content)

    def _write(self, filename: str, data: bytes) -> str:
        self.images_dir.mkdir(parents=True, exist_ok=True)
        (self.images_dir / filename).write_bytes(data)
        return filename

    def _store(self, source: str, stem: str) -> str:
        if source.startswith("data:"):
            return self.save_data_url(source, stem)
        return self.save_remote(source, stem)

    def localize_markup(self, markup: str, slug: str) -> str:
        """Rewrite inline and remote image references to stored copies."""
        output: list[str] = []
        last = 0
        image_index = 1
        for match in _INLINE_IMAGE_RE.finditer(markup):
            output.append(markup[last : match.start()])
            last = match.end()
            alt, source, before, img_source, after = match.groups()
            source = source or img_source
            try:
                filename = self._store(source, f"img_{slug}_{image_index}")
            except (ImageError, OSError) as e:
                logger.warning("Keeping original image reference: {}", e)
                output.append(match.group(0))
                continue
            image_index += 1
            if img_source is None:
                output.append(f"![{alt}]({self.url_for(filename)})")
            else:
                output.append(f'<img{before}src="{self.url_for(filename)}"{after}>')
        output.append(markup[last:])
        return "".join(output)

    def localize_cover(
        self,
        cover: str,
        slug: str,
        *,
        staged_prefix: str | None = None,
        staged_dir: Path | None = None,
    ) -> str:
        """Store the cover image and return its repository URL.

        A cover already staged under staged_prefix (e.g. by a sync) is copied
        from staged_dir. Other local paths are kept as they are.
        """
        if not cover:
            return ""
        try:
            if cover.startswith(("data:", "http://", "https://")):
                return self.url_for(self._store(cover, f"cover_{slug}"))
            if staged_prefix and staged_dir and cover.startswith(staged_prefix):
                filename = cover.removeprefix(staged_prefix).lstrip("/")
                source = staged_dir / filename
                if source.exists():
                    self.images_dir.mkdir(parents=True, exist_ok=True)
                    shutil.copyfile(source, self.images_dir / filename)
                    return self.url_for(filename)
        except (ImageError, OSError) as e:
            logger.warning("Keeping original cover reference: {}", e)
        return cover
