import asyncio
from pathlib import Path

from labelscan.stages.exceptions import ImageReadError


def resolve_image_path(images_root: Path | None, image_ref: str) -> Path:
    """Relative refs are resolved against ``images_root``; absolute refs are kept."""
    path = Path(image_ref)
    if images_root is None or path.is_absolute():
        return path
    return images_root / path


class ImageLoader:
    """Resolves a record's image reference and reads the captured bytes."""

    def __init__(self, images_root: Path | None = None) -> None:
        self._images_root = images_root

    async def load(self, image_ref: str) -> bytes:
        """Read image bytes from disk.

        Raises:
            ImageReadError: if the file is missing, empty or unreadable.
        """
        path = resolve_image_path(self._images_root, image_ref)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ImageReadError(f"Failed to read image {path}: {exc}") from exc
        if not data:
            raise ImageReadError(f"Image file is empty: {path}")
        return data
