"""Places downloaded images, or placeholders, into the output document."""

from pathlib import Path

from .logger import get_logger
from .observer import DownloadObserver, WarningKind
from .utils.images import (
    PLACEHOLDER_SIZE,
    PLACEHOLDER_TEXT,
    ArtifactDescriptor,
    MalformedImageError,
    inspect_image,
    placeholder_image,
    reencode_image,
)

logger = get_logger(__name__)


class ArtifactAssembler:
    """
    Turns image bytes into exactly one new page of the output document.

    The sink must provide ``new_page``, ``place_image`` and ``place_text``,
    and may declare ``NATIVE_FORMATS`` / ``NATIVE_TARGET_FORMAT``; images in
    other formats are re-encoded before placement.

    When ``image_output_dir`` is set, every page's image (real or
    placeholder) is also written there as ``<page_index>.<format>``.
    """

    DEFAULT_NATIVE_FORMATS = frozenset({"png", "jpg"})
    DEFAULT_TARGET_FORMAT = "png"

    def __init__(
        self,
        observer: DownloadObserver | None = None,
        image_output_dir: Path | str | None = None,
    ):
        self.observer = observer or DownloadObserver()
        self.image_output_dir = Path(image_output_dir) if image_output_dir else None

    def insert_artifact(self, sink, data: bytes, page_index: int) -> bool:
        """
        Add a page showing the image in ``data``.

        Malformed bytes fall back to a placeholder page and a
        ``MALFORMED_ARTIFACT`` warning.

        Returns:
            True if the real image was placed, False for a placeholder
        """
        try:
            artifact = inspect_image(data)
            placed = self._prepare_for(sink, artifact)
        except MalformedImageError as e:
            logger.debug(f"Page {page_index}: {e}")
            self.observer.on_warning(WarningKind.MALFORMED_ARTIFACT, str(e))
            self.insert_placeholder(sink, page_index)
            return False

        sink.new_page(artifact.width, artifact.height)
        try:
            sink.place_image(placed, 0, 0)
        except MalformedImageError as e:
            # The page is already open, so label it instead of adding another
            self.observer.on_warning(WarningKind.MALFORMED_ARTIFACT, str(e))
            sink.place_text(PLACEHOLDER_TEXT)
            self._save(placeholder_image(), page_index)
            return False

        self._save(artifact, page_index)
        return True

    def insert_placeholder(self, sink, page_index: int):
        """Add a small page saying the image is missing."""
        sink.new_page(*PLACEHOLDER_SIZE)
        sink.place_text(PLACEHOLDER_TEXT)
        self._save(placeholder_image(), page_index)

    def _prepare_for(self, sink, artifact: ArtifactDescriptor) -> bytes:
        """Return bytes the sink can place, converting only when needed."""
        native = getattr(sink, "NATIVE_FORMATS", self.DEFAULT_NATIVE_FORMATS)
        if artifact.format in native:
            return artifact.data

        target = getattr(sink, "NATIVE_TARGET_FORMAT", self.DEFAULT_TARGET_FORMAT)
        logger.debug(f"Converting {artifact.format} image to {target}")
        return reencode_image(artifact.data, target)

    def _save(self, artifact: ArtifactDescriptor, page_index: int):
        if self.image_output_dir is None:
            return

        self.image_output_dir.mkdir(parents=True, exist_ok=True)
        path = self.image_output_dir / f"{page_index}.{artifact.extension}"
        path.write_bytes(artifact.data)
        logger.debug(f"Saved image: {path}")
