import logging
from base64 import b64decode
from pathlib import Path

from ipyjob.utils.path_utils import sanitize_file_name

logger = logging.getLogger(__name__)

# MIME types that are saved as files, in order of preference, with their suffix
# and whether the payload is base64 encoded.
ARTIFACT_MIME_TYPES: dict[str, tuple[str, bool]] = {
    "image/png": (".png", True),
    "image/jpeg": (".jpg", True),
    "image/svg+xml": (".svg", False),
    "text/html": (".html", False),
}


class ArtifactStore:
    """Saves rich kernel output (images, HTML) under `<root>/<task>/`.

    Only one representation per output message is saved, the first one found
    in `ARTIFACT_MIME_TYPES` order.
    """

    def __init__(self, root: Path, task: str):
        self.directory = Path(root) / sanitize_file_name(task)
        self._counters: dict[int, int] = {}
        self.saved: list[Path] = []

    def save(self, sequence_number: int, data: dict) -> Path | None:
        for mime_type, (suffix, is_base64) in ARTIFACT_MIME_TYPES.items():
            if mime_type in data:
                return self._write(sequence_number, data[mime_type], suffix, is_base64)
        return None

    def _write(
        self, sequence_number: int, payload: str | list[str], suffix: str, is_base64: bool
    ) -> Path:
        if isinstance(payload, list):
            payload = "".join(payload)
        index = self._counters.get(sequence_number, 0) + 1
        self._counters[sequence_number] = index
        path = self.directory / f"unit-{sequence_number}-{index}{suffix}"
        path.parent.mkdir(parents=True, exist_ok=True)
        if is_base64:
            path.write_bytes(b64decode(payload))
        else:
            path.write_text(payload, encoding="utf-8")
        logger.debug(f"Saved artifact {path}")
        self.saved.append(path)
        return path
