import logging
from enum import StrEnum
from pathlib import PurePath

from attrs import field, frozen

from ipyjob.core.errors import ConfigError

logger = logging.getLogger(__name__)


class SourceFormat(StrEnum):
    TEXT = "text"
    IPYNB = "ipynb"
    ZEPPELIN_JSON = "zeppelin-json"
    PLAIN_FILE = "plain-file"


# Extensions are matched case-sensitively, like the file names in the workspace.
EXTENSION_FORMATS: dict[str, SourceFormat] = {
    "ipynb": SourceFormat.IPYNB,
    "json": SourceFormat.ZEPPELIN_JSON,
    "txt": SourceFormat.PLAIN_FILE,
}

_FORMAT_ALIASES: dict[str, SourceFormat] = {
    "zeppelin": SourceFormat.ZEPPELIN_JSON,
    "json": SourceFormat.ZEPPELIN_JSON,
    "notebook": SourceFormat.IPYNB,
    "plain": SourceFormat.PLAIN_FILE,
    "file": SourceFormat.PLAIN_FILE,
    "txt": SourceFormat.PLAIN_FILE,
}


@frozen
class CodeUnit:
    """One independently submittable fragment of source code.

    `sequence_number` is the 0-based position of the originating element in the
    source document. Elements that are dropped entirely leave gaps, so numbers
    are strictly increasing but not necessarily contiguous.
    """

    sequence_number: int
    source_text: str
    skip: bool = field(default=False, kw_only=True)

    @property
    def is_executable(self) -> bool:
        return not self.skip


def format_for_extension(extension: str | None) -> SourceFormat:
    """Return the source format for a file extension (without the dot).

    Unknown or missing extensions map to `SourceFormat.PLAIN_FILE`; this
    function never raises.
    """
    if not extension:
        return SourceFormat.PLAIN_FILE
    source_format = EXTENSION_FORMATS.get(extension, SourceFormat.PLAIN_FILE)
    logger.debug(f"Extension {extension!r} resolved to format {source_format}")
    return source_format


def format_for_path(path: str | PurePath) -> SourceFormat:
    name = PurePath(path).name
    if "." not in name:
        return SourceFormat.PLAIN_FILE
    return format_for_extension(name.rsplit(".", maxsplit=1)[1])


def parse_format(name: str | SourceFormat) -> SourceFormat:
    """Convert a declared format name into a `SourceFormat`.

    Raises `ConfigError` for names that are not known formats.
    """
    if isinstance(name, SourceFormat):
        return name
    normalized = name.strip().lower()
    try:
        return SourceFormat(normalized)
    except ValueError:
        pass
    try:
        return _FORMAT_ALIASES[normalized]
    except KeyError:
        raise ConfigError(f"Unknown source format: {name!r}") from None
