"""Conversion of source documents into ordered code units.

All functions in this module are pure: they only look at the bytes they are
given, and parsing the same bytes twice yields equal results.
"""

import json
import logging

import nbformat
from nbformat.reader import NotJSONError

from ipyjob.core.code_unit import CodeUnit, SourceFormat
from ipyjob.core.errors import FormatError, StructureError
from ipyjob.utils.jupyter_utils import (
    get_cell_source,
    get_paragraph_text,
    has_source,
    has_text,
    is_code_cell,
    is_documentation_paragraph,
)

logger = logging.getLogger(__name__)


def parse(source_format: SourceFormat, source_bytes: bytes) -> list[CodeUnit]:
    """Turn `source_bytes` into code units according to `source_format`.

    Raises `FormatError` if the bytes cannot be decoded as the declared format
    and `StructureError` if a required part of the document is missing.
    """
    match source_format:
        case SourceFormat.TEXT:
            return parse_text(_decode(source_bytes, source_format))
        case SourceFormat.IPYNB:
            return parse_ipynb(_decode(source_bytes, source_format))
        case SourceFormat.ZEPPELIN_JSON:
            return parse_zeppelin(_decode(source_bytes, source_format))
        case _:
            return parse_plain_file(_decode(source_bytes, source_format))


def _decode(source_bytes: bytes, source_format: SourceFormat) -> str:
    try:
        return source_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Source is not valid UTF-8 ({source_format}): {e}") from e


def parse_text(code: str) -> list[CodeUnit]:
    return [CodeUnit(0, code)]


def parse_plain_file(content: str) -> list[CodeUnit]:
    return [CodeUnit(0, content)]


def _is_source(source) -> bool:
    if isinstance(source, list):
        return all(isinstance(line, str) for line in source)
    return isinstance(source, str)


def parse_ipynb(text: str) -> list[CodeUnit]:
    """Return one code unit per code cell of a Jupyter notebook.

    Markdown and raw cells are dropped; the sequence number of each unit is
    the index of its cell in the notebook."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Notebook is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise StructureError("Notebook is not a JSON object")

    version = raw.get("nbformat", 4)
    if not isinstance(version, int):
        raise FormatError(f"Invalid notebook format version: {version!r}")
    if version < 4:
        # Older notebooks keep their cells in worksheets; let nbformat upgrade them.
        try:
            nb = nbformat.reads(text, as_version=4)
        except NotJSONError as e:
            raise FormatError(f"Notebook is not valid JSON: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise FormatError(f"Cannot convert notebook to version 4: {e}") from e
    else:
        nb = nbformat.from_dict(raw)

    cells = nb.get("cells")
    if not isinstance(cells, list):
        raise StructureError("Notebook has no list of cells")

    units = []
    for index, cell in enumerate(cells):
        if not isinstance(cell, dict):
            raise StructureError(f"Cell {index} is not a JSON object")
        if "cell_type" not in cell:
            raise StructureError(f"Cell {index} has no cell type")
        if not is_code_cell(cell):
            continue
        if not has_source(cell):
            raise StructureError(f"Code cell {index} has no source")
        if not _is_source(cell["source"]):
            raise StructureError(f"Code cell {index} has a source that is not text")
        units.append(CodeUnit(index, get_cell_source(cell)))
    logger.debug(f"Parsed notebook: {len(units)} code cells of {len(cells)} cells")
    return units


def parse_zeppelin(text: str) -> list[CodeUnit]:
    """Return one code unit per paragraph of a Zeppelin note.

    Documentation paragraphs are kept as skipped units so that the run log
    accounts for every paragraph, but they are never executed."""
    try:
        note = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Zeppelin note is not valid JSON: {e}") from e

    if not isinstance(note, dict):
        raise StructureError("Zeppelin note is not a JSON object")
    paragraphs = note.get("paragraphs")
    if not isinstance(paragraphs, list):
        raise StructureError("Zeppelin note has no list of paragraphs")

    units = []
    for index, paragraph in enumerate(paragraphs):
        if not isinstance(paragraph, dict):
            raise StructureError(f"Paragraph {index} is not a JSON object")
        if not has_text(paragraph):
            raise StructureError(f"Paragraph {index} has no text")
        if not (paragraph["text"] is None or isinstance(paragraph["text"], str)):
            raise StructureError(f"Paragraph {index} has a text that is not a string")
        if not (paragraph.get("config") is None or isinstance(paragraph["config"], dict)):
            raise StructureError(f"Paragraph {index} has a config that is not a JSON object")
        units.append(
            CodeUnit(
                index,
                get_paragraph_text(paragraph),
                skip=is_documentation_paragraph(paragraph),
            )
        )
    skipped = sum(unit.skip for unit in units)
    logger.debug(f"Parsed Zeppelin note: {len(units)} paragraphs, {skipped} skipped")
    return units
