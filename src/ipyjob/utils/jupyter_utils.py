# %%
from typing import Any, TypeAlias

from nbformat import NotebookNode

# %%
Cell: TypeAlias = NotebookNode
Paragraph: TypeAlias = dict[str, Any]

# Editor mode Zeppelin stores for markdown paragraphs
MARKDOWN_EDITOR_MODE = "ace/mode/markdown"
# Interpreter directive that turns a Zeppelin paragraph into markdown
MARKDOWN_DIRECTIVE = "%md"


# %%
def get_cell_type(cell: Cell) -> str:
    """Return the type of `cell`."""
    return cell['cell_type']


def is_code_cell(cell):
    """Returns whether a cell is a code cell."""
    return get_cell_type(cell) == 'code'


def is_markdown_cell(cell):
    """Returns whether a cell is a markdown cell."""
    return get_cell_type(cell) == 'markdown'


def has_source(cell: Cell) -> bool:
    return 'source' in cell


def get_cell_source(cell: Cell) -> str:
    """Return the source of `cell` as a single string.

    Notebooks on disk may store the source as a list of lines."""
    source = cell['source']
    if isinstance(source, list):
        return ''.join(source)
    return source


# %%
def get_editor_mode(paragraph: Paragraph) -> str:
    """Return the editor mode of a Zeppelin paragraph, or '' if it has none."""
    config = paragraph.get('config') or {}
    return config.get('editorMode') or ''


def has_text(paragraph: Paragraph) -> bool:
    return 'text' in paragraph


def get_paragraph_text(paragraph: Paragraph) -> str:
    """Return the text of a Zeppelin paragraph. A `null` text is empty."""
    return paragraph['text'] or ''


def is_documentation_paragraph(paragraph: Paragraph) -> bool:
    """Return whether a paragraph contains documentation rather than code.

    Zeppelin marks markdown paragraphs through their editor mode; paragraphs
    written before the editor mode was recorded only carry the `%md`
    interpreter directive at the start of their text."""
    if get_editor_mode(paragraph) == MARKDOWN_EDITOR_MODE:
        return True
    text = (paragraph.get('text') or '').lstrip()
    return text.split(maxsplit=1)[:1] == [MARKDOWN_DIRECTIVE]
