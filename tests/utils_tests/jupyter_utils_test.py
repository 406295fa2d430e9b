from nbformat import from_dict

from ipyjob.utils.jupyter_utils import (
    get_cell_source,
    get_cell_type,
    get_editor_mode,
    get_paragraph_text,
    has_source,
    has_text,
    is_code_cell,
    is_documentation_paragraph,
    is_markdown_cell,
)

code_cell = from_dict({"cell_type": "code", "metadata": {}, "outputs": [], "source": "x = 1"})
markdown_cell = from_dict({"cell_type": "markdown", "metadata": {}, "source": ["# A\n", "b"]})


def test_get_cell_type():
    assert get_cell_type(markdown_cell) == 'markdown'
    assert get_cell_type(code_cell) == 'code'


def test_is_code_cell():
    assert not is_code_cell(markdown_cell)
    assert is_code_cell(code_cell)


def test_is_markdown_cell():
    assert is_markdown_cell(markdown_cell)
    assert not is_markdown_cell(code_cell)


def test_get_cell_source():
    assert get_cell_source(code_cell) == 'x = 1'
    assert get_cell_source(markdown_cell) == '# A\nb'


def test_has_source():
    assert has_source(code_cell)
    assert not has_source(from_dict({"cell_type": "code"}))


def test_get_editor_mode():
    assert get_editor_mode({"config": {"editorMode": "ace/mode/scala"}}) == 'ace/mode/scala'
    assert get_editor_mode({"config": None}) == ''
    assert get_editor_mode({}) == ''


def test_paragraph_text():
    assert has_text({"text": None})
    assert not has_text({})
    assert get_paragraph_text({"text": None}) == ''
    assert get_paragraph_text({"text": "1 + 1"}) == '1 + 1'


def test_is_documentation_paragraph():
    assert is_documentation_paragraph({"text": "x", "config": {"editorMode": "ace/mode/markdown"}})
    assert is_documentation_paragraph({"text": "  %md\n# Title"})
    assert not is_documentation_paragraph({"text": "%mdx"})
    assert not is_documentation_paragraph({"text": "print('%md')"})
    assert not is_documentation_paragraph({"text": None})
