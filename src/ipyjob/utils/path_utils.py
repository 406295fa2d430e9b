from pathlib import Path, PurePath

_PARENS_TO_REPLACE = "{}[]"
_REPLACEMENT_PARENS = "()" * (len(_PARENS_TO_REPLACE) // 2)
_CHARS_TO_REPLACE = "/\\$#%&<>*+=^€| "
_REPLACEMENT_CHARS = "_" * len(_CHARS_TO_REPLACE)
_CHARS_TO_DELETE = ";!?\"'`:"
_STRING_TRANSLATION_TABLE = str.maketrans(
    _PARENS_TO_REPLACE + _CHARS_TO_REPLACE,
    _REPLACEMENT_PARENS + _REPLACEMENT_CHARS,
    _CHARS_TO_DELETE,
)


def sanitize_file_name(text: str) -> str:
    """Turn a task label into something usable as a directory name."""
    sanitized_text = text.strip().translate(_STRING_TRANSLATION_TABLE)
    # Leading dots would create hidden directories or escape the parent.
    return sanitized_text.lstrip(".") or "_"


def resolve_in_workspace(path: str | PurePath, workspace: Path) -> Path:
    path = Path(path)
    if not path.is_absolute():
        return workspace / path
    return path
