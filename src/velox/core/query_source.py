"""Text source resolution for velox commands.

Resolves SQL or a criteria document from one of three sources:
1. Inline (-e flag): highest priority
2. File path: middle priority
3. stdin: lowest priority
"""

from __future__ import annotations

import sys
from pathlib import Path

from velox.core.exceptions import InputError


def resolve_query_source(
    inline: str | None,
    file_path: str | None,
    *,
    label: str = "Query",
    required: bool = True,
) -> str:
    """Resolve text from inline, file, or stdin.

    Precedence: inline > file > stdin.
    Raises InputError when no source is available and one is required;
    otherwise returns an empty string.
    """
    if inline is not None:
        return inline

    if file_path is not None:
        p = Path(file_path)
        if not p.exists():
            msg = (
                f"{label} file not found: {file_path}\n"
                "Use -e for inline input or pipe it via stdin."
            )
            raise InputError(msg)
        return p.read_text()

    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if not is_tty:
        text = sys.stdin.read()
        if text.strip() or not required:
            return text

    if not required:
        return ""
    msg = f"No {label.lower()} provided. Use -e, file path, or pipe to stdin."
    raise InputError(msg)
