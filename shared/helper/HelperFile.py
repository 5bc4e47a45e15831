"""File helpers shared by the JSON-backed stores."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(path: Path, content: Any) -> None:
    """Durably replace `path` with the JSON serialisation of `content`.

    The data is written to a temp file in the same directory, flushed and
    fsynced, then moved over the target with os.replace, so readers only ever
    see the old or the new file.

    Args:
        path (Path): Target file.
        content (Any): JSON-serialisable content.

    Raises:
        OSError: If the file cannot be written; the previous file stays intact.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(content, tmp_file, ensure_ascii=False, indent=2)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path) -> Any:
    """Read a JSON file.

    Returns:
        Any: The decoded content, or None if the file does not exist.

    Raises:
        OSError, ValueError: If the file exists but cannot be read or decoded.
    """
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
