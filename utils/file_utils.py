"""
File Utilities Module
Common file operations and path handling functions.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

def normalize_path(path: str | Path) -> Path:
    """Convert string path to normalized Path object."""
    return Path(path).resolve()

def ensure_directory(directory: Path) -> None:
    """Ensure directory exists, create if necessary."""
    directory.mkdir(parents=True, exist_ok=True)

def atomic_write_bytes(file_path: Path, data: bytes) -> None:
    """
    Write bytes to a file so readers never observe a partial write.

    The data goes to a temporary file in the same directory first, which is
    then renamed over the destination.

    Args:
        file_path: Destination file
        data: Raw bytes to write

    Raises:
        OSError: If the file can't be written or renamed
    """
    file_path = Path(file_path)
    ensure_directory(file_path.parent)

    fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f'.{file_path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, file_path)
    except BaseException:
        # Clean up the temp file, then let the original error through
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise

def read_json(file_path: Path) -> Any:
    """
    Read and decode a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If the content is not valid JSON
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)

def write_json(file_path: Path, data: Dict, indent: int = 4) -> None:
    """Atomically write a dictionary as formatted JSON."""
    content = json.dumps(data, indent=indent)
    atomic_write_bytes(file_path, content.encode('utf-8'))

def read_file_bytes(file_path: Path) -> bytes:
    """Read a binary file in one go."""
    with open(file_path, 'rb') as f:
        return f.read()
