# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Scratch file handling.

Playbooks and variable payloads handed to ansible-playbook live only for the
duration of a single process run.
"""

import os
import tempfile
from contextlib import contextmanager
from typing import Iterator, List


def write_file(path: str, content: str, encoding: str = "utf-8") -> None:
    """Write string to file."""
    with open(path, "w", encoding=encoding) as f:
        f.write(content)


def remove_file(path: str) -> bool:
    """
    Remove a file if it exists.

    Returns:
        True if file was removed, False if it didn't exist
    """
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False


@contextmanager
def scratch_files(*contents: str, prefix: str = "atui_") -> Iterator[List[str]]:
    """
    Write each content string to its own temporary file.

    Yields the file paths in the same order. Every file is removed on exit,
    including when the body raises.

    Example:
        with scratch_files(playbook, variables) as (playbook_path, vars_path):
            ...
    """
    paths: List[str] = []
    try:
        for content in contents:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=".yml")
            os.close(fd)
            paths.append(path)
            write_file(path, content)
        yield paths
    finally:
        for path in paths:
            remove_file(path)
