# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Result Classes

Render results and the extraction of the probe task's value from the
output of Ansible's JSON stdout callback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List
import json

from ansible_template_ui.engine.errors import ResultExtractionError
from ansible_template_ui.engine.playbook import PLAYBOOK_TITLE


class ResultType(Enum):
    """Kind of value the probe task produced."""
    STRING = "string"
    STRUCTURE = "structure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RenderResult:
    """Outcome of a single render."""

    successful: bool
    type: ResultType
    result: str
    debug: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "successful": self.successful,
            "type": self.type.value,
            "result": self.result,
            "debug": self.debug,
        }

    @classmethod
    def failure(cls, message: str, debug: str = "") -> "RenderResult":
        """Result for a render that produced no interpretable value."""
        return cls(successful=False, type=ResultType.UNKNOWN, result=message, debug=debug)


def _named(obj: Any, key: str) -> bool:
    """Check that ``obj[key]`` is a mapping whose name is the probe title."""
    inner = obj.get(key) if isinstance(obj, dict) else None
    return isinstance(inner, dict) and inner.get("name") == PLAYBOOK_TITLE


def find_probe_results(data: Any, host: str) -> List[Dict[str, Any]]:
    """
    Collect every probe result for ``host``.

    Scans plays named like the probe title and, inside them, tasks with the
    same name; any entry for ``host`` counts, with or without a ``msg``.

    Raises:
        ResultExtractionError: if ``data`` is not shaped like callback output
    """
    if not isinstance(data, dict) or not isinstance(data.get("plays"), list):
        raise ResultExtractionError("output has no 'plays' list")

    matches: List[Dict[str, Any]] = []
    for play in data["plays"]:
        if not _named(play, "play") or not isinstance(play.get("tasks"), list):
            continue
        for task in play["tasks"]:
            if not _named(task, "task"):
                continue
            hosts = task.get("hosts")
            if not isinstance(hosts, dict):
                continue
            entry = hosts.get(host)
            if isinstance(entry, dict):
                matches.append(entry)
    return matches


def extract_probe_result(data: Any, host: str) -> Dict[str, Any]:
    """
    Get the single probe result for ``host``.

    Raises:
        ResultExtractionError: on zero or several matching results
    """
    matches = find_probe_results(data, host)
    if len(matches) != 1:
        raise ResultExtractionError(
            f"expected exactly one '{PLAYBOOK_TITLE}' result for host "
            f"'{host}', found {len(matches)}"
        )
    return matches[0]


def classify(entry: Dict[str, Any], indent: int = 2, debug: str = "") -> RenderResult:
    """
    Turn a probe result entry into a RenderResult.

    Strings are returned verbatim; anything else is re-serialized as JSON.
    A missing ``failed`` flag counts as success.
    """
    msg = entry.get("msg")
    successful = not bool(entry.get("failed", False))
    if isinstance(msg, str):
        return RenderResult(successful, ResultType.STRING, msg, debug)
    return RenderResult(
        successful,
        ResultType.STRUCTURE,
        json.dumps(msg, indent=indent, ensure_ascii=False),
        debug,
    )
