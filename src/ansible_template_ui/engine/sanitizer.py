# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Output sanitizing and parsing.

Some Ansible setups print noise (deprecation banners, plugin chatter) to
stdout even with the JSON callback. User-configured regular expressions strip
it before the output is decoded.
"""

import json
import re
from typing import Any, List, Sequence

from ansible_template_ui.engine.errors import OutputParseError


class OutputSanitizer:
    """Applies sanitize rules in order, then decodes JSON."""

    def __init__(self, rules: Sequence[str] = ()):
        self.patterns: List[re.Pattern] = [re.compile(rule, re.MULTILINE) for rule in rules]

    def sanitize(self, stdout: str) -> str:
        """Remove every match of every rule, in configured order."""
        for pattern in self.patterns:
            stdout = pattern.sub("", stdout)
        return stdout

    def parse(self, stdout: str) -> Any:
        """
        Sanitize and decode ``stdout``.

        Raises:
            OutputParseError: if the sanitized text is not valid JSON
        """
        cleaned = self.sanitize(stdout)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise OutputParseError(str(e)) from e
