# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI: live preview of Ansible templates.

Renders a Jinja2 template through a real ansible-playbook run against a chosen
profile, host and optional role, and reports the value Ansible produced.

Features:
    - Render orchestration with request staleness guarding
    - Host, host variable, role and plugin lookups with cache-then-refresh
    - JSON-lines protocol for editor front ends (``ansible-template-ui serve``)

This package exposes the main CLI entry point and release metadata.
"""

from __future__ import annotations

from ansible_template_ui.release import __version__, __author__, __codename__

__all__ = [
    "__version__",
    "__author__",
    "__codename__",
]
