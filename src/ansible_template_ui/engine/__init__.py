"""
Ansible Template UI Engine

Render orchestration: playbook generation, result extraction, lookups and
request staleness guarding.
"""

from ansible_template_ui.engine.profiles import Profile, ProfileResolver
from ansible_template_ui.engine.results import RenderResult, ResultType
from ansible_template_ui.engine.messages import RenderRequest, RequestKind, parse_request
from ansible_template_ui.engine.errors import (
    TemplateUiError,
    ProfileNotFoundError,
    VariablesMalformedError,
    OutputParseError,
    ResultExtractionError,
    RoleDiscoveryError,
    MessageError,
)

__all__ = [
    'Profile',
    'ProfileResolver',
    'RenderResult',
    'ResultType',
    'RenderRequest',
    'RequestKind',
    'parse_request',
    'TemplateUiError',
    'ProfileNotFoundError',
    'VariablesMalformedError',
    'OutputParseError',
    'ResultExtractionError',
    'RoleDiscoveryError',
    'MessageError',
]
