# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Error Classes.

All custom exceptions for clear error handling and exit codes.
Errors raised while serving a request never escape the router: they are
converted into ``successful=false`` response payloads.
"""

from __future__ import annotations

import enum


class ExitCode(enum.IntEnum):
    """Exit codes used by the command line front end."""

    SUCCESS = 0
    GENERIC_ERROR = 1
    RENDER_FAILED = 2
    CONFIG_ERROR = 3
    KEYBOARD_INTERRUPT = 130


class TemplateUiError(Exception):
    """Base exception for all Ansible Template UI errors."""

    exit_code: int = ExitCode.GENERIC_ERROR

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


class ProfileNotFoundError(TemplateUiError):
    """The requested execution profile is not configured."""

    def __init__(self, profile: str) -> None:
        self.profile = profile
        super().__init__("Profile cannot be found.", f"profile={profile!r}")


class VariablesMalformedError(TemplateUiError):
    """The variables string is not blank and not a JSON/YAML mapping."""

    def __init__(self, details: str | None = None) -> None:
        super().__init__(
            "Variables are malformed, must be JSON- or yaml-decodable object.",
            details,
        )


class OutputParseError(TemplateUiError):
    """Sanitized engine output is not valid JSON."""

    def __init__(self, details: str | None = None) -> None:
        super().__init__("Unable to parse ansible output...", details)


class ResultExtractionError(TemplateUiError):
    """Parsed output has no unique probe result for the requested host."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("Unable to interpret ansible result...", reason)


class RoleDiscoveryError(TemplateUiError):
    """Role enumeration failed in either discovery strategy."""

    def __init__(self, strategy: str, message: str) -> None:
        self.strategy = strategy
        super().__init__(f"Role discovery ({strategy}) failed: {message}")


class MessageError(TemplateUiError):
    """A UI payload does not match any known request message."""

    def __init__(self, message: str, command: str | None = None) -> None:
        self.command = command
        details = f"command={command!r}" if command else None
        super().__init__(f"Invalid request message: {message}", details)


class SettingsError(TemplateUiError):
    """Settings file cannot be read or contains invalid values."""

    exit_code: int = ExitCode.CONFIG_ERROR

    def __init__(self, message: str, file_path: str | None = None) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"Settings error{location}: {message}")
