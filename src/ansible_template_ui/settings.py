# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Settings

User settings loaded from a YAML file. Keys use the same camelCase names as
the editor configuration they mirror.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ansible_template_ui.engine.errors import SettingsError
from ansible_template_ui.engine.profiles import DEFAULT_PROFILES, Profile, ProfileResolver


logger = logging.getLogger(__name__)


class RoleDetectionMode(Enum):
    """How the list of available roles is discovered."""
    ANSIBLE_GALAXY = "Ansible Galaxy"
    DIRECTORY_LOOKUP = "Directory lookup"


@dataclass
class Settings:
    """
    Runtime settings.

    Attributes:
        profiles: Validated execution profiles by name
        timeout: Seconds before an Ansible process is killed (0 = no timeout)
        tab_size: Indent width for structured results
        role_detection_mode: Strategy used to list roles
        output_regex_sanitize_rules: Patterns removed from stdout before parsing
        collection_imports: Collections whose filters/roles are listed
        collection_references: Collections usable by short name in templates
        workspace: Working directory for Ansible processes
    """

    profiles: Dict[str, Profile] = field(default_factory=lambda: dict(DEFAULT_PROFILES))
    timeout: float = 0
    tab_size: int = 2
    role_detection_mode: RoleDetectionMode = RoleDetectionMode.DIRECTORY_LOOKUP
    output_regex_sanitize_rules: List[str] = field(default_factory=list)
    collection_imports: List[str] = field(default_factory=list)
    collection_references: List[str] = field(default_factory=list)
    workspace: Optional[str] = None

    def __post_init__(self) -> None:
        if self.tab_size < 1:
            self.tab_size = 2
        for pattern in self.output_regex_sanitize_rules:
            try:
                re.compile(pattern)
            except re.error as e:
                raise SettingsError(f"invalid sanitize rule {pattern!r}: {e}") from e

    def resolver(self) -> ProfileResolver:
        """Profile resolver over the configured profiles."""
        return ProfileResolver(self.profiles)


def parse_profiles(raw: Any) -> Dict[str, Profile]:
    """
    Validate raw profile entries.

    Malformed entries are dropped. When entries were dropped and nothing
    valid remains, the default profiles are returned instead.
    """
    profiles: Dict[str, Profile] = {}
    is_successful = True
    if isinstance(raw, dict):
        for key, entry in raw.items():
            profile = Profile.from_dict(entry)
            if profile is None:
                is_successful = False
                continue
            profiles[str(key)] = profile
    elif raw is not None:
        is_successful = False

    if raw is None:
        return dict(DEFAULT_PROFILES)
    if not is_successful:
        logger.error(
            "Malformed configuration about Ansible Profiles, please fix your settings."
        )
        if not profiles:
            return dict(DEFAULT_PROFILES)
    return profiles


def _string_list(data: Dict[str, Any], key: str, file_path: str) -> List[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SettingsError(f"'{key}' must be a list of strings", file_path)
    return value


def load_settings(path: Union[str, Path, None] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Settings file; None returns the defaults

    Raises:
        SettingsError: if the file is unreadable or a value has the wrong type
    """
    if path is None:
        return Settings()

    file_path = str(path)
    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise SettingsError(f"cannot read file: {e}", file_path) from e
    except yaml.YAMLError as e:
        raise SettingsError(f"invalid YAML: {e}", file_path) from e

    if not isinstance(data, dict):
        raise SettingsError("top level must be a mapping", file_path)

    try:
        mode = RoleDetectionMode(data.get("roleDetectionMode", "Directory lookup"))
    except ValueError as e:
        raise SettingsError(str(e), file_path) from e

    try:
        timeout = float(data.get("ansibleTimeout", 0) or 0)
        tab_size = int(data.get("tabSize", 2) or 0)
    except (TypeError, ValueError) as e:
        raise SettingsError(str(e), file_path) from e

    workspace = data.get("workspace")
    if workspace is not None:
        workspace = str(Path(file_path).parent / str(workspace))

    return Settings(
        profiles=parse_profiles(data.get("profiles")),
        timeout=timeout,
        tab_size=tab_size,
        role_detection_mode=mode,
        output_regex_sanitize_rules=_string_list(data, "outputRegexSanitizeRules", file_path),
        collection_imports=_string_list(data, "ansibleCollectionImports", file_path),
        collection_references=_string_list(data, "ansibleCollectionReferences", file_path),
        workspace=workspace,
    )
