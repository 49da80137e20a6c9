# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Plugin Lookup

Lists the filter plugins and roles shipped by the configured collections
with ``ansible-doc --list --json``, for editor autocompletion.
"""

import asyncio
import json
import logging
from typing import Dict, List, Sequence, Tuple

from ansible_template_ui.engine.cache import PluginListing
from ansible_template_ui.engine.runner import TemplateRunner
from ansible_template_ui.platform.proc import ExecutionResult


logger = logging.getLogger(__name__)

PLUGIN_TYPES = ("filter", "role")


class PluginLookup:
    """Queries ansible-doc for every imported collection in parallel."""

    def __init__(
        self,
        runner: TemplateRunner,
        collection_imports: Sequence[str] = (),
        collection_references: Sequence[str] = (),
    ):
        self.runner = runner
        self.collection_imports = list(collection_imports)
        self.collection_references = set(collection_references)

    async def lookup(self, profile_key: str) -> Tuple[bool, PluginListing]:
        """
        List filters and roles.

        Returns:
            (successful, listing); the listing holds whatever was decoded

        Raises:
            ProfileNotFoundError: if the profile is not configured
        """
        profile = self.runner.resolver.resolve(profile_key)
        queries = [
            (plugin_type, collection)
            for collection in self.collection_imports
            for plugin_type in PLUGIN_TYPES
        ]
        results = await asyncio.gather(*(
            self.runner.run_tool(
                profile,
                profile.cmd_doc,
                ["--list", "--json", "--type", plugin_type, collection],
            )
            for plugin_type, collection in queries
        ))

        filters: List[Dict[str, str]] = []
        roles: List[str] = []
        is_successful = True
        for (plugin_type, collection), result in zip(queries, results):
            if not result.successful:
                is_successful = False
                break
            try:
                self._collect(plugin_type, collection, result, filters, roles)
            except ValueError as e:
                logger.warning(
                    "Unreadable ansible-doc output for %s %s: %s", plugin_type, collection, e
                )
                is_successful = False
        return is_successful, PluginListing(filters=filters, roles=roles)

    def _collect(
        self,
        plugin_type: str,
        collection: str,
        result: ExecutionResult,
        filters: List[Dict[str, str]],
        roles: List[str],
    ) -> None:
        data = json.loads(result.stdout)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")

        add_short_name = collection in self.collection_references
        for name, description in data.items():
            names = [name]
            if add_short_name:
                names.append(name.replace(f"{collection}.", "", 1))
            if plugin_type == "filter" and isinstance(description, str):
                filters.extend({"name": n, "description": description} for n in names)
            elif plugin_type == "role":
                roles.extend(names)
