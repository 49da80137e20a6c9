# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Ansible Template UI Render Runner

Turns a render request into an ansible-playbook run and the run's output
into a single RenderResult.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ansible_template_ui.engine.errors import (
    OutputParseError,
    ProfileNotFoundError,
    ResultExtractionError,
    VariablesMalformedError,
)
from ansible_template_ui.engine.messages import RenderRequest
from ansible_template_ui.engine.playbook import PlaybookBuilder, parse_variables
from ansible_template_ui.engine.profiles import Profile, ProfileResolver
from ansible_template_ui.engine.results import RenderResult, classify, extract_probe_result
from ansible_template_ui.engine.sanitizer import OutputSanitizer
from ansible_template_ui.platform.fs import scratch_files
from ansible_template_ui.platform.proc import ExecutionResult, ProcessExecutor
from ansible_template_ui.settings import Settings


logger = logging.getLogger(__name__)


class TemplateRunner:
    """
    Render pipeline.

    Coordinates:
    - Profile resolution and variables validation
    - Playbook generation
    - Process execution with scratch files
    - Output sanitizing, parsing and result extraction
    """

    def __init__(
        self,
        resolver: ProfileResolver,
        executor: Optional[ProcessExecutor] = None,
        builder: Optional[PlaybookBuilder] = None,
        sanitizer: Optional[OutputSanitizer] = None,
        tab_size: int = 2,
    ):
        self.resolver = resolver
        self.executor = executor or ProcessExecutor()
        self.builder = builder or PlaybookBuilder()
        self.sanitizer = sanitizer or OutputSanitizer()
        self.tab_size = tab_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "TemplateRunner":
        """Build a runner wired to ``settings``."""
        return cls(
            resolver=settings.resolver(),
            executor=ProcessExecutor(timeout=settings.timeout, cwd=settings.workspace),
            builder=PlaybookBuilder(settings.collection_references),
            sanitizer=OutputSanitizer(settings.output_regex_sanitize_rules),
            tab_size=settings.tab_size,
        )

    async def render(
        self,
        request: RenderRequest,
        playbook: Optional[List[Dict[str, Any]]] = None,
    ) -> RenderResult:
        """
        Render a template.

        Args:
            request: What to render and where
            playbook: Replaces the generated render playbook (used by probes
                that need extra tasks); must keep the probe naming

        Returns:
            RenderResult; failures are reported in it, never raised
        """
        try:
            profile = self.resolver.resolve(request.profile)
        except ProfileNotFoundError as e:
            return RenderResult.failure(e.message)

        try:
            variables = parse_variables(request.variables)
        except VariablesMalformedError as e:
            logger.info("Rejected variables: %s", e.details)
            return RenderResult.failure(e.message)

        if playbook is None:
            playbook = self.builder.build_render(
                host=request.host,
                template=request.template,
                role=request.role,
                gather_facts=request.gather_facts,
            )

        with scratch_files(self.builder.dump(playbook), request.variables) as paths:
            playbook_path, variables_path = paths
            args = self.builder.command_args(
                profile,
                playbook_path,
                variables_path if variables is not None else None,
            )
            execution = await self.executor.run_playbook(
                profile.cmd_playbook, args, profile.env
            )

        debug = yaml.safe_dump(execution.to_dict(), sort_keys=False, allow_unicode=True)

        try:
            data = self.sanitizer.parse(execution.stdout)
        except OutputParseError as e:
            return RenderResult.failure(e.message, debug)

        try:
            entry = extract_probe_result(data, request.host)
        except ResultExtractionError as e:
            logger.info("Render for %s: %s", request.host, e.reason)
            return RenderResult.failure(f"{e.message} ({e.reason})", debug)

        return classify(entry, indent=self.tab_size, debug=debug)

    async def run_tool(
        self,
        profile: Profile,
        command: str,
        args: Sequence[str],
    ) -> ExecutionResult:
        """Run an auxiliary Ansible tool (ansible-doc, ansible-galaxy) for a profile."""
        return await self.executor.run(command, args, profile.env)
