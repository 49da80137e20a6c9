# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Main CLI entrypoint for ansible-template-ui.

Usage:
    ansible-template-ui serve [-c settings.yml]
    ansible-template-ui render -p PROFILE -H HOST -t TEMPLATE [-e VARS]
    ansible-template-ui hosts -p PROFILE
    ansible-template-ui roles -p PROFILE
"""

import argparse
import asyncio
import json
import logging
import platform
import sys
from typing import Any, Dict, List, Optional, TextIO

from ansible_template_ui import __version__
from ansible_template_ui.engine.errors import ExitCode, TemplateUiError
from ansible_template_ui.engine.messages import (
    HostListRequest,
    RenderRequest,
    Request,
    RolesRequest,
)
from ansible_template_ui.engine.router import RequestRouter
from ansible_template_ui.settings import Settings, load_settings


logger = logging.getLogger(__name__)

# -v count to logging level; stdout is reserved for protocol messages
LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def get_version_string() -> str:
    """Generate a detailed version string."""
    return (
        f"ansible-template-ui {__version__}\n"
        f"  python: {platform.python_version()}\n"
        f"  platform: {platform.system()} {platform.release()}"
    )


def configure_logging(verbosity: int) -> None:
    """Send log records to stderr at a level chosen by ``verbosity``."""
    level = LOG_LEVELS[min(verbosity, len(LOG_LEVELS) - 1)]
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for ansible-template-ui."""
    parser = argparse.ArgumentParser(
        prog="ansible-template-ui",
        description="Preview Ansible templates against real inventory hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ansible-template-ui serve -c settings.yml
  ansible-template-ui render -p Default -H localhost -t "{{ foo }}" -e "foo: bar"
  ansible-template-ui hosts -p Default
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "-c", "--config",
        dest="config",
        default=None,
        help="Settings file (YAML)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser(
        "serve",
        help="Answer JSON request messages read line by line from stdin",
    )

    render_parser = subparsers.add_parser("render", help="Render a template once")
    render_parser.add_argument("-p", "--profile", default="Default", help="Profile name")
    render_parser.add_argument("-H", "--host", default="localhost", help="Target host")
    render_parser.add_argument("-r", "--role", default="", help="Role to include")
    render_parser.add_argument(
        "-g", "--gather-facts",
        action="store_true",
        help="Gather host facts before rendering",
    )
    template_group = render_parser.add_mutually_exclusive_group(required=True)
    template_group.add_argument("-t", "--template", help="Template text")
    template_group.add_argument("-T", "--template-file", help="File holding the template")
    vars_group = render_parser.add_mutually_exclusive_group()
    vars_group.add_argument("-e", "--extra-vars", default="", help="Variables as YAML or JSON")
    vars_group.add_argument("-E", "--vars-file", help="File holding the variables")

    for name, help_text in (("hosts", "List inventory hosts"), ("roles", "List roles")):
        lookup_parser = subparsers.add_parser(name, help=help_text)
        lookup_parser.add_argument("-p", "--profile", default="Default", help="Profile name")

    return parser


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


async def serve(settings: Settings, stdin: TextIO, stdout: TextIO) -> int:
    """
    Run the JSON-lines protocol until stdin is closed.

    Each request is handled in its own task, so a slow render never delays
    a host list lookup.
    """
    loop = asyncio.get_running_loop()

    def send(message: Dict[str, Any]) -> None:
        stdout.write(json.dumps(message) + "\n")
        stdout.flush()

    router = RequestRouter.from_settings(settings, send)
    pending: set = set()

    while True:
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            break
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except ValueError as e:
            logger.warning("Ignoring non-JSON input line: %s", e)
            continue
        task = router.dispatch(payload)
        if task is not None:
            pending.add(task)
            task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending)
    return ExitCode.SUCCESS


async def run_once(settings: Settings, request: Request) -> List[Dict[str, Any]]:
    """Handle a single request and return every response it produced."""
    responses: List[Dict[str, Any]] = []
    router = RequestRouter.from_settings(settings, responses.append)
    await router.handle(request)
    return responses


def _build_request(parsed: argparse.Namespace) -> Request:
    if parsed.command == "render":
        template = parsed.template
        if parsed.template_file:
            template = _read(parsed.template_file)
        variables = parsed.extra_vars
        if parsed.vars_file:
            variables = _read(parsed.vars_file)
        return RenderRequest(
            profile=parsed.profile,
            host=parsed.host,
            role=parsed.role,
            gather_facts=parsed.gather_facts,
            variables=variables,
            template=template,
        )
    if parsed.command == "hosts":
        return HostListRequest(profile=parsed.profile)
    return RolesRequest(profile=parsed.profile)


def _exit_code(responses: List[Dict[str, Any]]) -> int:
    if not responses:
        return ExitCode.GENERIC_ERROR
    last = responses[-1]
    if last.get("successful") is False or last.get("status") == "failed":
        return ExitCode.RENDER_FAILED
    return ExitCode.SUCCESS


def main(args: Optional[List[str]] = None) -> int:
    """Main entrypoint for ansible-template-ui CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return ExitCode.SUCCESS

    configure_logging(parsed.verbose)

    try:
        settings = load_settings(parsed.config)
        if parsed.command == "serve":
            return asyncio.run(serve(settings, sys.stdin, sys.stdout))

        request = _build_request(parsed)
        responses = asyncio.run(run_once(settings, request))
    except TemplateUiError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return e.exit_code
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.GENERIC_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return ExitCode.KEYBOARD_INTERRUPT

    for response in responses:
        if parsed.command == "render":
            print(response["result"])
        else:
            print(json.dumps(response, indent=settings.tab_size))
    return _exit_code(responses)


if __name__ == "__main__":
    sys.exit(main())
