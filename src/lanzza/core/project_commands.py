from collections.abc import Callable, Sequence
from typing import Any

import msgspec
from msgspec import Struct

from lanzza.consts import ACTION_TAG
from lanzza.models import ProjectCommands

PREFERRED_SCRIPTS = ("dev", "start", "preview")


class FileContent(Struct, frozen=True):
    path: str
    content: str


type CommandDetector = Callable[[Sequence[FileContent]], ProjectCommands]


def detect_project_commands(files: Sequence[FileContent]) -> ProjectCommands:
    """
    Infers setup/start commands from a set of files (e.g. a package.json with a dev script).
    """

    def find(name: str) -> FileContent | None:
        return next((f for f in files if f.path.endswith(name)), None)

    if package_json := find("package.json"):
        try:
            manifest = msgspec.json.decode(package_json.content, type=dict[str, Any])
        except (msgspec.DecodeError, msgspec.ValidationError):
            return ProjectCommands(type="")

        scripts = manifest.get("scripts")
        if not isinstance(scripts, dict):
            scripts = {}
        available = next((name for name in PREFERRED_SCRIPTS if scripts.get(name)), None)
        if available:
            return ProjectCommands(
                type="Node.js",
                setup_command="npm install",
                start_command=f"npm run {available}",
                followup_message=f'Found "{available}" script in package.json. '
                + f'Running "npm run {available}" after installation.',
            )
        return ProjectCommands(
            type="Node.js",
            setup_command="npm install",
            followup_message="Would you like me to inspect package.json to determine the available scripts "
            + "for running this project?",
        )

    if find("index.html"):
        return ProjectCommands(type="Static", start_command="npx --yes serve")

    return ProjectCommands(type="")


def create_command_actions_string(commands: ProjectCommands) -> str:
    """Renders detected commands as shell/start action blocks; empty when there is nothing to run."""
    if not commands.setup_command and not commands.start_command:
        return ""

    parts: list[str] = []
    if commands.setup_command:
        parts.append(f'\n<{ACTION_TAG} type="shell">{commands.setup_command}</{ACTION_TAG}>')
    if commands.start_command:
        parts.append(f'\n<{ACTION_TAG} type="start">{commands.start_command}</{ACTION_TAG}>\n')
    return "".join(parts)
