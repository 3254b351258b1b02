# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Execution of external tools with captured output.
"""
import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one finished command."""
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class CommandError(Exception):
    """
    Raised when a command cannot be started or exits non-zero.
    """
    def __init__(self, result: CommandResult):
        self.result = result
        message = f"{' '.join(result.command)} exited with status {result.returncode}"
        if result.stderr:
            message = f"{message}: {result.stderr.strip()}"
        super().__init__(message)


class CommandRunner:
    """
    Runs external tools to completion.
    """
    def run(self, command: List[str], cwd: Optional[str] = None) -> CommandResult:
        """
        Runs a command and waits for it.

        Args:
            command (List[str]): Command and arguments to execute.
            cwd (Optional[str]): Directory to run the command in.

        Returns:
            CommandResult: Exit status and captured output.
        """
        logger.debug(f"Running command: {' '.join(command)}")
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False
            )
        except OSError as e:
            # Executable missing or not runnable
            return CommandResult(command=list(command), returncode=127, stderr=str(e))

        return CommandResult(
            command=list(command),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )

    def check(self, command: List[str], cwd: Optional[str] = None) -> CommandResult:
        """
        Like run(), but raises CommandError unless the command succeeded.
        """
        result = self.run(command, cwd=cwd)
        if not result.ok:
            raise CommandError(result)
        return result
