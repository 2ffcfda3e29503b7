from __future__ import annotations

from typing import Sequence


class SetupError(Exception):
    """Base class for everything the setup tool raises on purpose."""


class ValidationError(SetupError):
    """Operator input rejected; the prompt that raised it asks again."""


class PrerequisiteError(SetupError):
    """The host cannot be provisioned at all. Aborts the run."""


class InstallFailure(SetupError):
    """A single component failed. Siblings keep running."""


class ConfigurationRollback(InstallFailure):
    """A written configuration failed validation and was removed again."""


class CommandError(InstallFailure):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}")
