from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class GitsnapError(Exception):
    """Base exception for errors in the gitsnap package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class RootDirectoryError(GitsnapError):
    """Raised when the root of the tree cannot be listed."""

    folder: Path
    reason: str = ""
    message: str = "The root directory cannot be read."


@dataclass(frozen=True)
class OutputSinkError(GitsnapError):
    """Raised when the output artifact cannot be opened or written."""

    target: str
    reason: str = ""
    message: str = "The output artifact cannot be written."


@dataclass(frozen=True)
class RecordContentError(GitsnapError):
    """Raised when buffered file content cannot be read back while its record is written."""

    path: str
    reason: str = ""
    message: str = "Buffered file content cannot be read back."


@dataclass(frozen=True)
class InvalidRepositoryUrlError(GitsnapError):
    """Raised when a repository reference is neither a GitHub URL nor `user/repo`."""

    url: str
    message: str = "Invalid GitHub repository URL format."


@dataclass(frozen=True)
class GitNotFoundError(GitsnapError):
    """Raised when the `git` executable is not available."""

    message: str = "`git` not found in PATH."


@dataclass(frozen=True)
class GitCommandError(GitsnapError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str
    message: str = "Git command failed."


@dataclass(frozen=True)
class EmptyRepositoryError(GitsnapError):
    """Raised when a freshly cloned repository has no entries."""

    folder: Path
    message: str = "Repository appears to be empty."
