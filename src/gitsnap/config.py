from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

BYTES_PER_MB = 1024 * 1024
BINARY_SNIFF_BYTES = 8 * 1024
CHUNK_BYTES = 64 * 1024
SPOOL_MAX_BYTES = 1024 * 1024
DEFAULT_THRESHOLD_MB = 0.1

MANDATORY_EXCLUDED_DIRS: frozenset[str] = frozenset({".git", "node_modules"})
MANDATORY_EXCLUDED_FILES: frozenset[str] = frozenset({".gitignore"})

SIZE_UNITS = ("bytes", "KB", "MB", "GB", "TB")


class Reason(StrEnum):
    """Why the classifier rejected an entry (`NONE` when it was accepted)."""

    NONE = auto()
    EXCLUDED_NAME = auto()
    TOO_LARGE = auto()
    BINARY = auto()


UNREADABLE = "unreadable"


class Entry(BaseModel):
    """One filesystem node produced by the tree walk.

    Attributes:
        path: Absolute path of the node.
        rel: Path relative to the run root, with POSIX separators.
        is_dir: Whether the node is a directory.
        size: Size in bytes for files; None for directories or when the
            metadata could not be read.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute path")
    rel: str = Field(..., description="Path relative to the run root")
    is_dir: bool = Field(default=False, description="Directory flag")
    size: int | None = Field(default=None, ge=0, description="File size in bytes")

    @property
    def name(self) -> str:
        """Final component of the path."""
        return self.path.name


class Decision(BaseModel):
    """Outcome of classifying one entry."""

    model_config = ConfigDict(frozen=True)

    include: bool
    reason: Reason = Reason.NONE

    @model_validator(mode="after")
    def _reason_matches_include(self) -> Self:
        if self.include and self.reason is not Reason.NONE:
            msg = f"an included entry cannot carry reason {self.reason!r}"
            raise ValueError(msg)
        if not self.include and self.reason is Reason.NONE:
            msg = "an excluded entry must carry a reason"
            raise ValueError(msg)
        return self

    @classmethod
    def accept(cls) -> Decision:
        return cls(include=True)

    @classmethod
    def reject(cls, reason: Reason) -> Decision:
        return cls(include=False, reason=reason)


class RunConfig(BaseModel):
    """Immutable configuration shared by every worker of one run.

    `excluded_dir_names` and `excluded_file_names` always contain the
    mandatory names, whatever the caller passes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root_dir: Path = Field(..., description="Root of the tree to snapshot.")
    threshold_bytes: float = Field(
        default=DEFAULT_THRESHOLD_MB * BYTES_PER_MB,
        ge=0,
        description="Files strictly larger than this are skipped.",
    )
    include_all: bool = Field(default=False, description="Disable size and binary filtering.")
    excluded_dir_names: frozenset[str] = Field(
        default=MANDATORY_EXCLUDED_DIRS,
        description="Directory names never descended into.",
    )
    excluded_file_names: frozenset[str] = Field(
        default=MANDATORY_EXCLUDED_FILES,
        description="File names never included.",
    )
    excluded_paths: frozenset[Path] = Field(
        default_factory=frozenset,
        description="Absolute paths never included (e.g. the artifact itself).",
    )
    debug: bool = Field(default=False, description="Verbose telemetry; never alters decisions.")
    workers: int = Field(default=0, ge=0, description="Worker threads; 0 = CPU count, 1 = sequential.")

    @field_validator("excluded_dir_names", mode="after")
    @classmethod
    def _keep_mandatory_dirs(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(value) | MANDATORY_EXCLUDED_DIRS

    @field_validator("excluded_file_names", mode="after")
    @classmethod
    def _keep_mandatory_files(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(value) | MANDATORY_EXCLUDED_FILES

    @classmethod
    def from_megabytes(cls, root_dir: Path, threshold_mb: float = DEFAULT_THRESHOLD_MB, **kwargs: object) -> RunConfig:
        """Build a configuration from a threshold expressed in megabytes.

        Args:
            root_dir (Path): root of the tree to snapshot
            threshold_mb (float): size threshold in MB, converted as `mb * 1024 * 1024`
            **kwargs: any other `RunConfig` field

        Returns:
            RunConfig: the frozen run configuration
        """
        return cls(root_dir=root_dir, threshold_bytes=threshold_mb * BYTES_PER_MB, **kwargs)
