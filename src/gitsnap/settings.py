from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from gitsnap.config import DEFAULT_THRESHOLD_MB, RunConfig

ENV_FILE = find_dotenv(usecwd=True)

ENV_THRESHOLD = "GITSNAP_THRESHOLD"
ENV_WORKERS = "GITSNAP_WORKERS"
ENV_LOG_FILE = "GITSNAP_LOG_FILE"


def load_env_file() -> None:
    """Load the nearest `.env` file into the environment, without overriding it."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)


def env_default(name: str, fallback: str) -> str:
    """Read a default value from the environment."""
    return os.environ.get(name, fallback)


class Settings(BaseModel):
    """Configuration settings for the gitsnap command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repository: str = Field(..., description="GitHub URL, user/repo, or local directory.")
    output: Path | None = Field(default=None, description="Output file (defaults to <repo_name>.txt).")
    threshold: float = Field(
        default=DEFAULT_THRESHOLD_MB,
        ge=0,
        description="Size threshold in MB; larger files are skipped.",
    )
    include_all: bool = Field(default=False, description="Include all files regardless of size or type.")
    debug: bool = Field(default=False, description="Verbose telemetry.")
    workers: int = Field(default=0, ge=0, description="Worker threads (0 = CPU count).")
    log_file: str = Field(default="", description="Log file path.")

    def output_path(self, repo_name: str) -> Path:
        """Resolve where the artifact is written.

        Args:
            repo_name (str): the repository name used for the default file name

        Returns:
            Path: the absolute output path
        """
        out = self.output if self.output is not None else Path(f"{repo_name}.txt")
        return out.resolve()

    def run_config(self, root_dir: Path, *, excluded_paths: frozenset[Path] = frozenset()) -> RunConfig:
        """Build the immutable run configuration for `root_dir`.

        Args:
            root_dir (Path): the materialized tree to snapshot
            excluded_paths (frozenset[Path]): absolute paths never included

        Returns:
            RunConfig: the run configuration
        """
        return RunConfig.from_megabytes(
            root_dir,
            self.threshold,
            include_all=self.include_all,
            debug=self.debug,
            workers=self.workers,
            excluded_paths=excluded_paths,
        )
