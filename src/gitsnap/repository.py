"""Obtain the tree to snapshot: a local directory or a shallow GitHub clone."""

from __future__ import annotations

import re
from pathlib import Path
from shutil import which
from subprocess import run  # noqa: S404

from gitsnap.exceptions import EmptyRepositoryError, GitCommandError, GitNotFoundError, InvalidRepositoryUrlError
from gitsnap.logging import logger

GITHUB_SHORT_URL = re.compile(r"^[\w-]+/[\w-]+$")
GITHUB_PREFIXES = ("git@github.com:", "https://github.com/")


def is_local_repository(value: str) -> bool:
    """Check whether `value` names an existing local directory."""
    return Path(value).expanduser().is_dir()


def normalize_github_url(url: str) -> str:
    """Normalize a GitHub repository reference into a clonable URL.

    Args:
        url (str): `https://github.com/user/repo`, `git@github.com:user/repo`
            or the `user/repo` shorthand

    Raises:
        InvalidRepositoryUrlError: if the reference matches none of these forms

    Returns:
        str: the URL without trailing slash, shorthand expanded to https
    """
    url = url.rstrip("/")
    if url.startswith(GITHUB_PREFIXES):
        return url
    if GITHUB_SHORT_URL.match(url):
        return f"https://github.com/{url}"
    raise InvalidRepositoryUrlError(url=url)


def repo_name_from_url(url: str) -> str:
    """Derive the repository name from its URL or path.

    Args:
        url (str): a repository URL or local path

    Returns:
        str: the last path segment without a `.git` suffix, or "repo"
    """
    last = url.rstrip("/").split("/")[-1].split(":")[-1]
    name = last.removesuffix(".git")
    return name or "repo"


def clone_repository(url: str, destination: Path) -> None:
    """Shallow-clone `url` into `destination`.

    Args:
        url (str): a normalized repository URL
        destination (Path): an empty directory to clone into

    Raises:
        GitNotFoundError: if `git` is not on PATH
        GitCommandError: if `git clone` exits with a non-zero status
        EmptyRepositoryError: if the clone produced no entries
    """
    if which("git") is None:
        raise GitNotFoundError
    cmd = ["git", "clone", "--depth", "1", url, str(destination)]
    logger.debug("Executing command: %s", " ".join(cmd))
    out = run(cmd, capture_output=True, text=True, check=False)  # noqa: S603
    if out.returncode != 0:
        logger.error(
            "Git clone failed; check that the repository exists and is public, "
            "that the URL is correct and that GitHub is reachable",
            url=url,
        )
        raise GitCommandError(
            command=" ".join(cmd),
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr,
            message=f"Failed to clone repository: {out.stderr.strip()}",
        )
    if not any(destination.iterdir()):
        raise EmptyRepositoryError(folder=destination)
    logger.debug("Repository downloaded successfully to: %s", destination)
