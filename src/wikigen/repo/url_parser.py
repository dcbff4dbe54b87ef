"""Build browsable file URLs from repository remotes."""

from __future__ import annotations

import re

# SSH URL pattern: git@host:owner/repo.git
SSH_PATTERN = re.compile(r"^(?:ssh://)?git@([^:/]+)[:/](.+?)(?:\.git)?/?$")

# HTTPS URL pattern for git repos
HTTPS_PATTERN = re.compile(r"^(https?://.+?)(?:\.git)?/?$")


def normalize_remote_url(git_url: str) -> str:
    """Convert a remote URL to its https form without ``.git`` or trailing slash.

    Args:
        git_url: HTTPS or SSH remote, e.g. ``git@github.com:owner/repo.git``.

    Returns:
        ``https://host/owner/repo``, or an empty string for an empty input.
    """
    url = git_url.strip()
    if not url:
        return ""

    ssh_match = SSH_PATTERN.match(url)
    if ssh_match:
        host, path = ssh_match.groups()
        return f"https://{host}/{path}"

    https_match = HTTPS_PATTERN.match(url)
    if https_match:
        return https_match.group(1)

    return url.rstrip("/")


def build_file_base_url(git_url: str, branch: str) -> str:
    """Base URL that a repository-relative file path can be appended to.

    Examples:
        >>> build_file_base_url("git@github.com:acme/app.git", "main")
        'https://github.com/acme/app/blob/main'
        >>> build_file_base_url("https://gitlab.com/acme/app", "dev")
        'https://gitlab.com/acme/app/-/blob/dev'

    Returns:
        The base URL, or an empty string when ``git_url`` is empty.
    """
    url = normalize_remote_url(git_url)
    if not url:
        return ""

    if "github.com" in url or "gitee.com" in url:
        return f"{url}/blob/{branch}"
    if "gitlab" in url:
        return f"{url}/-/blob/{branch}"
    if "bitbucket.org" in url:
        return f"{url}/src/{branch}"
    if "dev.azure.com" in url or "visualstudio.com" in url:
        return f"{url}?version=GB{branch}&path="
    # Anything else is assumed to be GitHub-like
    return f"{url}/blob/{branch}"
