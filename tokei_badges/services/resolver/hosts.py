"""Known source hosting providers."""

import re
from dataclasses import dataclass

from tokei_badges.core.exceptions import ResolutionError
from tokei_badges.services.types import RepositoryIdentity


@dataclass(frozen=True)
class HostConfig:
    """How to reach one hosting provider."""

    name: str
    domain: str
    # "github" / "gitlab" use the provider API; None falls back to git ls-remote
    api: str | None = None

    def clone_url(self, namespace: str, name: str) -> str:
        return f"https://{self.domain}/{namespace}/{name}"


HOSTS: dict[str, HostConfig] = {
    "github": HostConfig("github", "github.com", api="github"),
    "gitlab": HostConfig("gitlab", "gitlab.com", api="gitlab"),
    "bitbucket": HostConfig("bitbucket", "bitbucket.org"),
    "codeberg": HostConfig("codeberg", "codeberg.org"),
}

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITLAB_API_URL = "https://gitlab.com/api/v4"

# Single path segment as accepted by all supported hosts
SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def lookup_host(host: str) -> HostConfig | None:
    """Find a host by short name ("github") or domain ("github.com")."""
    key = host.strip().lower()
    if key in HOSTS:
        return HOSTS[key]
    for config in HOSTS.values():
        if key == config.domain:
            return config
    return None


def host_for(identity: RepositoryIdentity) -> HostConfig:
    """
    Validate an identity and return its host.

    Raises:
        ResolutionError: unknown host or malformed namespace/name
    """
    config = lookup_host(identity.host)
    if config is None:
        raise ResolutionError(f"Unknown host: {identity.host!r}")
    for part in (identity.namespace, identity.name):
        if not part or not SEGMENT_PATTERN.match(part) or part in (".", ".."):
            raise ResolutionError(f"Malformed repository identity: {identity}")
    return config
