"""
Revision resolver package.

Module structure:
- service.py: RevisionResolver (identity -> commit SHA)
- hosts.py: known hosts, identity validation and API endpoints
- helpers.py: rate limit handling and error mapping
- http_client.py: shared httpx client lifecycle
"""

from tokei_badges.services.resolver.hosts import HOSTS, HostConfig, host_for
from tokei_badges.services.resolver.http_client import close_http_client
from tokei_badges.services.resolver.service import RevisionResolver

__all__ = [
    "HOSTS",
    "HostConfig",
    "RevisionResolver",
    "close_http_client",
    "host_for",
]
