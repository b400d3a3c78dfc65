"""Scope model shared by OAuth tokens and API keys.

Credentials are granted `read` or `read_write`. Endpoints require `read`,
`write` or some other named scope:

    read   -> satisfied by read or read_write
    write  -> satisfied by read_write only
    other  -> exact match
"""

from collections.abc import Iterable

READ = "read"
WRITE = "write"
READ_WRITE = "read_write"

GRANTABLE_SCOPES = frozenset({READ, READ_WRITE})


def authorize(effective_scopes: Iterable[str], required_scope: str) -> bool:
    """Decide whether a principal's scopes satisfy the required scope."""
    scopes = set(effective_scopes)

    if required_scope == READ:
        return READ in scopes or READ_WRITE in scopes
    if required_scope == WRITE:
        return READ_WRITE in scopes
    return required_scope in scopes
