"""Identity: credential resolution and the agent directory."""

from .credentials import (
    IdentityResolver,
    MirrorIdentityResolver,
    StaticIdentityResolver,
    load_private_key,
    public_key_der_hex,
)
from .directory import AgentDirectory, AgentTopics, load_directory

__all__ = [
    "IdentityResolver",
    "MirrorIdentityResolver",
    "StaticIdentityResolver",
    "load_private_key",
    "public_key_der_hex",
    "AgentDirectory",
    "AgentTopics",
    "load_directory",
]
