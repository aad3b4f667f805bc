"""
Hash algorithm registry.

A closed table mapping each algorithm SQL Server's ``HASHBYTES`` understands
to its digest width in bytes and a security classification.  Raw text is
accepted only at the :func:`lookup` boundary; everything downstream works
with :class:`HashAlgorithm` members.

Legacy algorithms (MD2, MD4, MD5, SHA, SHA1) are flagged insecure but remain
usable so existing schemas keep migrating; the normalizer turns the flag into
a warning (or an error, depending on the configured policy).

Examples:
    >>> width_of(HashAlgorithm.SHA2_256)
    32
    >>> lookup("sha2_512")
    <HashAlgorithm.SHA2_512: 'SHA2_512'>
    >>> is_secure("md5")
    False
    >>> recommended_sql_type("SHA1")
    'BINARY(20)'

Tags:
    hashing, registry, algorithms, hashcol
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hashcol.core.errors import UnknownAlgorithmError


class HashAlgorithm(str, Enum):
    """Algorithms accepted by ``HASHBYTES``."""

    MD2 = "MD2"
    MD4 = "MD4"
    MD5 = "MD5"
    SHA = "SHA"
    SHA1 = "SHA1"
    SHA2_256 = "SHA2_256"
    SHA2_512 = "SHA2_512"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AlgorithmInfo:
    """Registry entry: digest width and security classification."""

    algorithm: HashAlgorithm
    width: int
    secure: bool

    @property
    def bits(self) -> int:
        return self.width * 8


_REGISTRY: dict[HashAlgorithm, AlgorithmInfo] = {
    HashAlgorithm.MD2: AlgorithmInfo(HashAlgorithm.MD2, 16, False),
    HashAlgorithm.MD4: AlgorithmInfo(HashAlgorithm.MD4, 16, False),
    HashAlgorithm.MD5: AlgorithmInfo(HashAlgorithm.MD5, 16, False),
    HashAlgorithm.SHA: AlgorithmInfo(HashAlgorithm.SHA, 20, False),
    HashAlgorithm.SHA1: AlgorithmInfo(HashAlgorithm.SHA1, 20, False),
    HashAlgorithm.SHA2_256: AlgorithmInfo(HashAlgorithm.SHA2_256, 32, True),
    HashAlgorithm.SHA2_512: AlgorithmInfo(HashAlgorithm.SHA2_512, 64, True),
}


def lookup(token: HashAlgorithm | str) -> HashAlgorithm:
    """Resolve an enum member or free text (case-insensitive) to a member.

    Raises:
        UnknownAlgorithmError: If the token names no registered algorithm.
    """
    if isinstance(token, HashAlgorithm):
        return token
    if not isinstance(token, str):
        raise UnknownAlgorithmError(token)
    try:
        return HashAlgorithm(token.strip().upper())
    except ValueError:
        raise UnknownAlgorithmError(token) from None


def algorithm_info(algorithm: HashAlgorithm | str) -> AlgorithmInfo:
    return _REGISTRY[lookup(algorithm)]


def width_of(algorithm: HashAlgorithm | str) -> int:
    """Digest width in bytes."""
    return algorithm_info(algorithm).width


def is_secure(algorithm: HashAlgorithm | str) -> bool:
    """Whether the algorithm is considered cryptographically secure."""
    return algorithm_info(algorithm).secure


def recommended_sql_type(algorithm: HashAlgorithm | str) -> str:
    """Fixed-width binary type sized to the digest, e.g. ``BINARY(32)``."""
    return f"BINARY({width_of(algorithm)})"


def all_algorithms() -> list[AlgorithmInfo]:
    """Every registry entry, in declaration order."""
    return [_REGISTRY[member] for member in HashAlgorithm]


__all__ = [
    "HashAlgorithm",
    "AlgorithmInfo",
    "lookup",
    "algorithm_info",
    "width_of",
    "is_secure",
    "recommended_sql_type",
    "all_algorithms",
]
