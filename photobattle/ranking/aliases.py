"""Alias resolution for merged photo identities.

When photo B is merged into photo A the battle records ``{B: A}`` in its
alias map. Later merges can extend the chain (``{B: A, A: C}``), so lookups
follow the map until an id has no further mapping.

Chains are never compacted; resolution costs O(chain length).
"""

from collections.abc import Iterable, Mapping

from photobattle.common.errors import AliasCycleError, InvalidAliasMapError


def resolve_alias(photo_id: str, aliases: Mapping[str, str], strict: bool = False) -> str:
    """Resolve a possibly merged photo id to its canonical surviving id.

    Args:
        photo_id: Raw photo id, e.g. as recorded in a history entry.
        aliases: Mapping from retired id to the id it was merged into.
        strict: Raise on a cycle instead of returning the last id visited.

    Returns:
        The canonical id. On a cycle in non-strict mode, the id at which the
        walk first revisited the chain.

    Raises:
        AliasCycleError: If ``strict`` is True and the chain cycles.

    Example:
        >>> resolve_alias("a", {"a": "b", "b": "c"})
        'c'
        >>> resolve_alias("x", {"a": "b"})
        'x'

    Negative case:
        >>> resolve_alias("a", {"a": "b", "b": "a"})
        'a'
    """
    current = photo_id
    seen: set[str] = set()
    chain = [current]
    while current in aliases and current not in seen:
        seen.add(current)
        current = aliases[current]
        chain.append(current)

    if current in seen and strict:
        raise AliasCycleError(chain)
    return current


def extend_aliases(aliases: Mapping[str, str], merged_id: str, target_id: str) -> dict[str, str]:
    """Return a copy of ``aliases`` with ``merged_id`` pointing at ``target_id``."""
    candidate = dict(aliases)
    candidate[merged_id] = target_id
    return candidate


def validate_aliases(aliases: Mapping[str, str], live_ids: Iterable[str]) -> None:
    """Check an alias map before it is written.

    Raises:
        InvalidAliasMapError: If a retired id is still a live photo id.
        AliasCycleError: If any chain in the map cycles.
    """
    live = set(live_ids)
    overlap = sorted(live.intersection(aliases))
    if overlap:
        raise InvalidAliasMapError(f"Alias keys are still live photos: {', '.join(overlap)}")

    for photo_id in aliases:
        resolve_alias(photo_id, aliases, strict=True)
