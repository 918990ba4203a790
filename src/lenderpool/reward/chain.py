"""
Authority Chains

Bounded traversal of the predecessor chain, newest to oldest. Every walk
is capped at ``max_hops`` so the cost of a historical lookup never grows
silently with the age of the pool.
"""

from __future__ import annotations

from typing import Iterator

from lenderpool.constants import DEFAULT_CHAIN_MAX_HOPS
from lenderpool.exceptions import ChainDepthError, ValidationError
from lenderpool.reward.authority import RewardAuthority


def iter_chain(
    head: RewardAuthority,
    max_hops: int = DEFAULT_CHAIN_MAX_HOPS,
) -> Iterator[RewardAuthority]:
    """Yield ``head`` and then each predecessor in turn.

    Args:
        head: Newest authority to start from.
        max_hops: Maximum number of predecessor links to follow.

    Raises:
        ChainDepthError: If the chain is longer than ``max_hops`` links.
    """
    if max_hops < 0:
        raise ValidationError(f"max_hops must be >= 0, got {max_hops}")
    node = head
    hops = 0
    while node is not None:
        yield node
        if node.predecessor is None:
            return
        hops += 1
        if hops > max_hops:
            raise ChainDepthError(
                f"Authority chain from {head.authority_id} exceeds maximum "
                f"of {max_hops} hops"
            )
        node = node.predecessor


def chain_ids(head: RewardAuthority, max_hops: int = DEFAULT_CHAIN_MAX_HOPS) -> list[str]:
    """Authority ids from ``head`` back to genesis."""
    return [authority.authority_id for authority in iter_chain(head, max_hops)]


def find_in_chain(
    head: RewardAuthority,
    authority_id: str,
    max_hops: int = DEFAULT_CHAIN_MAX_HOPS,
) -> RewardAuthority:
    """Locate ``authority_id`` by walking back from ``head``.

    Raises:
        ValidationError: If the authority is not part of the chain.
        ChainDepthError: If the walk exceeds ``max_hops``.
    """
    for authority in iter_chain(head, max_hops):
        if authority.authority_id == authority_id:
            return authority
    raise ValidationError(
        f"Authority {authority_id} is not in the chain of {head.authority_id}"
    )


def in_chain(
    head: RewardAuthority,
    authority: RewardAuthority,
    max_hops: int = DEFAULT_CHAIN_MAX_HOPS,
) -> bool:
    """Whether ``authority`` (by identity) is reachable from ``head``."""
    return any(node is authority for node in iter_chain(head, max_hops))
