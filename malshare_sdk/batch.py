"""Failure-policy handling for multi-item operations."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

import structlog

from malshare_sdk.exceptions import MalShareError
from malshare_sdk.models import BatchPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _unique(keys: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(keys))


def _check_policy(policy: BatchPolicy) -> None:
    if not isinstance(policy, BatchPolicy):
        raise TypeError(f"policy must be a BatchPolicy, got {policy!r}")


def run_batch(
    operation: str,
    keys: Iterable[str],
    call: Callable[[str], T],
    policy: BatchPolicy,
) -> dict[str, T]:
    """Call *call* once per distinct key, one after another.

    Under :attr:`BatchPolicy.FAIL_FAST` the first :class:`MalShareError`
    propagates and the results gathered so far are discarded. Under
    :attr:`BatchPolicy.BEST_EFFORT` failing keys are logged and left out.
    """
    _check_policy(policy)
    results: dict[str, T] = {}
    for key in _unique(keys):
        try:
            results[key] = call(key)
        except MalShareError as exc:
            if policy is BatchPolicy.FAIL_FAST:
                raise
            logger.warning("malshare_batch_item_failed", operation=operation, key=key, error=str(exc))
    return results


async def run_batch_async(
    operation: str,
    keys: Iterable[str],
    call: Callable[[str], Awaitable[T]],
    policy: BatchPolicy,
) -> dict[str, T]:
    """Concurrent counterpart of :func:`run_batch`.

    All items are started together. Under fail-fast the error of the first
    failing key, in input order, is raised.
    """
    _check_policy(policy)
    unique = _unique(keys)
    outcomes = await asyncio.gather(*(call(key) for key in unique), return_exceptions=True)

    results: dict[str, T] = {}
    for key, outcome in zip(unique, outcomes):
        if isinstance(outcome, MalShareError):
            if policy is BatchPolicy.FAIL_FAST:
                raise outcome
            logger.warning("malshare_batch_item_failed", operation=operation, key=key, error=str(outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[key] = outcome
    return results
