"""Observer hooks a host attaches to a lock coordinator."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


def _noop(*_args: object) -> None:
    return None


@dataclass(slots=True)
class LockCallbacks:
    """Synchronous notifications about ownership.

    Each hook defaults to a no-op. Exceptions raised by a hook are not
    caught by the coordinator.

    Attributes:
        on_became_owner: this peer now owns the resource
        on_lost_ownership: this peer no longer owns the resource
        on_owner_changed: another peer became owner (its id) or the
            resource became free (None)
        on_takeover_requested: another peer (its id) asked this owner to
            release the resource; release follows immediately
    """

    on_became_owner: Callable[[], None] = _noop
    on_lost_ownership: Callable[[], None] = _noop
    on_owner_changed: Callable[[str | None], None] = _noop
    on_takeover_requested: Callable[[str | None], None] = _noop
