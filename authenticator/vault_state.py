"""
vault_state.py: The vault state machine.

`apply(snapshot, intent)` is a pure transition function over immutable
Snapshots. `VaultStore` owns the single current Snapshot, serializes
dispatches and notifies subscribers (e.g. the sqlite persistence) after
every swap.

Intents:
    InitializeVault(key, vault)  replace key + vault, settings unchanged
    SetVault(vault)              replace vault only
    AddVaultEntry(entry)         append one entry (duplicates allowed)
    ClearVault()                 empty the vault
    ToggleConcealTokens()        flip settings.conceal_tokens

Anything else is a no-op: the same Snapshot object is returned.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Deque, Iterable, List, Optional, Union

from authenticator.models import Snapshot, Vault, VaultEntry

logger = logging.getLogger(__name__)


# --- Intents ---------------------------------------------------------------
@dataclass(frozen=True)
class InitializeVault:
    key: str
    vault: Vault


@dataclass(frozen=True)
class SetVault:
    vault: Vault


@dataclass(frozen=True)
class AddVaultEntry:
    entry: VaultEntry


@dataclass(frozen=True)
class ClearVault:
    pass


@dataclass(frozen=True)
class ToggleConcealTokens:
    pass


Intent = Union[InitializeVault, SetVault, AddVaultEntry, ClearVault, ToggleConcealTokens]


def _as_vault(entries: Iterable[VaultEntry]) -> Vault:
    # callers may hand over a list; the snapshot only ever holds tuples
    return entries if isinstance(entries, tuple) else tuple(entries)


# --- Transition function ---------------------------------------------------
def apply(snapshot: Snapshot, intent: Intent) -> Snapshot:
    """Return the Snapshot that follows `snapshot` once `intent` is applied."""
    if isinstance(intent, InitializeVault):
        return replace(snapshot, key=intent.key, vault=_as_vault(intent.vault))

    if isinstance(intent, SetVault):
        return replace(snapshot, vault=_as_vault(intent.vault))

    if isinstance(intent, AddVaultEntry):
        return replace(snapshot, vault=snapshot.vault + (intent.entry,))

    if isinstance(intent, ClearVault):
        return replace(snapshot, vault=())

    if isinstance(intent, ToggleConcealTokens):
        settings = replace(snapshot.settings, conceal_tokens=not snapshot.settings.conceal_tokens)
        return replace(snapshot, settings=settings)

    logger.debug("Ignoring unrecognized intent %r", type(intent).__name__)
    return snapshot


# --- Owning shell ----------------------------------------------------------
Listener = Callable[[Snapshot, Snapshot], None]

class VaultStore:
    """
    Holds exactly one current Snapshot.

    - dispatch() applies intents one at a time under a lock, then swaps the
      reference; readers use `snapshot` without locking and always see a
      complete Snapshot.
    - Listeners run inside the lock, so they observe swaps in dispatch order.
      They must not block for long.
    - A listener may dispatch: the intent is queued and applied once every
      listener has seen the current swap. That nested call returns the
      snapshot as it stands, without its own intent applied yet.
    """

    def __init__(self, initial: Optional[Snapshot] = None):
        self._snapshot = initial if initial is not None else Snapshot()
        self._lock = threading.Lock()
        self._listeners_lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._pending: Deque[Intent] = deque()
        self._notifying: Optional[int] = None

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a (previous, current) callback; returns an unsubscribe function."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, intent: Intent) -> Snapshot:
        if self._notifying == threading.get_ident():
            self._pending.append(intent)
            return self._snapshot
        with self._lock:
            try:
                current = self._swap(intent)
                while self._pending:
                    self._swap(self._pending.popleft())
            finally:
                self._pending.clear()
            return current

    def _swap(self, intent: Intent) -> Snapshot:
        previous = self._snapshot
        current = apply(previous, intent)
        if current is previous:
            return current
        self._snapshot = current
        logger.debug(
            "%s: %d -> %d entries", type(intent).__name__, len(previous.vault), len(current.vault)
        )
        with self._listeners_lock:
            listeners = list(self._listeners)
        self._notifying = threading.get_ident()
        try:
            for listener in listeners:
                listener(previous, current)
        finally:
            self._notifying = None
        return current
