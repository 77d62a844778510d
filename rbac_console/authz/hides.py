"""Local hide set: a per-client overlay of menu node ids the user chose to hide.

This is a display preference, not a security boundary. The store persists the
set as a JSON array and notifies subscribers synchronously on every change,
so a reader resolving the menu after ``toggle`` returns already sees it.
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional, Union

logger = logging.getLogger("rbac_console.authz")

HideListener = Callable[[FrozenSet[str]], None]


def toggle_hidden(hides: Iterable[str], node_id: str) -> FrozenSet[str]:
    """Hide ``node_id`` if visible, unhide it if hidden."""
    current = frozenset(hides or ())
    if node_id in current:
        return current - {node_id}
    return current | {node_id}


def reset_all() -> FrozenSet[str]:
    return frozenset()


def load_hidden(path: Path) -> FrozenSet[str]:
    """Read a persisted hide set; anything unreadable yields the empty set."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return frozenset()
    except OSError as e:
        logger.warning("Cannot read hidden menu file %s: %s", path, e)
        return frozenset()

    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Hidden menu file %s is not valid JSON; resetting to empty", path)
        return frozenset()

    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        logger.warning("Hidden menu file %s does not hold a list of ids; resetting to empty", path)
        return frozenset()
    return frozenset(data)


def save_hidden(path: Path, hides: Iterable[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(sorted(hides), ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


class LocalHideStore:
    """Observable, optionally file-backed holder of the local hide set."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path: Optional[Path] = Path(os.path.expanduser(str(path))) if path else None
        self._hidden: FrozenSet[str] = load_hidden(self._path) if self._path else frozenset()
        self._listeners: List[HideListener] = []

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def hidden(self) -> FrozenSet[str]:
        return self._hidden

    def is_hidden(self, node_id: str) -> bool:
        return node_id in self._hidden

    def toggle(self, node_id: str) -> FrozenSet[str]:
        return self._replace(toggle_hidden(self._hidden, node_id))

    def reset(self) -> FrozenSet[str]:
        return self._replace(reset_all())

    def reload(self) -> FrozenSet[str]:
        """Re-read the backing file, e.g. after another process changed it."""
        if self._path is None:
            return self._hidden
        return self._replace(load_hidden(self._path), persist=False)

    def subscribe(self, listener: HideListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _replace(self, hidden: FrozenSet[str], persist: bool = True) -> FrozenSet[str]:
        self._hidden = hidden
        if persist and self._path is not None:
            try:
                save_hidden(self._path, hidden)
            except OSError as e:
                logger.warning("Cannot persist hidden menu file %s: %s", self._path, e)
        for listener in list(self._listeners):
            try:
                listener(hidden)
            except Exception:
                logger.exception("Hidden menu listener %r failed", listener)
        return hidden
