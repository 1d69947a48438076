"""session state: the open document, its file path and the recent files list.

one Session is shared by every caller (the api server holds a global one).
the document and the recent files list each sit behind their own
PoisonableLock and are always taken in that order. listeners are notified
after the locks are released.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from ..errors import BrainmapError, InvalidOperation, IoFailure, LockPoisoned, NoActivePath
from ..formats import read_map, write_map
from .layout import DEFAULT_CONFIG, LayoutConfig, compute_layout
from .models import MindMap, Navigation

log = logging.getLogger(__name__)


# --- configuration ---

MAX_RECENT_FILES = 10
RECENT_FILES_FILENAME = "recent_files.json"
CONFIG_DIR_ENV = "BRAINMAP_CONFIG_DIR"
DEFAULT_CONFIG_DIR = "~/.brainmap"

# event names delivered to subscribers
DOCUMENT_REPLACED = "document-replaced"
RECENT_FILES_CHANGED = "recent-files-changed"
MENU_ACTION = "menu-action"

MENU_ITEMS = (
    "new", "open", "save", "save_as", "exit",
    "add_child", "add_sibling", "delete_node", "rename_node",
    "about",
)
RECENT_MENU_PREFIX = "recent:"
RECENT_CLEAR_MENU_ID = "recent_clear"

PathLike = Union[str, Path]


def get_config_dir() -> Path:
    """per-user config directory, overridable through BRAINMAP_CONFIG_DIR."""
    return Path(os.environ.get(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR).expanduser()


def _normalize(path: PathLike) -> str:
    return str(Path(path).expanduser().absolute())


class PoisonableLock:
    """a threading.Lock that refuses further use after a critical section
    failed unexpectedly.

    BrainmapError is an expected outcome and leaves the lock usable. any
    other exception may have left the guarded state half-updated, so the lock
    is poisoned and later holders get LockPoisoned until clear() is called.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def hold(self) -> Iterator[None]:
        with self._lock:
            if self._poisoned:
                raise LockPoisoned(self.name)
            try:
                yield
            except BrainmapError:
                raise
            except Exception:
                self._poisoned = True
                log.error("%s lock poisoned", self.name, exc_info=True)
                raise

    def clear(self) -> None:
        with self._lock:
            if self._poisoned:
                log.info("clearing poisoned %s lock", self.name)
            self._poisoned = False


class RecentFiles:
    """most-recently-used file list persisted as a json array of paths."""

    def __init__(self, storage: PathLike, max_entries: int = MAX_RECENT_FILES):
        self.storage = Path(storage)
        self.max_entries = max_entries
        self._entries: list[str] = []
        self.lock = PoisonableLock("recent files")

    @property
    def entries(self) -> list[str]:
        with self.lock.hold():
            return list(self._entries)

    def load(self) -> list[str]:
        """read the stored list. a missing or unreadable file means no history."""
        entries: list[str] = []
        try:
            raw = json.loads(self.storage.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raw = []
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("ignoring malformed recent files list %s: %s", self.storage, e)
            raw = []
        except OSError as e:
            raise IoFailure(f"cannot read {self.storage}: {e.strerror or e}") from e

        if isinstance(raw, list):
            entries = [p for p in raw if isinstance(p, str)][: self.max_entries]
        with self.lock.hold():
            self._entries = entries
        log.debug("loaded %d recent files from %s", len(entries), self.storage)
        return list(entries)

    def add(self, path: PathLike) -> list[str]:
        """move path to the front, dropping the oldest entry past the limit."""
        path = _normalize(path)
        with self.lock.hold():
            entries = [p for p in self._entries if p != path]
            entries.insert(0, path)
            del entries[self.max_entries:]
            self._persist(entries)
            self._entries = entries
            return list(entries)

    def clear(self) -> list[str]:
        with self.lock.hold():
            self._persist([])
            self._entries = []
            return []

    def get(self, index: int) -> str:
        with self.lock.hold():
            if not 0 <= index < len(self._entries):
                raise InvalidOperation(f"no recent file at position {index}")
            return self._entries[index]

    def _persist(self, entries: list[str]) -> None:
        try:
            self.storage.parent.mkdir(parents=True, exist_ok=True)
            self.storage.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        except OSError as e:
            raise IoFailure(f"cannot write {self.storage}: {e.strerror or e}") from e
        log.debug("saved %d recent files to %s", len(entries), self.storage)


@dataclass
class Event:
    """notification delivered to session subscribers."""

    name: str
    payload: dict = field(default_factory=dict)


Listener = Callable[[Event], None]


class Session:
    """the open document plus file bookkeeping.

    every command either applies fully or raises and leaves the state as it
    was. mutations re-run the layout so geometry is always current.
    """

    def __init__(
        self,
        config_dir: Optional[PathLike] = None,
        recent: Optional[RecentFiles] = None,
        layout_config: LayoutConfig = DEFAULT_CONFIG,
    ):
        self.config_dir = Path(config_dir) if config_dir else get_config_dir()
        self.recent = recent or RecentFiles(self.config_dir / RECENT_FILES_FILENAME)
        self.layout_config = layout_config
        self._document = compute_layout(MindMap.new(), layout_config)
        self._active_path: Optional[str] = None
        self._lock = PoisonableLock("document")
        self._listeners: list[Listener] = []

    # --- events ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, events: list[Event]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    log.warning("listener failed on %s", event.name, exc_info=True)

    # --- document ---

    def get_document(self) -> MindMap:
        """snapshot of the current map; changes to it do not affect the session."""
        with self._lock.hold():
            return self._document.copy()

    def get_active_path(self) -> Optional[str]:
        with self._lock.hold():
            return self._active_path

    def new_document(self) -> MindMap:
        with self._lock.hold():
            self._document = compute_layout(MindMap.new(), self.layout_config)
            self._active_path = None
            snapshot = self._document.copy()
        self._emit([Event(DOCUMENT_REPLACED, {"path": None})])
        return snapshot

    def load(self, path: PathLike) -> MindMap:
        """open a file, replacing the current document.

        nothing changes unless the read, the decode and the history update
        all succeed.
        """
        path = _normalize(path)
        with self._lock.hold():
            mindmap = read_map(path)
            entries = self.recent.add(path)
            self._document = compute_layout(mindmap, self.layout_config)
            self._active_path = path
            snapshot = self._document.copy()
        log.info("loaded %s (%d nodes)", path, len(snapshot))
        self._emit([
            Event(DOCUMENT_REPLACED, {"path": path}),
            Event(RECENT_FILES_CHANGED, {"entries": entries}),
        ])
        return snapshot

    def save(self, path: Optional[PathLike] = None) -> str:
        """write the document to path, or back to the active path; returns the path written."""
        with self._lock.hold():
            if path is not None:
                target = _normalize(path)
            elif self._active_path is not None:
                target = self._active_path
            else:
                raise NoActivePath()
            write_map(target, self._document)
            entries = self.recent.add(target)
            self._active_path = target
        log.info("saved %s", target)
        self._emit([Event(RECENT_FILES_CHANGED, {"entries": entries})])
        return target

    # --- commands ---

    def _apply(self, command: Callable[[MindMap], object]):
        with self._lock.hold():
            result = command(self._document)
            compute_layout(self._document, self.layout_config)
            return result

    def add_child(self, parent_id: str, content: str) -> str:
        return self._apply(lambda m: m.add_child(parent_id, content))

    def add_sibling(self, node_id: str, content: str) -> str:
        return self._apply(lambda m: m.add_sibling(node_id, content))

    def change_node(self, node_id: str, content: str) -> None:
        self._apply(lambda m: m.change_node(node_id, content))

    def remove_node(self, node_id: str) -> str:
        return self._apply(lambda m: m.remove_node(node_id))

    def select_node(self, node_id: str) -> str:
        with self._lock.hold():
            return self._document.select_node(node_id)

    def navigate(self, direction: Union[Navigation, str]) -> str:
        if not isinstance(direction, Navigation):
            direction = Navigation.parse(direction)
        with self._lock.hold():
            return self._document.navigate(direction)

    def add_icon(self, node_id: str, icon: str) -> None:
        self._apply(lambda m: m.add_icon(node_id, icon))

    def remove_last_icon(self, node_id: str) -> None:
        self._apply(lambda m: m.remove_last_icon(node_id))

    # --- history and menu ---

    def recent_files(self) -> list[str]:
        return self.recent.entries

    def clear_recent_files(self) -> list[str]:
        entries = self.recent.clear()
        self._emit([Event(RECENT_FILES_CHANGED, {"entries": entries})])
        return entries

    def handle_menu_action(self, item_id: str) -> dict:
        """translate a menu item id into an action.

        `recent:<n>` opens the n-th recent file and `recent_clear` empties the
        history. the remaining known ids are forwarded to listeners as a
        menu-action event.
        """
        if item_id.startswith(RECENT_MENU_PREFIX):
            try:
                index = int(item_id[len(RECENT_MENU_PREFIX):])
            except ValueError:
                raise InvalidOperation(f"bad recent file menu id: {item_id}") from None
            path = self.recent.get(index)
            self.load(path)
            return {"action": "open", "path": path}

        if item_id == RECENT_CLEAR_MENU_ID:
            self.clear_recent_files()
            return {"action": RECENT_CLEAR_MENU_ID}

        if item_id not in MENU_ITEMS:
            raise InvalidOperation(f"unknown menu item: {item_id}")
        self._emit([Event(MENU_ACTION, {"item": item_id})])
        return {"action": item_id}

    # --- recovery ---

    @property
    def poisoned(self) -> bool:
        return self._lock.poisoned or self.recent.lock.poisoned

    def recover(self) -> MindMap:
        """clear poisoned locks and start over with an empty document."""
        self._lock.clear()
        self.recent.lock.clear()
        self.recent.load()
        return self.new_document()
