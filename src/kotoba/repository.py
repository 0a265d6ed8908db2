import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DecodeError, DuplicateNameError, LoadError, SaveError, SourceNotFoundError
from .models import Word, WordSource, decode_sources, encode_sources
from .seed import default_source

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple[WordSource, ...]], None]


# --- Service Layer: Word Source Management ---
class WordSourceStore:
    """Owns the ordered list of word sources and keeps it persisted.

    All mutations go through :meth:`add` and :meth:`remove`. Each one takes a
    snapshot under the store lock and hands it to a single writer thread
    before releasing the lock, so files are written in mutation order.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._sources: List[WordSource] = []
        self._lock = threading.RLock()
        self._writer = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="kotoba-store-writer"
        )
        self._listeners: List[Listener] = []

    # --- Persistence ---
    def load(self) -> None:
        """Replaces the in-memory sources with the persisted ones.

        A missing file is not an error. Unreadable or undecodable data raises
        :class:`LoadError` and leaves the store empty.
        """
        with self._lock:
            self._sources = []
            if not self.path.exists():
                logger.info(f"No saved word sources at {self.path}")
                return
            try:
                data = self.path.read_bytes()
                sources = decode_sources(data)
            except OSError as e:
                logger.error(f"Failed to read {self.path}: {e}")
                raise LoadError(f"Failed to load word sources: {e}") from e
            except DecodeError as e:
                logger.error(f"Failed to decode {self.path}: {e.message}")
                raise LoadError(f"Failed to load word sources: {e.message}") from e
            self._sources = sources
            logger.info(f"Loaded {len(sources)} word sources from {self.path}")
            self._notify(tuple(self._sources))

    def ensure_default_seed(self) -> Optional[WordSource]:
        """Adds the built-in source if the store is empty; returns it if added."""
        with self._lock:
            if self._sources:
                return None
            source = default_source()
            future = self._append_locked(source)
            logger.info(f"Seeded default word source '{source.name}'")
            self._notify(tuple(self._sources))
        future.result()
        return source

    def save(self) -> None:
        with self._lock:
            future = self._persist_locked()
        future.result()

    def save_nowait(self) -> "Future[None]":
        with self._lock:
            return self._persist_locked()

    def _persist_locked(self) -> "Future[None]":
        data = encode_sources(self._sources)
        return self._writer.submit(self._write, data)

    def _write(self, data: bytes) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            logger.error(f"Failed to save word sources to {self.path}: {e}")
            raise SaveError(f"Failed to save word sources: {e}") from e

    # --- Mutations ---
    def _append_locked(self, source: WordSource) -> "Future[None]":
        self._sources.append(source)
        return self._persist_locked()

    def add_nowait(self, source: WordSource, unique_name: bool = False) -> "Future[None]":
        """Appends ``source`` and returns the pending write.

        With ``unique_name`` the duplicate check and the append happen under
        the same lock.
        """
        with self._lock:
            if unique_name and self._find_by_name_locked(source.name) is not None:
                raise DuplicateNameError(source.name)
            future = self._append_locked(source)
            logger.info(f"Added word source '{source.name}' ({len(source.words)} words)")
            # Under the lock so listeners see snapshots in mutation order.
            self._notify(tuple(self._sources))
        return future

    def add(self, source: WordSource, unique_name: bool = False) -> WordSource:
        """Appends ``source`` and waits for it to be persisted.

        If the write fails the source stays in memory and :class:`SaveError`
        is raised so the caller can retry with :meth:`save`.
        """
        self.add_nowait(source, unique_name=unique_name).result()
        return source

    def remove_nowait(self, source_id: str) -> Tuple[Optional[WordSource], "Future[None]"]:
        with self._lock:
            removed = None
            for i, source in enumerate(self._sources):
                if source.id == source_id:
                    removed = self._sources.pop(i)
                    break
            future = self._persist_locked()
            if removed is not None:
                logger.info(f"Removed word source '{removed.name}'")
                self._notify(tuple(self._sources))
        return removed, future

    def remove(self, source_id: str) -> Optional[WordSource]:
        """Removes the source with ``source_id``; unknown ids are a no-op."""
        removed, future = self.remove_nowait(source_id)
        future.result()
        return removed

    # --- Queries ---
    def list_sources(self) -> Tuple[WordSource, ...]:
        with self._lock:
            return tuple(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def get(self, source_id: str) -> WordSource:
        with self._lock:
            for source in self._sources:
                if source.id == source_id:
                    return source
        raise SourceNotFoundError(source_id)

    def _find_by_name_locked(self, name: str) -> Optional[WordSource]:
        for source in self._sources:
            if source.name == name:
                return source
        return None

    def find_by_name(self, name: str) -> Optional[WordSource]:
        with self._lock:
            return self._find_by_name_locked(name)

    def all_words(self) -> List[Word]:
        return [word for source in self.list_sources() for word in source.words]

    def search(self, query: str) -> List[Word]:
        """Case-insensitive match on word text, meaning and pronunciation."""
        words = self.all_words()
        if not query:
            return words
        needle = query.casefold()
        return [
            w
            for w in words
            if needle in w.word.casefold()
            or needle in w.meaning.casefold()
            or needle in w.pronunciation.casefold()
        ]

    def group_by_level(self) -> Dict[str, List[Word]]:
        groups: Dict[str, List[Word]] = {}
        for word in self.all_words():
            groups.setdefault(word.level, []).append(word)
        return groups

    # --- Change notifications ---
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, snapshot: Tuple[WordSource, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Word source listener failed")

    def close(self) -> None:
        self._writer.shutdown(wait=True)
