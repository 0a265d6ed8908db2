import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
import pandas as pd

from .errors import (
    DecodeError,
    EmptyBodyError,
    HTTPStatusError,
    InvalidTransitionError,
    InvalidURLError,
    KotobaError,
    NetworkError,
    SourceIOError,
)
from .models import WordSource, decode_source, new_source, new_word
from .repository import WordSourceStore

logger = logging.getLogger(__name__)

REQUIRED_CSV_COLUMNS = ("word", "pronunciation", "meaning")


def validate_url(url_string: str) -> str:
    """Returns the trimmed URL or raises :class:`InvalidURLError`."""
    url = (url_string or "").strip()
    if not url:
        raise InvalidURLError("URL is empty")
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidURLError(f"Invalid URL '{url}': {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidURLError(f"Invalid URL '{url}'")
    return url


def read_csv_source(path, name: str, description: str = "") -> WordSource:
    """Builds a word source from a CSV file with one word per row."""
    try:
        df = pd.read_csv(path, encoding="utf-8", dtype=str, keep_default_na=False)
    except OSError as e:
        raise SourceIOError(f"Cannot read {path}: {e}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DecodeError(f"Cannot parse CSV {path}: {e}") from e

    missing = [c for c in REQUIRED_CSV_COLUMNS if c not in df.columns]
    if missing:
        raise DecodeError(f"CSV {path} is missing columns: {', '.join(missing)}")

    words = [
        new_word(
            word=row["word"],
            pronunciation=row["pronunciation"],
            meaning=row["meaning"],
            example=row.get("example", ""),
            level=row.get("level", ""),
            category=row.get("category") or None,
        )
        for row in df.to_dict("records")
    ]
    return new_source(name, description, words)


class ImportJob:
    """An in-flight import started through :class:`WordSourceImporter`.

    Once the decoded source has been handed to the store the job is
    committed and can no longer be cancelled.
    """

    def __init__(self, description: str):
        self.description = description
        self.committed = False
        self._task: Optional["asyncio.Task[WordSource]"] = None

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    def result(self) -> WordSource:
        """The imported source; raises the import's typed error if it failed."""
        return self._task.result()

    def exception(self) -> Optional[BaseException]:
        return self._task.exception()

    def cancel(self) -> bool:
        if self.committed or self._task is None or self._task.done():
            return False
        return self._task.cancel()

    async def wait(self) -> Optional[WordSource]:
        """Result of the import, or ``None`` if it was cancelled."""
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return None
            raise


CompletionCallback = Callable[[ImportJob], None]


class WordSourceImporter:
    def __init__(
        self,
        store: WordSourceStore,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.timeout = timeout
        self._transport = transport
        self._job: Optional[ImportJob] = None

    # --- Imports ---
    async def import_from_file(self, path, job: Optional[ImportJob] = None) -> WordSource:
        logger.info(f"Importing word source from file {path}")
        try:
            data = await self._read_file(Path(path))
            source = decode_source(data)
            await self._commit(source, unique_name=False, job=job)
        except KotobaError as e:
            logger.warning(f"Import from file {path} failed: {e.message}")
            raise
        logger.info(f"Imported '{source.name}' from {path}")
        return source

    async def import_from_remote(
        self, url_string: str, job: Optional[ImportJob] = None
    ) -> WordSource:
        url = validate_url(url_string)
        logger.info(f"Importing word source from {url}")
        try:
            source = await self._fetch(url)
            await self._commit(source, unique_name=True, job=job)
        except KotobaError as e:
            logger.warning(f"Import from {url} failed: {e.message}")
            raise
        logger.info(f"Imported '{source.name}' from {url}")
        return source

    async def import_from_csv(
        self, path, name: str, description: str = "", job: Optional[ImportJob] = None
    ) -> WordSource:
        logger.info(f"Importing word source from CSV {path}")
        try:
            source = await asyncio.to_thread(read_csv_source, path, name, description)
            await self._commit(source, unique_name=False, job=job)
        except KotobaError as e:
            logger.warning(f"Import from CSV {path} failed: {e.message}")
            raise
        logger.info(f"Imported '{source.name}' ({len(source.words)} words) from {path}")
        return source

    async def _read_file(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceIOError(f"Cannot read {path}: {e}") from e

    async def _fetch(self, url: str) -> WordSource:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise NetworkError(f"Network request failed: {e!r}") from e

        if response.status_code != 200:
            raise HTTPStatusError(response.status_code)
        if not response.content:
            raise EmptyBodyError()
        return decode_source(response.content)

    async def _commit(
        self, source: WordSource, unique_name: bool, job: Optional[ImportJob]
    ) -> None:
        # No await between the duplicate check and the append.
        if job is not None:
            job.committed = True
        future = self.store.add_nowait(source, unique_name=unique_name)
        await asyncio.shield(asyncio.wrap_future(future))

    # --- Job control ---
    @property
    def is_loading(self) -> bool:
        return self._job is not None and not self._job.done()

    @property
    def current_job(self) -> Optional[ImportJob]:
        return self._job if self.is_loading else None

    def start_file_import(self, path, on_complete: Optional[CompletionCallback] = None) -> ImportJob:
        return self._start(
            f"file {path}",
            lambda job: self.import_from_file(path, job=job),
            on_complete,
        )

    def start_remote_import(
        self, url_string: str, on_complete: Optional[CompletionCallback] = None
    ) -> ImportJob:
        url = validate_url(url_string)
        return self._start(
            url,
            lambda job: self.import_from_remote(url, job=job),
            on_complete,
        )

    def start_csv_import(
        self,
        path,
        name: str,
        description: str = "",
        on_complete: Optional[CompletionCallback] = None,
    ) -> ImportJob:
        return self._start(
            f"csv {path}",
            lambda job: self.import_from_csv(path, name, description, job=job),
            on_complete,
        )

    def _start(
        self,
        description: str,
        factory: Callable[[ImportJob], Awaitable[WordSource]],
        on_complete: Optional[CompletionCallback],
    ) -> ImportJob:
        if self.is_loading:
            raise InvalidTransitionError("An import is already in progress")
        job = ImportJob(description)
        job._task = asyncio.get_running_loop().create_task(factory(job))
        job._task.add_done_callback(lambda _task: self._finished(job, on_complete))
        self._job = job
        return job

    def _finished(self, job: ImportJob, on_complete: Optional[CompletionCallback]) -> None:
        task = job._task
        if not task.cancelled():
            # Mark a failure as retrieved; callers read it through job.exception().
            task.exception()
        if self._job is not job:
            # Cancelled or superseded; its completion is not delivered.
            return
        self._job = None
        if on_complete is not None:
            on_complete(job)

    def cancel_current(self) -> bool:
        job = self._job
        if job is None or not job.cancel():
            return False
        self._job = None
        logger.info(f"Cancelled import from {job.description}")
        return True
