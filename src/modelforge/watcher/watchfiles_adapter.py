from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchfiles import Change, DefaultFilter, awatch

logger = logging.getLogger(__name__)

OnModelsChanged = Callable[[set[Path]], Coroutine[Any, Any, None]]


class ModelFileFilter(DefaultFilter):
    """Accept declaration sources only; editor swap files and hidden files are ignored."""

    def __init__(self, suffix: str = ".rs") -> None:
        super().__init__()
        self.suffix = suffix

    def __call__(self, change: Change, path: str) -> bool:
        candidate = Path(path)
        return (
            super().__call__(change, path)
            and candidate.suffix == self.suffix
            and not candidate.name.startswith(".")
        )


class WatchfilesWatcher:
    """Recompile whenever model declarations under ``directory`` change.

    Implements the ``ModelWatcherPort`` protocol. Changes arriving within
    ``debounce_ms`` of each other are delivered as one batch.
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: OnModelsChanged,
        suffix: str = ".rs",
        debounce_ms: int = 300,
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._filter = ModelFileFilter(suffix)
        self._debounce_ms = debounce_ms
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watching %s for *%s changes", self._directory, self._filter.suffix)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stopped watching %s", self._directory)

    async def _watch(self) -> None:
        async for changes in awatch(self._directory, watch_filter=self._filter, debounce=self._debounce_ms):
            paths = {Path(p) for _, p in changes}
            if not paths:
                continue
            logger.info("%d model file(s) changed", len(paths))
            try:
                await self._on_change(paths)
            except Exception:
                logger.exception("Recompile after change failed")
