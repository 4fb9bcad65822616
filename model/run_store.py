"""In-memory store of the current document's text runs."""

import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from typing import Iterable, Iterator, Optional

from model.text_run import TextRun

logger = logging.getLogger(__name__)


class PageRuns:
    """Restartable view over one page's runs; each iteration reads current state."""

    def __init__(self, store: "RunModelStore", page_index: int):
        self._store = store
        self.page_index = page_index

    def __iter__(self) -> Iterator[TextRun]:
        yield from self._store._snapshot_page(self.page_index)

    def __len__(self) -> int:
        return len(self._store._snapshot_page(self.page_index))


class RunModelStore:
    """Ordered id -> TextRun mapping; the single source of truth for edits.

    ``replace_all`` swaps the whole mapping under the lock so readers never
    see a mix of two loads. ``set_text`` touches text only; geometry stays as
    extracted so occlusion never depends on what the user typed.
    """

    def __init__(self, runs: Optional[Iterable[TextRun]] = None):
        self._lock = threading.RLock()
        self._runs: "OrderedDict[str, TextRun]" = OrderedDict()
        if runs is not None:
            self.replace_all(runs)

    def replace_all(self, runs: Iterable[TextRun]) -> None:
        fresh: "OrderedDict[str, TextRun]" = OrderedDict()
        for run in runs:
            if run.run_id in fresh:
                raise ValueError(f"duplicate run id: {run.run_id}")
            fresh[run.run_id] = run
        with self._lock:
            self._runs = fresh
        logger.debug(f"run store replaced: {len(fresh)} runs")

    def set_text(self, run_id: str, new_text: str) -> bool:
        if not isinstance(new_text, str):
            raise TypeError(f"run text must be str, got {type(new_text).__name__}")
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                logger.debug(f"set_text ignored, unknown run id: {run_id}")
                return False
            self._runs[run_id] = replace(run, text=new_text)
        return True

    def get(self, run_id: str) -> Optional[TextRun]:
        with self._lock:
            return self._runs.get(run_id)

    def all_for_page(self, page_index: int) -> PageRuns:
        return PageRuns(self, page_index)

    def _snapshot_page(self, page_index: int) -> list[TextRun]:
        with self._lock:
            return [run for run in self._runs.values() if run.page_index == page_index]

    def page_indices(self) -> list[int]:
        with self._lock:
            return sorted({run.page_index for run in self._runs.values()})

    def snapshot(self) -> list[TextRun]:
        with self._lock:
            return list(self._runs.values())

    def clear(self) -> None:
        with self._lock:
            self._runs = OrderedDict()

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._runs

    def __iter__(self) -> Iterator[TextRun]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
