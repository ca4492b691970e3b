# docmerge/generator.py

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from docmerge.assembler import OutputMode, build_assembler
from docmerge.errors import ConfigurationError
from docmerge.progress import ProgressReporter
from docmerge.resolver import PlaceholderResolver, overlapping_fields
from docmerge.table_reader import Table, read_table
from docmerge.template_store import TemplateBody, load_template

logger = logging.getLogger(__name__)


DEFAULT_WORKERS = 4


# ============================================================
# results
# ============================================================

@dataclass
class RowFailure:
    row: int  # 1-based, as in the output file names
    message: str


@dataclass
class MergeResult:
    rows_processed: int
    total_rows: int
    mode: OutputMode
    outputs: List[Path] = field(default_factory=list)
    archive: Optional[Path] = None
    failures: List[RowFailure] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {
            "rows_processed": self.rows_processed,
            "total_rows": self.total_rows,
            "mode": self.mode.value,
            "outputs": [str(p) for p in self.outputs],
            "archive": str(self.archive) if self.archive else None,
            "failures": [{"row": f.row, "message": f.message} for f in self.failures],
            "cancelled": self.cancelled,
        }


# ============================================================
# helpers
# ============================================================

def partition_rows(total: int, workers: int) -> List[Tuple[int, int]]:
    """Split ``[0, total)`` into at most ``workers`` contiguous ``(start, stop)`` ranges."""
    if total <= 0:
        return []
    workers = max(1, min(workers, total))
    size, extra = divmod(total, workers)

    ranges = []
    start = 0
    for w in range(workers):
        stop = start + size + (1 if w < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def substitute_row(table: Table, row_index: int, body: TemplateBody) -> int:
    """Replace every ``@field`` token in ``body`` with row ``row_index``'s values."""
    return PlaceholderResolver(table, row_index).apply(body.text_nodes())


# ============================================================
# engine
# ============================================================

class MergeEngine:
    """
    Drives the per-row merge cycle.

    Combined output is processed sequentially in row order. Per-row output is
    split into contiguous partitions, one per worker, when ``workers > 1``.

    ``strict`` decides what a failing row does in per-row mode: abort the
    batch (strict) or log it, record it in ``failures`` and carry on.
    """

    def __init__(
        self,
        *,
        workers: int = DEFAULT_WORKERS,
        strict: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ):
        if workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {workers}")
        self.workers = workers
        self.strict = strict
        self.cancel_event = cancel_event
        self.failures: List[RowFailure] = []
        self.cancelled = False
        self._failures_lock = threading.Lock()

    # -------------------------
    # public API
    # -------------------------

    def merge(self, table: Table, template: TemplateBody, sink, progress: ProgressReporter) -> int:
        """
        Merge every row of ``table`` into ``sink``.

        Returns the number of rows processed.
        """
        total = table.row_count
        self.failures = []
        self.cancelled = False
        progress.reset(total)

        for shorter, longer in overlapping_fields(table.fields):
            logger.warning(
                "Field '%s' is a prefix of '%s'; @%s may be substituted inside @%s",
                shorter, longer, shorter, longer,
            )

        logger.info("Merging %d row(s) (%s)", total, sink.mode.value)
        sink.open(total)

        if sink.mode is OutputMode.COMBINED:
            processed = self._merge_combined(table, template, sink, progress, total)
        else:
            processed = self._merge_per_row(table, sink, progress, total)

        sink.close()
        logger.info("Processed %d of %d row(s)", processed, total)
        return processed

    # -------------------------
    # combined (sequential)
    # -------------------------

    def _merge_combined(self, table, template, sink, progress, total) -> int:
        if self.cancel_event is not None:
            logger.debug("Cancellation is not supported for combined output; ignored")

        for i in range(total):
            clone = template.clone()
            substitute_row(table, i, clone)
            sink.append(i, clone)
            if i < total - 1:
                sink.append_separator()
            progress.advance()
        return total

    # -------------------------
    # per-row files
    # -------------------------

    def _merge_per_row(self, table, sink, progress, total) -> int:
        abort = threading.Event()
        partitions = partition_rows(total, self.workers)

        if len(partitions) <= 1:
            processed = sum(
                self._run_partition(table, sink, progress, start, stop, abort)
                for start, stop in partitions
            )
        else:
            with ThreadPoolExecutor(
                max_workers=len(partitions), thread_name_prefix="docmerge"
            ) as pool:
                futures = [
                    pool.submit(self._run_partition, table, sink, progress, start, stop, abort)
                    for start, stop in partitions
                ]
                processed = 0
                first_error = None
                for f in futures:
                    try:
                        processed += f.result()
                    except Exception as e:
                        if first_error is None:
                            first_error = e
                if first_error is not None:
                    raise first_error

        return processed

    def _run_partition(self, table, sink, progress, start, stop, abort) -> int:
        done = 0
        for i in range(start, stop):
            if abort.is_set():
                break
            if self.cancel_event is not None and self.cancel_event.is_set():
                self.cancelled = True
                break

            try:
                sink.write_row(i, lambda body, i=i: substitute_row(table, i, body))
            except Exception as e:
                if self.strict:
                    abort.set()
                    raise
                logger.error("Error processing row %d: %s", i + 1, e)
                with self._failures_lock:
                    self.failures.append(RowFailure(row=i + 1, message=str(e)))
                continue

            done += 1
            progress.advance()
        return done


# ============================================================
# orchestration
# ============================================================

def run_merge(
    table_path: str,
    template_path: str,
    *,
    mode=OutputMode.PER_ROW,
    dest_dir: Optional[str] = None,
    workers: int = DEFAULT_WORKERS,
    archive: bool = False,
    strict: bool = True,
    progress: Optional[ProgressReporter] = None,
    cancel_event: Optional[threading.Event] = None,
) -> MergeResult:
    """
    Read the table, load the template and merge them into ``dest_dir``.

    Everything that can be checked up front (inputs present, template has a
    body) is checked before the destination is touched.
    """
    if not table_path or not template_path:
        raise ConfigurationError("Please select a table file and a template file.")

    mode = OutputMode.parse(mode)
    engine = MergeEngine(workers=workers, strict=strict, cancel_event=cancel_event)

    table = read_table(table_path, strict=strict)
    template = load_template(template_path)
    sink = build_assembler(
        mode, template_path, dest_dir, archive=archive, table_path=table_path
    )
    progress = progress or ProgressReporter()

    processed = engine.merge(table, template, sink, progress)

    return MergeResult(
        rows_processed=processed,
        total_rows=table.row_count,
        mode=mode,
        outputs=list(sink.outputs),
        archive=getattr(sink, "archive_path", None),
        failures=sorted(engine.failures, key=lambda f: f.row),
        cancelled=engine.cancelled,
    )


def submit_merge(table_path: str, template_path: str, **kwargs) -> "Future[MergeResult]":
    """
    Run ``run_merge`` on a dedicated background thread.

    Progress arrives through the ProgressReporter passed in ``kwargs``; the
    returned future carries the MergeResult or the error.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="docmerge-run")
    future = executor.submit(run_merge, table_path, template_path, **kwargs)
    executor.shutdown(wait=False)
    return future
