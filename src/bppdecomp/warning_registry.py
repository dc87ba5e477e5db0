"""
Deferred warnings for the bootstrap loop.

A negative shock variance or a failed stratum can show up in most of the
B replicates. Replicate code hands such warnings to a ``WarningRegistry``
and the bootstrap driver calls ``flush()`` once at the end, which turns
the buffered records into a handful of ``warnings.warn`` calls:

- ``quiet``   : only ``BootstrapWarning``, one line per category.
- ``default`` : one line per category.
- ``verbose`` : every record as it was collected.

Every record stays available through ``get_diagnostics()``, whatever the
level, and ends up in ``ClusterBootstrapResult.diagnostics``.
"""

import threading
import time
import warnings
from dataclasses import dataclass, field
from typing import Any

from .warnings_categories import BootstrapWarning

LEVELS = ('quiet', 'default', 'verbose')

# still shown at the 'quiet' level
_ALWAYS_SHOWN = (BootstrapWarning,)


@dataclass
class WarningRecord:
    category: type
    message: str
    stratum: Any = None
    replicate: Any = None
    context: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class WarningRegistry:
    """
    Thread-safe buffer of warnings raised while bootstrap replicates run.

    Parameters
    ----------
    verbose : {'quiet', 'default', 'verbose'}
        How much :meth:`flush` emits. Case-insensitive.

    Raises
    ------
    ValueError
        Unknown level.
    """

    def __init__(self, verbose: str = 'default') -> None:
        level = verbose.lower() if isinstance(verbose, str) else verbose
        if level not in LEVELS:
            raise ValueError(
                f"Invalid verbose level {verbose!r}. Must be one of {list(LEVELS)}."
            )
        self.verbose = level
        self._records: list[WarningRecord] = []
        self._lock = threading.Lock()
        self._flushed = False

    def __len__(self) -> int:
        return len(self._records)

    def collect(
        self,
        category: type,
        message: str,
        stratum: Any = None,
        replicate: Any = None,
        context: dict | None = None,
    ) -> None:
        """
        Store a warning for later; nothing is emitted here.

        *context* holds numbers worth tracking across replicates, e.g.
        ``{'variance_transitory': -0.01}``; :meth:`get_diagnostics` reports
        their range.
        """
        record = WarningRecord(category, message, stratum, replicate, dict(context or {}))
        with self._lock:
            self._records.append(record)

    def flush(self, total_replicates: int | None = None) -> None:
        """
        Emit the buffered warnings according to the verbosity level.

        Only the first call emits. *total_replicates* is the denominator of
        the "k/B replicates" count in each aggregated line.
        """
        if self._flushed:
            return
        self._flushed = True

        if self.verbose == 'verbose':
            for rec in self._records:
                warnings.warn(rec.message, rec.category, stacklevel=2)
            return

        for category, records in self._by_category().items():
            if self.verbose == 'quiet' and category not in _ALWAYS_SHOWN:
                continue
            warnings.warn(
                _one_line(category, records, total_replicates), category, stacklevel=2
            )

    def get_diagnostics(self) -> list[dict]:
        """
        One dict per warning category, in order of first occurrence.

        Keys: ``category`` (class name), ``message`` (first message seen),
        ``count``, ``strata`` (sorted labels), ``replicates`` (number of
        distinct replicates) and ``context_summary`` (``<key>_min`` /
        ``<key>_max`` over numeric context values).
        """
        out = []
        for category, records in self._by_category().items():
            out.append({
                'category': category.__name__,
                'message': records[0].message,
                'count': len(records),
                'strata': _strata(records),
                'replicates': len(_replicates(records)),
                'context_summary': _context_range(records),
            })
        return out

    def _by_category(self) -> dict[type, list[WarningRecord]]:
        with self._lock:
            records = list(self._records)
        grouped: dict[type, list[WarningRecord]] = {}
        for rec in records:
            grouped.setdefault(rec.category, []).append(rec)
        return grouped


def _strata(records):
    return sorted({r.stratum for r in records if r.stratum is not None}, key=str)


def _replicates(records):
    return {r.replicate for r in records if r.replicate is not None}


def _one_line(category, records, total_replicates):
    n_replicates = len(_replicates(records))
    if n_replicates and total_replicates:
        extent = f"{n_replicates}/{total_replicates} replicates"
    elif n_replicates:
        extent = f"{n_replicates} replicates"
    else:
        extent = f"{len(records)} occurrences"
    strata = _strata(records)
    if strata:
        extent += f"; strata: {', '.join(map(str, strata))}"
    return f"[{category.__name__}] {records[0].message} ({extent})"


def _context_range(records):
    values: dict[str, list] = {}
    for rec in records:
        for key, value in rec.context.items():
            if isinstance(value, (int, float)):
                values.setdefault(key, []).append(value)
    summary = {}
    for key in sorted(values):
        summary[f'{key}_min'] = min(values[key])
        summary[f'{key}_max'] = max(values[key])
    return summary
