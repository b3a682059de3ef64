"""
CSV logging for simulation snapshots.

Buffers rows in memory and writes in batches to minimize I/O overhead.
Implements context manager protocol for safe resource handling.
"""
from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from kitesim.core.simulation import SimulationSnapshot

_XYZ = ("x", "y", "z")

# Column groups per field, in header order
FIELD_COLUMNS: dict[str, list[str]] = {
    "p": [f"kite.p_{a}" for a in _XYZ],
    "q": [f"kite.q_{a}" for a in ("x", "y", "z", "w")],
    "v": [f"kite.v_{a}" for a in _XYZ],
    "w": [f"kite.w_{a}" for a in _XYZ],
    "a": [f"kite.a_{a}" for a in _XYZ],
    "f": [f"kite.f_{a}" for a in _XYZ],
    "tau": [f"kite.tau_{a}" for a in _XYZ],
    "forces": [
        f"forces.{name}_{a}" for name in ("aero", "gravity", "lines") for a in _XYZ
    ],
    "lines": [
        f"lines.{name}" for name in (
            "base_length", "delta", "left_length", "right_length",
            "left_tension", "right_tension", "left_distance", "right_distance",
        )
    ],
}
DEFAULT_FIELDS = ["p", "q", "v", "w", "f", "tau", "forces", "lines"]


class CSVLogger:
    """
    Buffered CSV logger for simulation snapshots.

    Parameters
    ----------
    filepath : str | Path
        Output CSV file path
    buffer_size : int
        Number of rows to buffer before writing. Higher = fewer writes but
        more memory.
    fields : list[str] | None
        Column groups to log. Default: all of ``DEFAULT_FIELDS``.
        Options: "p" (position), "q" (quaternion), "v" (velocity),
        "w" (angular velocity), "a" (acceleration), "f" (net force),
        "tau" (net torque), "forces" (aerodynamic/gravity/line vectors),
        "lines" (lengths, tensions, distances)

    Notes
    -----
    The first column is always the snapshot time ``t``.

    Examples
    --------
    >>> with CSVLogger("run.csv", fields=["p", "lines"]) as logger:
    ...     for _ in range(n):
    ...         logger.log(sim.step())
    """

    def __init__(
        self,
        filepath: str | Path,
        buffer_size: int = 1000,
        fields: list[str] | None = None
    ) -> None:
        self.filepath = Path(filepath)
        self.buffer_size = buffer_size
        self.fields = fields if fields is not None else list(DEFAULT_FIELDS)

        invalid = set(self.fields) - set(FIELD_COLUMNS)
        if invalid:
            raise ValueError(
                f"Invalid fields: {invalid}. Valid options: {set(FIELD_COLUMNS)}"
            )
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be at least 1, got {buffer_size}")

        self.columns = ["t"] + [c for f in self.fields for c in FIELD_COLUMNS[f]]
        self._buffer: list[list[str]] = []
        self._file: TextIO | None = None
        self._writer: Any = None  # csv.writer is a function, not a type
        self._header_written = False

        # Ensure parent directory exists
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> CSVLogger:
        """Open file for writing."""
        self._file = open(self.filepath, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close file, flushing any remaining data."""
        self.close()

    def _write_header(self) -> None:
        if self._writer:
            self._writer.writerow(self.columns)
            if self._file:
                self._file.flush()  # Ensure header written immediately
        self._header_written = True

    def log(self, snapshot: SimulationSnapshot) -> None:
        """
        Log one snapshot to the buffer.

        Notes
        -----
        Automatically opens file on first call if not using context manager.
        Writes to disk when buffer is full.
        """
        if self._file is None:
            self.__enter__()

        if not self._header_written:
            self._write_header()

        values = snapshot.as_dict()
        row = [f"{values['t']:.10f}"]  # High precision time
        row.extend(f"{float(values[c]):.10e}" for c in self.columns[1:])
        self._buffer.append(row)

        if len(self._buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        """Write buffered data to disk and clear buffer."""
        if self._writer and self._buffer:
            self._writer.writerows(self._buffer)
            if self._file:
                self._file.flush()
            self._buffer.clear()

    def close(self) -> None:
        """Flush remaining data and close file."""
        self.flush()
        if self._file:
            self._file.close()
            self._file = None
            self._writer = None
