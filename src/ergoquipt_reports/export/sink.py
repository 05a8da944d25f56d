from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path


class DownloadSink(ABC):
    @abstractmethod
    def save(self, source: Path, filename: str) -> Path:
        """Deliver the file at `source` under `filename`; return where it landed.

        `source` belongs to the caller and is removed after this returns.
        """


class DirectorySink(DownloadSink):
    """Save downloads into one directory, replacing same-named files."""

    def __init__(self, downloads_dir: Path) -> None:
        self.downloads_dir = downloads_dir

    def save(self, source: Path, filename: str) -> Path:
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        # ids come from the server; never let them pick a directory
        target = self.downloads_dir / Path(filename).name
        shutil.copyfile(source, target)
        return target
