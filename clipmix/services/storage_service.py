from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from clipmix.core.errors import OutputWriteFailure


@dataclass(frozen=True)
class StoredObject:
    """
    abs_path: absolute filesystem path to the written file
    mime: MIME type of the encoded audio
    size: number of bytes written
    """
    abs_path: str
    mime: str
    size: int


class StorageService:
    """
    Local filesystem output.

    Guarantees:
    - Writes atomically (tmp file + replace), so a failed run never leaves a file that looks complete
    - Creates missing parent directories
    """

    def save_bytes(self, data: bytes, path: str | Path, *, mime: str) -> StoredObject:
        abs_path = Path(path).expanduser().resolve()
        tmp_path = abs_path.with_suffix(abs_path.suffix + ".tmp")
        try:
            abs_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, abs_path)  # atomic on Windows
        except OSError as exc:
            raise OutputWriteFailure(str(abs_path), str(exc)) from exc
        finally:
            if tmp_path.is_file():
                tmp_path.unlink()

        return StoredObject(abs_path=str(abs_path), mime=mime, size=len(data))
