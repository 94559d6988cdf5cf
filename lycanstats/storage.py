from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def dump_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def write_json_atomic(path: Path, obj: Any) -> None:
    """Write ``obj`` as JSON so readers see either the old file or the complete new one."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_json(obj))
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
