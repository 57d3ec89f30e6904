from __future__ import annotations

import os
from pathlib import Path
from typing import Union


def is_windows() -> bool:
    return os.name == "nt"


def append_dot_bat_if_windows(executable: Union[str, Path]) -> Path:
    p = Path(executable)
    if is_windows():
        return p.with_name(p.name + ".bat")
    return p
