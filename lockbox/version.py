from __future__ import annotations

"""
lockbox.version

`LOCKBOX_VERSION` in the environment is used verbatim when set (packaging/CI).
Otherwise the version is BASE_VERSION, plus a PEP 440 local segment built from
`git describe` when the package runs from a git checkout:

    0.3.0+0.3.0.2.gabc1234.dirty
"""

import os
import re
import subprocess
from typing import Optional

BASE_VERSION = "0.3.0"

_DESCRIBE = ("git", "describe", "--tags", "--dirty", "--always", "--abbrev=7")


def _describe() -> Optional[str]:
    here = os.path.dirname(os.path.abspath(__file__))
    try:
        out = subprocess.run(
            _DESCRIBE, cwd=here, capture_output=True, text=True, check=True
        ).stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return None
    return out or None


def pep440_local(desc: str) -> str:
    """`v0.3.0-2-gabc1234-dirty` -> `0.3.0.2.gabc1234.dirty`"""
    desc = re.sub(r"^v(?=\d)", "", desc)
    return re.sub(r"[^A-Za-z0-9]+", ".", desc).strip(".")


def build_version() -> str:
    override = os.getenv("LOCKBOX_VERSION")
    if override:
        return override
    desc = _describe()
    return f"{BASE_VERSION}+{pep440_local(desc)}" if desc else BASE_VERSION


__version__ = build_version()


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version", "BASE_VERSION", "pep440_local"]
