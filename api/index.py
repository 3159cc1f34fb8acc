"""Vercel serverless entrypoint for the gallery delivery API.

Vercel loads this file directly, without installing the package, so the
``src`` layout is put on the import path first.
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gallery_delivery.api.asgi import app  # noqa: E402

__all__ = ["app"]
