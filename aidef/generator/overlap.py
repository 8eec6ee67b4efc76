"""
File overlap registry.

Every output path may be claimed by exactly one leaf per build. Claims are
checked and recorded under a lock so two leaves racing for the same path
produce exactly one winner.
"""

import logging
import threading
from typing import Dict, Optional

from aidef.errors import FileOverlapError

logger = logging.getLogger(__name__)


class FileOverlapRegistry:
    """Tracks which leaf claimed each output path during one build."""

    def __init__(self):
        self._claims: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, path: str, claimant: str) -> None:
        """
        Claim ``path`` for the leaf ``claimant``.

        Raises:
            FileOverlapError: If the path was already claimed in this build
        """
        with self._lock:
            existing = self._claims.get(path)
            if existing is not None:
                logger.error(f"File overlap on {path}: {existing} and {claimant}")
                raise FileOverlapError(path, existing, claimant)
            self._claims[path] = claimant

    def claimant(self, path: str) -> Optional[str]:
        with self._lock:
            return self._claims.get(path)

    def reset(self) -> None:
        """Forget all claims; call once at the start of each build."""
        with self._lock:
            self._claims.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)
