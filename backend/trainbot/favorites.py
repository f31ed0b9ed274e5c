import json
import logging
import os
import tempfile
import threading
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from trainbot.models import FavoriteRoute

logger = logging.getLogger("trainbot.favorites")

DEFAULT_FAVORITES_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "favorites.json")


def _get_favorites_path() -> str:
    return os.getenv("FAVORITES_PATH", "") or DEFAULT_FAVORITES_PATH


class FavoritesStore:
    """Saved chat queries, persisted as a JSON list."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or _get_favorites_path()
        self._lock = threading.Lock()

    def _read(self) -> list[FavoriteRoute]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return [FavoriteRoute.model_validate(item) for item in raw]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable favorites file {self.path}: {e}")
            return []

    def _write(self, favorites: list[FavoriteRoute]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        payload = [fav.model_dump(mode="json") for fav in favorites]

        # Write beside the target, then rename over it so readers never see half a file
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".favorites-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise

    def list(self) -> list[FavoriteRoute]:
        with self._lock:
            return self._read()

    def get(self, favorite_id: UUID) -> Optional[FavoriteRoute]:
        with self._lock:
            return next((fav for fav in self._read() if fav.id == favorite_id), None)

    def add(self, favorite: FavoriteRoute) -> FavoriteRoute:
        """Save a favorite, replacing any existing entry with the same id."""
        with self._lock:
            favorites = [fav for fav in self._read() if fav.id != favorite.id]
            favorites.append(favorite)
            self._write(favorites)
        logger.info(f"Saved favorite {favorite.name!r} ({favorite.id})")
        return favorite

    def remove(self, favorite_id: UUID) -> bool:
        with self._lock:
            favorites = self._read()
            remaining = [fav for fav in favorites if fav.id != favorite_id]
            if len(remaining) == len(favorites):
                return False
            self._write(remaining)
        logger.info(f"Removed favorite {favorite_id}")
        return True
