"""Locally saved Agora credentials.

The viewer remembers the last app id and certificate it joined with. Values
resolve in one order for both entries: saved file, then the environment
defaults from settings, then an empty string.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Dict

from ..core.config import settings

APP_ID_KEY = "agora_app_id"
APP_CERTIFICATE_KEY = "agora_app_certificate"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoredCredentials:
    app_id: str
    app_certificate: str


class CredentialStore:
    """JSON file holding the two credential entries."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else Path(settings.credentials_path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoredCredentials:
        """Return saved credentials, falling back to environment defaults."""

        with self._lock:
            saved = self._read()

        app_id = (saved.get(APP_ID_KEY) or settings.agora_app_id or "").strip()
        certificate = (saved.get(APP_CERTIFICATE_KEY) or settings.agora_app_certificate or "").strip()
        return StoredCredentials(app_id=app_id, app_certificate=certificate)

    def save(self, app_id: str, app_certificate: str | None = None) -> None:
        """Persist the app id, and the certificate when one is given."""

        with self._lock:
            saved = self._read()
            saved[APP_ID_KEY] = app_id.strip()
            if app_certificate:
                saved[APP_CERTIFICATE_KEY] = app_certificate.strip()
            self._write(saved)
        logger.debug("Saved Agora credentials to %s", self._path)

    def _read(self) -> Dict[str, str]:
        try:
            with open(self._path, "r", encoding="utf-8") as fp:
                data = json.load(fp)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.debug("Failed to read %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as fp:
            json.dump(data, fp, indent=2)


credential_store = CredentialStore()
