from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

PREFERENCE_DEFAULTS: Dict[str, str] = {"theme": "light", "language": "id"}
PREFERENCE_CHOICES: Dict[str, tuple[str, ...]] = {
    "theme": ("light", "dark"),
    "language": ("id", "en"),
}


class SessionStore(ABC):
    """Token and UI preference provider.

    Login lives elsewhere; this core only reads the bearer token and clears it
    when the server rejects it.
    """

    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Return the current bearer token, if any."""

    @abstractmethod
    def set_token(self, token: str) -> None:
        """Store a bearer token."""

    @abstractmethod
    def clear_token(self) -> None:
        """Forget the bearer token."""

    @abstractmethod
    def _load_preferences(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _save_preferences(self, prefs: Dict[str, str]) -> None:
        pass

    def get_preference(self, name: str) -> str:
        if name not in PREFERENCE_DEFAULTS:
            raise KeyError(name)
        return self._load_preferences().get(name, PREFERENCE_DEFAULTS[name])

    def set_preference(self, name: str, value: str) -> None:
        choices = PREFERENCE_CHOICES.get(name)
        if choices is None:
            raise KeyError(name)
        if value not in choices:
            raise ValueError(f"{name} must be one of {list(choices)}")
        prefs = self._load_preferences()
        prefs[name] = value
        self._save_preferences(prefs)


class InMemorySessionStore(SessionStore):
    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token
        self._prefs: Dict[str, str] = {}

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None

    def _load_preferences(self) -> Dict[str, str]:
        return dict(self._prefs)

    def _save_preferences(self, prefs: Dict[str, str]) -> None:
        self._prefs = dict(prefs)


class JsonFileSessionStore(SessionStore):
    """Session persisted as a small JSON object: {"token": ..., "preferences": {...}}."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("session file %s is not valid JSON; starting from an empty session", self.path)
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _write(self, data: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, sort_keys=True, indent=2) + "\n", encoding="utf-8")

    def get_token(self) -> Optional[str]:
        token = self._read().get("token")
        return token if isinstance(token, str) and token else None

    def set_token(self, token: str) -> None:
        data = self._read()
        data["token"] = token
        self._write(data)

    def clear_token(self) -> None:
        data = self._read()
        if data.pop("token", None) is not None:
            self._write(data)

    def _load_preferences(self) -> Dict[str, str]:
        prefs = self._read().get("preferences")
        if not isinstance(prefs, dict):
            return {}
        return {str(k): str(v) for k, v in prefs.items()}

    def _save_preferences(self, prefs: Dict[str, str]) -> None:
        data = self._read()
        data["preferences"] = prefs
        self._write(data)
