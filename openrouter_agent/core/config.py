"""
Credential store for the OpenRouter API key and default model.

Values are kept encrypted in ~/.openrouter-agent/config/ and are shared by
every session on the machine. Environment variables always win.
"""

import json
import logging
import os
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENROUTER_API_KEY"
MODEL_ENV = "OPENROUTER_MODEL"

KNOWN_KEYS = {
    API_KEY_ENV: "OpenRouter API key",
    MODEL_ENV: "Default OpenRouter model id",
}


class ConfigManager:
    """
    Encrypted key/value store.

    Directory structure:
        ~/.openrouter-agent/config/.key     # Encryption key
        ~/.openrouter-agent/config/keys.enc # Encrypted values
    """

    def __init__(self, base_dir: Path | None = None):
        if base_dir is None:
            base_dir = Path.home() / ".openrouter-agent" / "config"

        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._fernet = self._get_fernet()
        self._cache: dict[str, str] | None = None

    def _get_fernet(self) -> Fernet:
        """Get or create the encryption key."""
        key_file = self.base_dir / ".key"

        if key_file.exists():
            key = key_file.read_bytes()
        else:
            key = Fernet.generate_key()
            key_file.write_bytes(key)
            try:
                key_file.chmod(0o600)
            except OSError:
                logger.debug("Could not restrict permissions on %s", key_file)

        return Fernet(key)

    def _keys_path(self) -> Path:
        return self.base_dir / "keys.enc"

    def _load_keys(self) -> dict[str, str]:
        """Load and decrypt stored values; an unreadable store counts as empty."""
        if self._cache is not None:
            return self._cache

        path = self._keys_path()
        if not path.exists():
            self._cache = {}
            return self._cache

        try:
            keys = json.loads(self._fernet.decrypt(path.read_bytes()))
        except (InvalidToken, json.JSONDecodeError):
            logger.warning("Stored config at %s could not be decrypted; ignoring it", path)
            keys = {}

        self._cache = keys
        return keys

    def _save_keys(self, keys: dict[str, str]) -> None:
        encrypted = self._fernet.encrypt(json.dumps(keys).encode())
        path = self._keys_path()
        path.write_bytes(encrypted)
        try:
            path.chmod(0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", path)
        self._cache = keys

    def get(self, name: str) -> str | None:
        """
        Get a config value.

        Checks the environment first, then the stored config.
        """
        if name in os.environ:
            return os.environ[name]
        return self._load_keys().get(name)

    def set(self, name: str, value: str) -> None:
        keys = dict(self._load_keys())
        keys[name] = value
        self._save_keys(keys)

    def delete(self, name: str) -> bool:
        """
        Delete a stored value.

        Returns:
            True if deleted, False if not found
        """
        keys = dict(self._load_keys())
        if name not in keys:
            return False
        del keys[name]
        self._save_keys(keys)
        return True

    def list_keys(self) -> list[str]:
        """List all stored key names, sorted."""
        return sorted(self._load_keys())

    def is_env_override(self, name: str) -> bool:
        """True when the environment shadows a different stored value."""
        stored = self._load_keys().get(name)
        return stored is not None and name in os.environ and os.environ[name] != stored

    def load_into_environment(self) -> int:
        """
        Export stored values that aren't already in the environment.

        Returns:
            Number of variables set
        """
        loaded = 0
        for name, value in self._load_keys().items():
            if name not in os.environ:
                os.environ[name] = value
                loaded += 1
        return loaded


_config_manager: ConfigManager | None = None


def get_config_manager() -> ConfigManager:
    """Get the global config manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
