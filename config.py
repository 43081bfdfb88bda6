# panicsift/config.py
import os
import json
from typing import Any, Dict, Optional

DEFAULT_SIMILARITY = "pointer"
DEFAULT_POINTER_THRESHOLD = 16 * 1024 * 1024

DEFAULTS: Dict[str, Any] = {
    "similarity": DEFAULT_SIMILARITY,
    "pointer_threshold": DEFAULT_POINTER_THRESHOLD,
    "max_goroutines": 0,
    "hide_stdlib": False,
    "full_path": False,
    "color": True,
    "goroot": None,
    "log_to_file": False,
    "log_file": "~/.panicsift/panicsift.log",
}


class PanicsiftConfigError(Exception):
    """Custom exception for Panicsift configuration errors."""
    pass


class PanicsiftConfig:
    def __init__(self, **kwargs):
        data = dict(DEFAULTS)
        data.update(kwargs)
        data["log_file"] = os.path.expanduser(data["log_file"])
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __getattr__(self, name: str) -> Any:
        if name in self._data:
            return self._data[name]
        raise AttributeError(f"'PanicsiftConfig' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "_data":
            super().__setattr__(name, value)
        else:
            self._data[name] = value

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "PanicsiftConfig":
        """
        Load the config, writing the defaults first if no file exists yet.

        Raises:
            PanicsiftConfigError: if the file can't be read or parsed
        """
        if config_path is None:
            config_path = os.path.join(_ensure_panicsift_dir(), "config.json")
        config_path = os.path.expanduser(config_path)
        if not os.path.exists(config_path):
            cfg = cls()
            cfg.save(config_path)
            return cfg

        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PanicsiftConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(data, dict):
            raise PanicsiftConfigError(f"Config in {config_path} must be a JSON object")
        return cls(**data)

    def save(self, config_path: Optional[str] = None) -> None:
        if config_path is None:
            config_path = os.path.join(_ensure_panicsift_dir(), "config.json")
        config_path = os.path.expanduser(config_path)
        try:
            with open(config_path, "w") as f:
                json.dump(self._data, f, indent=2)
        except OSError as e:
            raise PanicsiftConfigError(f"Failed to save Panicsift config: {e}")


def _ensure_panicsift_dir() -> str:
    """Ensure that ~/.panicsift/ directory exists. Return its path."""
    home = os.path.expanduser("~")
    panicsift_dir = os.path.join(home, ".panicsift")
    os.makedirs(panicsift_dir, exist_ok=True)
    return panicsift_dir
