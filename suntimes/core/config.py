import yaml
from pathlib import Path
import os
from typing import Any, Dict, Optional, List, Callable
import logging
import time
import re
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileModifiedEvent

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "path": "~/.suntimes/suntimes.db",
    },
    "cache": {
        "directory": "~/.suntimes/cache",
    },
    "logging": {
        "level": "INFO",
    },
    "api": {
        "host": "127.0.0.1",
        "port": 8000,
        "cors_origins": [],
    },
    "provider": {
        "base_url": "https://api.sunrisesunset.io",
        "timeout": 15,
        "user_agent": "SunTimes/1.0",
    },
    "geocoding": {
        "user_agent": "suntimes/1.0",
        "timeout": 10,
        "cache_days": 30,
    },
}


class ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, config):
        self.config = config
        self.last_modified = 0
        self.cooldown = 1.0  # seconds

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return

        current_time = time.time()
        if current_time - self.last_modified < self.cooldown:
            return

        if event.src_path == str(self.config.config_file):
            self.last_modified = current_time
            self.config.reload()


class Config:
    def __init__(self, config_path: Optional[str] = None, watch: bool = False):
        logger.debug("Initializing Config class")

        self.change_callbacks: List[Callable] = []
        self._loading = False
        self.observer = None

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path.cwd()
            self.config_file = self.config_dir / "config.yaml"

        logger.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._ensure_config_exists()
        self._load_config()

        if watch:
            self.observer = Observer()
            logger.info(f"Path monitored for reloading: {self.config_dir}")
            self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()

    def register_change_callback(self, callback: Callable) -> None:
        """Register a callback to be called with the new data when config changes"""
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Reload config and notify listeners"""
        if self._loading:
            return

        self._loading = True
        try:
            logger.info("Config file change detected - reloading configuration")

            # Wait briefly for file to be fully written
            time.sleep(0.1)

            old_config = dict(self.data)
            self._load_config()
            self._log_config_changes(old_config, self.data)

            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logger.error(f"Error in config change callback: {e}", exc_info=True)
        finally:
            self._loading = False

    @staticmethod
    def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
        """{'api': {'port': 1}} -> {'api.port': 1}"""
        flat: Dict[str, Any] = {}
        for key, value in data.items():
            dotted = f"{prefix}{key}"
            if isinstance(value, dict):
                flat.update(Config._flatten(value, f"{dotted}."))
            else:
                flat[dotted] = value
        return flat

    def _log_config_changes(self, old_config: Dict, new_config: Dict) -> None:
        """Log added, removed and changed settings as dotted keys"""
        old_flat, new_flat = self._flatten(old_config), self._flatten(new_config)
        for key in sorted(old_flat.keys() | new_flat.keys()):
            if key not in new_flat:
                logger.info(f"Config removed: {key}")
            elif key not in old_flat:
                logger.info(f"Config added: {key}")
            elif old_flat[key] != new_flat[key]:
                logger.info(f"Config changed: {key}: {old_flat[key]} -> {new_flat[key]}")

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if self.config_file.exists():
            return
        if not self.config_dir.exists():
            logger.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)
        logger.info(f"Creating default config file: {self.config_file}")
        self.config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))

    def _load_env_file(self) -> None:
        """Load environment variables from a .env file next to the config or in cwd"""
        env_files = [
            self.config_dir / ".env",
            Path.cwd() / ".env",
        ]

        env_file = next((path for path in env_files if path.exists()), None)
        if not env_file:
            logger.debug("No .env file found, skipping environment variable loading")
            return

        logger.info(f"Loading environment variables from: {env_file}")
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue

                match = re.match(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$', line)
                if match:
                    key, value = match.groups()
                    value = value.strip('"').strip("'")
                    # Real environment wins over .env
                    if key not in os.environ:
                        os.environ[key] = value
                        logger.debug(f"Loaded env var: {key}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR} / $VAR references in config data"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith('$') and not data.startswith('${') and len(data) > 1:
                return os.environ.get(data[1:], data)
            return re.sub(
                r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}',
                lambda m: os.environ.get(m.group(1), m.group(0)),
                data,
            )
        return data

    def _merge_defaults(self, data: Dict[str, Any]) -> Dict[str, Any]:
        merged = {}
        for section, defaults in DEFAULT_CONFIG.items():
            merged[section] = dict(defaults)
            merged[section].update(data.get(section) or {})
        for section, value in data.items():
            if section not in merged:
                merged[section] = value
        return merged

    def _load_config(self) -> None:
        """Load configuration from file"""
        try:
            logger.debug(f"Loading config from: {self.config_file}")
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f) or {}

            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")

            self.data = self._substitute_env_vars(self._merge_defaults(new_data))
            logger.debug(f"Loaded config data: {self.data}")

        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}")
            if hasattr(self, 'data'):
                logger.info("Keeping previous configuration")
            else:
                logger.info("Using default configuration")
                self.data = self._substitute_env_vars(self._merge_defaults({}))

        log_file = self.data["logging"].get("file")
        if log_file:
            self.data["logging"]["file"] = os.path.expanduser(log_file)

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return one top-level section (e.g. 'provider'), empty dict if absent"""
        section = self.data.get(name)
        return section if isinstance(section, dict) else {}
