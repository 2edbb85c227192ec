import logging
import sys
from typing import Any, Dict, Optional

from .cache_helper import CacheHelper
from .config import Config
from .db import init_db, close_db

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


class SunTimesApp:
    """Wires config, logging, database, geocoding, provider and reconciler together."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = False,
        resolver: Optional[Any] = None,
        provider: Optional[Any] = None,
    ):
        from suntimes.sun_times.geocoding import CoordinateResolver
        from suntimes.sun_times.provider import SunriseSunsetClient
        from suntimes.sun_times.reconcile import SunTimesReconciler

        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._file_handler = None
        self._setup_logging()

        # Initialize database before anything reads or writes records
        init_db(self.config.data)

        self.cache = CacheHelper(self.config.get_section("cache").get("directory"), "geocoding")
        self.resolver = resolver or CoordinateResolver(self.cache, self.config.get_section("geocoding"))
        self.provider = provider or SunriseSunsetClient(self.config.get_section("provider"))
        self.reconciler = SunTimesReconciler(self.resolver, self.provider)

        self.logger.info("Sun times application initialized")

    def _setup_logging(self) -> None:
        """Apply logging.level and optional logging.file from config to the root logger"""
        logging_config = self.config.get_section("logging")
        root_logger = logging.getLogger()
        level_name = str(logging_config.get("level", "INFO")).upper()
        root_logger.setLevel(getattr(logging, level_name, logging.INFO))

        log_file = logging_config.get("file")
        if log_file and self._file_handler is None:
            self._file_handler = logging.FileHandler(log_file)
            self._file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root_logger.addHandler(self._file_handler)

    def handle_config_change(self, new_data: Dict[str, Any]) -> None:
        """Config file changed on disk: re-apply logging settings"""
        self.logger.info("Applying reloaded configuration")
        self._setup_logging()

    def shutdown(self) -> None:
        self.config.cleanup()
        close_db()
        if self._file_handler is not None:
            logging.getLogger().removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None


def setup_basic_logging() -> None:
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")
