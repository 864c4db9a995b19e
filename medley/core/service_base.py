# medley/core/service_base.py
"""
Lifecycle shared by generative backends.

A backend builds its client lazily on first use, so sessions can be
created without credentials and the opening turn simply falls back.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, TypeVar, Generic
import logging
from medley.core.exceptions import ServiceError, ConfigurationError

ConfigType = TypeVar('ConfigType')


class BaseService(ABC, Generic[ConfigType]):
    """Lazy client creation, status reporting and shutdown for a backend"""

    def __init__(self, config: ConfigType, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.service_name = self.__class__.__name__
        self._client: Any = None

    @abstractmethod
    async def _initialize_client(self) -> Any:
        """Build the client; config is validated before this runs"""

    def _validate_config(self) -> None:
        """
        Raises:
            ConfigurationError: If the backend cannot be used with this config
        """

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self) -> None:
        """Create the client once; later calls return immediately"""
        if self.is_initialized:
            return

        self._validate_config()
        try:
            self._client = await self._initialize_client()
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to initialize {self.service_name}", exc_info=True)
            raise ServiceError(
                message=f"Failed to initialize {self.service_name}",
                service_name=self.service_name,
                operation="initialize",
                original_error=e
            )

        self.logger.info(f"{self.service_name} ready")

    async def ensure_initialized(self) -> None:
        await self.initialize()

    @property
    def client(self) -> Any:
        if self._client is None:
            raise ServiceError(
                message=f"{self.service_name} is not initialized",
                service_name=self.service_name
            )
        return self._client

    def status(self) -> Dict[str, Any]:
        """Cheap status for /health, no network round trip"""
        return {"service": self.service_name, "initialized": self.is_initialized}

    async def shutdown(self) -> None:
        if self._client is None:
            return

        try:
            await self._cleanup()
        except Exception:
            self.logger.error(f"Error during {self.service_name} shutdown", exc_info=True)
        finally:
            self._client = None

        self.logger.info(f"{self.service_name} shut down")

    async def _cleanup(self) -> None:
        """Release the client's connections"""
