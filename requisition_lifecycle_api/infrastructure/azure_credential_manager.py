from threading import RLock

from azure.identity.aio import DefaultAzureCredential

from shared.utils.logging_config import get_logger

logger = get_logger(__name__)

class AzureCredentialManager:
    """Process-wide holder of the Azure credential shared by table and bus clients."""

    _instance = None
    _lock = RLock()
    _credential = None

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def get_credential(self) -> DefaultAzureCredential:
        """Get shared Azure credential (lazy initialization)."""
        if self._credential is None:
            with self._lock:
                if self._credential is None:
                    logger.info("Initializing shared Azure DefaultAzureCredential")
                    self._credential = DefaultAzureCredential()
        return self._credential

    async def close(self) -> None:
        if self._credential:
            await self._credential.close()
            self._credential = None
            logger.info("Azure DefaultAzureCredential closed")


_credential_manager = AzureCredentialManager()

def get_credential_manager() -> AzureCredentialManager:
    """Get the shared credential manager instance."""
    return _credential_manager
