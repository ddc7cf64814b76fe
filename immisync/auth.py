from pathlib import Path

from loguru import logger

from immisync.config import DATA_DIR
from immisync.errors import ConfigError
from immisync.immich_api import ImmichClient


class AuthManager:
    """
    Resolves the server URL and API key, and checks them against the server.
    The key comes from the config (or IMMICH_API_KEY), else from data/api_key.
    """

    def __init__(self, config: dict, key_file: Path = None):
        self.config = config
        self.key_file = key_file or DATA_DIR / "api_key"
        self.client = None

    def api_key(self) -> str:
        key = self.config.get("api_key") or ""
        if not key and self.key_file.exists():
            key = self.key_file.read_text(encoding="utf-8").strip()
        if not key:
            raise ConfigError(
                f"no API key: set 'api_key' in the config, IMMICH_API_KEY, or write it to {self.key_file}"
            )
        return key

    def authenticate(self) -> ImmichClient:
        """
        Build the client and make sure the key is accepted.
        """
        server = self.config.get("server")
        if not server:
            raise ConfigError("no server URL: set 'server' in the config or IMMICH_URL")

        client = ImmichClient(server, self.api_key())
        user = client.get_current_user()
        logger.info("Connected to {} as {}", server, user.get("email", "?"))
        self.client = client
        return client
