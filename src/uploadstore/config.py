"""Configuration management for uploadstore.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/uploadstore/config.toml
- Linux: ~/.config/uploadstore/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\uploadstore\\config.toml

Credentials are never written to the config file; backends read them
from the environment.
"""

import os
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import tomllib
import tomli_w

PROVIDERS = ("aws", "google", "generic", "memory")

# Default lifetime of a signed URL, in seconds
DEFAULT_URL_EXPIRATION = 600

AssetHost = Union[str, Callable[[Any], str], None]


@dataclass
class StorageConfig:
    """Uploader configuration consumed by the storage adapter.

    Attributes:
        provider: Storage provider (aws, google, generic, memory)
        directory: Bucket name holding all objects
        region: Provider region (None means the provider default)
        endpoint_url: Endpoint for S3-compatible (generic) providers
        public: Whether objects are written world-readable
        use_ssl: Whether public URLs use https
        accelerate: Whether AWS public URLs use the accelerate endpoint
        asset_host: Host (or callable returning one) prepended to public paths
        authenticated_url_expiration: Signed URL lifetime (seconds or timedelta)
        attributes: Custom attributes applied on write and copy
        store_dir: Key prefix for stored files
        cache_dir: Key prefix for cached files
    """

    provider: str = "aws"
    directory: str = "uploads-bucket"
    region: Optional[str] = None
    endpoint_url: str = ""

    public: bool = True
    use_ssl: bool = True
    accelerate: bool = False
    asset_host: AssetHost = None
    authenticated_url_expiration: Union[int, float, timedelta] = DEFAULT_URL_EXPIRATION
    attributes: Dict[str, str] = field(default_factory=dict)

    store_dir: str = "uploads"
    cache_dir: str = "uploads/tmp"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check field values.

        Raises:
            ValueError: If the provider is unknown or the expiration is negative
        """
        if self.provider not in PROVIDERS:
            raise ValueError(
                f"Unknown provider: {self.provider} (expected one of {', '.join(PROVIDERS)})"
            )
        if self.expiration_seconds() <= 0:
            raise ValueError(
                f"authenticated_url_expiration must be positive, got: {self.authenticated_url_expiration}"
            )

    def store_path_for(self, identifier: str) -> str:
        """Get the key a stored file lives at.

        Args:
            identifier: Stored file identifier (usually its filename)

        Returns:
            Key like "uploads/test.jpg"
        """
        return _join_key(self.store_dir, identifier)

    def cache_path_for(self, identifier: str) -> str:
        """Get the key a cached file lives at.

        Args:
            identifier: Cache name, "<cache-id>/<filename>"

        Returns:
            Key like "uploads/tmp/1700000000-42-0001-1234/test.jpg"
        """
        return _join_key(self.cache_dir, identifier)

    def expiration_seconds(self) -> float:
        """Normalize authenticated_url_expiration to seconds."""
        value = self.authenticated_url_expiration
        if isinstance(value, timedelta):
            return value.total_seconds()
        return float(value)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "StorageConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            StorageConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If a loaded value is invalid
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        if "storage" in data:
            storage = data["storage"]
            config.provider = storage.get("provider", config.provider)
            config.directory = storage.get("directory", config.directory)
            config.region = storage.get("region", config.region) or None
            config.endpoint_url = storage.get("endpoint_url", config.endpoint_url)
            config.public = storage.get("public", config.public)
            config.use_ssl = storage.get("use_ssl", config.use_ssl)
            config.accelerate = storage.get("accelerate", config.accelerate)
            config.asset_host = storage.get("asset_host", config.asset_host) or None
            config.authenticated_url_expiration = storage.get(
                "authenticated_url_expiration", config.authenticated_url_expiration
            )

        if "paths" in data:
            config.store_dir = data["paths"].get("store_dir", config.store_dir)
            config.cache_dir = data["paths"].get("cache_dir", config.cache_dir)

        if "attributes" in data:
            config.attributes = {k: str(v) for k, v in data["attributes"].items()}

        # Environment variables take precedence over the file
        env_provider = os.environ.get("UPLOADSTORE_PROVIDER")
        if env_provider:
            config.provider = env_provider

        env_directory = os.environ.get("UPLOADSTORE_DIRECTORY")
        if env_directory:
            config.directory = env_directory

        env_region = os.environ.get("UPLOADSTORE_REGION")
        if env_region:
            config.region = env_region

        env_endpoint = os.environ.get("UPLOADSTORE_ENDPOINT_URL")
        if env_endpoint:
            config.endpoint_url = env_endpoint

        config.validate()
        return config

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        A callable asset_host cannot be serialized and is skipped.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        storage: Dict[str, Any] = {
            "provider": self.provider,
            "directory": self.directory,
            "region": self.region or "",
            "endpoint_url": self.endpoint_url,
            "public": self.public,
            "use_ssl": self.use_ssl,
            "accelerate": self.accelerate,
            "asset_host": self.asset_host if isinstance(self.asset_host, str) else "",
            "authenticated_url_expiration": int(self.expiration_seconds()),
        }
        data = {
            "storage": storage,
            "paths": {"store_dir": self.store_dir, "cache_dir": self.cache_dir},
            "attributes": dict(self.attributes),
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def get(self, key: str, default: Optional[str] = None) -> Any:
        """Get a configuration value by key.

        Accepts both "directory" and the sectioned "storage.directory" form.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        name = key.split(".")[-1]
        if not hasattr(self, name):
            return default
        return getattr(self, name)

    def set(self, key: str, value: str) -> None:
        """Set a configuration value by key, preserving the field's type.

        Args:
            key: Configuration key (e.g. "storage.public")
            value: Configuration value as a string

        Raises:
            ValueError: If the key is unknown or the value is invalid
        """
        name = key.split(".")[-1]
        if name == "attributes" or not hasattr(self, name):
            raise ValueError(f"Invalid config key: {key}")

        current = getattr(self, name)
        if isinstance(current, bool):
            new_value: Any = value.lower() in ("true", "1", "yes")
        elif name == "authenticated_url_expiration":
            try:
                new_value = int(value)
            except ValueError as e:
                raise ValueError(f"{key} must be an integer, got: {value}") from e
        elif name == "region":
            new_value = value or None
        else:
            new_value = value

        previous = current
        setattr(self, name, new_value)
        try:
            self.validate()
        except ValueError:
            setattr(self, name, previous)
            raise


def _join_key(prefix: str, identifier: str) -> str:
    prefix = prefix.strip("/")
    identifier = identifier.lstrip("/")
    if not prefix:
        return identifier
    return f"{prefix}/{identifier}"


APP_DIRNAME = "uploadstore"


def get_config_dir() -> Path:
    """Get the directory holding config.toml and the logs directory.

    UPLOADSTORE_CONFIG_DIR wins when set. Otherwise Windows uses APPDATA
    and every other platform uses XDG_CONFIG_HOME (default ~/.config).

    Returns:
        Path to the config directory for uploadstore.
    """
    override = os.environ.get("UPLOADSTORE_CONFIG_DIR")
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32":
        base = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / APP_DIRNAME


def get_config_path() -> Path:
    """Get the path to the config.toml file."""
    return get_config_dir() / "config.toml"


def get_log_dir() -> Path:
    """Get the default log directory."""
    return get_config_dir() / "logs"


def ensure_config_exists(path: Optional[Path] = None) -> StorageConfig:
    """Load the config file, creating a default one if it is missing.

    Args:
        path: Path to config file (defaults to standard location)

    Returns:
        StorageConfig instance
    """
    config_path = path or get_config_path()

    if config_path.exists():
        return StorageConfig.load(config_path)

    config = StorageConfig()
    config.save(config_path)
    return config
