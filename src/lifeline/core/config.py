"""Configuration management"""

import logging
from typing import Any, Dict, List, Optional

import yaml

from lifeline.core.env import EnvManager
from lifeline.transport.base import HostIdentity
from lifeline.transport.connection import DEFAULT_CONNECTION_PREFERENCE
from lifeline.transport.errors import ConfigError

logger = logging.getLogger(__name__)

IDENTITY_KEYS = ("vmhostname", "ip", "hostname")


class Config:
    """Host connection settings loaded from a YAML file

    Example::

        host:
          vmhostname: vm-0142
          ip: 10.20.0.14
          hostname: build-01.example.com
        user: root
        ssh:
          key_file: ~/.ssh/id_ed25519
          password: ${SSH_PASSWORD:-}
          strict_host_key_checking: false
        ssh_connection_preference: [vmhostname, ip, hostname]
        options:
          max_connection_tries: 5
          silent: false
    """

    def __init__(self, config_file: str, env_files: Optional[List[str]] = None):
        """Load configuration from YAML file

        Args:
            config_file: Path to configuration YAML file
            env_files: List of environment files to load before expansion
        """
        self.config_file = config_file
        self.data: Dict[str, Any] = {}
        self.env_manager = EnvManager()
        if env_files:
            self.env_manager.env.update(self.env_manager.load_files(env_files))
        self.load()

    def load(self) -> None:
        """Load configuration from file and apply environment variable expansion

        Raises:
            ConfigError: If the file is missing, unparsable or references an unset required variable
        """
        try:
            with open(self.config_file, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            logger.error(f"Configuration file not found: {self.config_file}")
            raise ConfigError(f"Configuration file not found: {self.config_file}") from e
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse configuration file: {e}")
            raise ConfigError(f"Failed to parse configuration file {self.config_file}: {e}") from e

        if not isinstance(self.data, dict):
            raise ConfigError(f"Configuration file {self.config_file} must contain a mapping")
        logger.info(f"Loaded configuration from {self.config_file}")

        self._load_env_config()
        try:
            self.data = EnvManager.expand(self.data, self.env_manager.env)
        except ValueError as e:
            logger.error(f"Environment variable expansion failed: {e}")
            raise ConfigError(str(e)) from e

    def _load_env_config(self) -> None:
        """Load environment variables from env_from and env properties in config"""
        env_from_paths = self.data.get("env_from", [])
        if isinstance(env_from_paths, str):
            env_from_paths = [env_from_paths]
        self.env_manager.env.update(self.env_manager.load_files(env_from_paths))

        env_direct = self.data.get("env", {})
        if isinstance(env_direct, list):
            env_direct = dict(item.split("=", 1) for item in env_direct if "=" in item)
        if env_direct:
            self.env_manager.env.update({key: str(value) for key, value in env_direct.items()})
            logger.debug(f"Loaded {len(env_direct)} direct environment variables")

    @property
    def identity(self) -> HostIdentity:
        """Host identity with user, port and SSH options merged in"""
        host = self.data.get("host") or {}
        if isinstance(host, str):
            host = {"hostname": host}

        ssh_options = dict(self.data.get("ssh") or {})
        port = self.data.get("port", ssh_options.get("port", 22))
        ssh_options["port"] = port

        return HostIdentity(
            vmhostname=host.get("vmhostname"),
            ip=host.get("ip"),
            hostname=host.get("hostname"),
            user=self.data.get("user", "root"),
            port=port,
            ssh_options=ssh_options,
        )

    @property
    def preference(self) -> List[str]:
        """Order in which identity methods are tried"""
        preference = self.data.get("ssh_connection_preference")
        if not preference:
            return list(DEFAULT_CONNECTION_PREFERENCE)
        if isinstance(preference, str):
            preference = [item.strip() for item in preference.split(",")]
        return list(preference)

    @property
    def options(self) -> Dict[str, Any]:
        """Connection options (max_connection_tries, silent, pty, ...)"""
        return dict(self.data.get("options") or {})

    def validate(self) -> bool:
        """Validate configuration

        Returns:
            True if configuration is valid
        """
        host = self.data.get("host")
        if isinstance(host, str):
            host = {"hostname": host}
        if not host or not any(host.get(key) for key in IDENTITY_KEYS):
            logger.error(f"No host address specified (expected one of: {', '.join(IDENTITY_KEYS)})")
            return False

        if not all(isinstance(method, str) for method in self.preference):
            logger.error("ssh_connection_preference must be a list of method names")
            return False

        max_tries = self.options.get("max_connection_tries")
        if max_tries is not None and (not isinstance(max_tries, int) or max_tries < 1):
            logger.error("options.max_connection_tries must be a positive integer")
            return False

        return True
