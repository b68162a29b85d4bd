"""
Configuration management for the Rancher service upgrader.

All settings come from environment variables.
"""

import os
import shlex
from dataclasses import dataclass
from typing import List, Mapping, Optional

from errors import ConfigError

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


@dataclass
class UpgraderConfig:
    """Configuration for a single service upgrade."""

    rancher_url: str
    env_id: str
    service_id: str
    access_key: str
    secret_key: str
    api_version: str = "v1"
    build_tag: str = "latest"
    start_first: bool = False
    finish_upgrade: bool = True
    verify_command: str = ""
    wait_timeout: int = 3600
    check_interval: int = 1
    max_poll_failures: int = 0
    request_timeout: int = 60
    log_file: str = "rancher-upgrade.log"
    report_file: str = ""
    verbose: bool = False

    @property
    def service_url(self) -> str:
        """Rancher API URL of the service being upgraded."""
        return (
            f"{self.rancher_url.rstrip('/')}/{self.api_version}"
            f"/projects/{self.env_id}/services/{self.service_id}"
        )

    @property
    def verify_argv(self) -> List[str]:
        """Verification command split into argv; empty when not configured."""
        return shlex.split(self.verify_command)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "UpgraderConfig":
        """
        Create configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            UpgraderConfig instance

        Raises:
            ConfigError: If a required variable is missing or a value is malformed
        """
        env = os.environ if environ is None else environ

        def get_str(key: str, default: Optional[str] = None) -> str:
            value = env.get(key, "").strip()
            if value:
                return value
            if default is None:
                raise ConfigError(f"{key} is required")
            return default

        def get_bool(key: str, default: bool) -> bool:
            value = env.get(key, "").strip().lower()
            if not value:
                return default
            if value in TRUE_VALUES:
                return True
            if value in FALSE_VALUES:
                return False
            raise ConfigError(f"{key} must be a boolean, got '{value}'")

        def get_int(key: str, default: int, minimum: int = 0) -> int:
            value = env.get(key, "").strip()
            if not value:
                return default
            try:
                number = int(value)
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got '{value}'")
            if number < minimum:
                raise ConfigError(f"{key} must be at least {minimum}, got {number}")
            return number

        verify_command = env.get("UPGRADE_TEST_CMD", "").strip()
        try:
            shlex.split(verify_command)
        except ValueError as e:
            raise ConfigError(f"UPGRADE_TEST_CMD cannot be parsed: {e}")

        return cls(
            rancher_url=get_str("RANCHER_URL"),
            env_id=get_str("RANCHER_ENV_ID"),
            service_id=get_str("RANCHER_SERVICE_ID"),
            access_key=get_str("RANCHER_ACCESS_KEY"),
            secret_key=get_str("RANCHER_SECRET_KEY"),
            api_version=get_str("RANCHER_API_VERSION", "v1"),
            build_tag=get_str("BUILD_TAG", "latest"),
            start_first=get_bool("RANCHER_SERVICE_START_FIRST", False),
            finish_upgrade=get_bool("RANCHER_FINISH_UPGRADE", True),
            verify_command=verify_command,
            wait_timeout=get_int("UPGRADE_WAIT_TIMEOUT", 3600),
            check_interval=get_int("CHECK_INTERVAL", 1, minimum=1),
            max_poll_failures=get_int("POLL_MAX_FAILURES", 0),
            request_timeout=get_int("RANCHER_REQUEST_TIMEOUT", 60),
            log_file=env.get("UPGRADE_LOG_FILE", "rancher-upgrade.log").strip(),
            report_file=env.get("UPGRADE_REPORT_FILE", "").strip(),
            verbose=get_bool("VERBOSE", False),
        )
