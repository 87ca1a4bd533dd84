"""
Configuration for the Drata adapter

Settings live in a TOML file (see configs/drata.toml). The API key itself is
never stored there: [authentication] names the environment variable holding it.
"""

import os
import tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, List


class ConfigurationError(Exception):
    """Raised when the TOML file is malformed or misses required settings"""
    pass


class MissingEnvironmentError(Exception):
    """Raised when an environment variable named by the configuration is not set"""
    pass


@dataclass
class APIConfig:
    """Parsed adapter settings"""
    name: str
    base_url: str
    authentication: Dict[str, Any]
    pagination: Dict[str, Any]
    retries: Dict[str, Any]
    timeout_seconds: float = 30.0
    trigger: Dict[str, Any] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> 'APIConfig':
        api = data['api']
        return cls(
            name=api['name'],
            base_url=api['base_url'],
            timeout_seconds=float(api.get('timeout_seconds', 30.0)),
            authentication=data['authentication'],
            pagination=data['pagination'],
            retries=data['retries'],
            trigger=data.get('trigger', {}),
            logging=data.get('logging', {})
        )

    @property
    def page_size(self) -> int:
        return int(self.pagination.get('page_size', 50))

    @property
    def max_retries(self) -> int:
        return int(self.retries.get('max_attempts', 3))

    @property
    def backoff_factor(self) -> float:
        return float(self.retries.get('backoff_factor', 2.0))


class ConfigLoader:
    """Reads the adapter TOML file and resolves credentials from the environment"""

    # Keys each table must define
    REQUIRED_SECTIONS = {
        'api': ['name', 'base_url'],
        'authentication': ['type'],
        'pagination': ['page_size'],
        'retries': ['max_attempts']
    }

    SUPPORTED_AUTH_TYPES = {'bearer_token'}

    @staticmethod
    def load_toml_config(config_path: Path) -> APIConfig:
        """
        Parse and validate an adapter configuration file

        Args:
            config_path: Location of the TOML file

        Returns:
            APIConfig built from the file

        Raises:
            FileNotFoundError: If config_path does not exist
            ConfigurationError: If the TOML cannot be parsed, a required key is absent,
                or the authentication type is not supported
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            config_data = tomllib.loads(config_path.read_text(encoding='utf-8'))
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {config_path}: {e}") from e

        missing = ConfigLoader.find_missing_items(config_data)
        if missing:
            raise ConfigurationError(f"Missing required configuration items: {', '.join(missing)}")

        auth_type = config_data['authentication']['type']
        if auth_type not in ConfigLoader.SUPPORTED_AUTH_TYPES:
            raise ConfigurationError(f"Unsupported authentication type: {auth_type}")

        return APIConfig.from_mapping(config_data)

    @staticmethod
    def find_missing_items(config_data: Dict[str, Any]) -> List[str]:
        """List every required table or key absent from the parsed TOML"""
        missing: List[str] = []
        for section, keys in ConfigLoader.REQUIRED_SECTIONS.items():
            table = config_data.get(section)
            if table is None:
                missing.append(f"Section [{section}]")
                continue
            missing.extend(f"Key '{key}' in section [{section}]" for key in keys if key not in table)
        return missing

    @staticmethod
    def validate_environment_variables(config: APIConfig) -> bool:
        """
        Check that every '*_env' entry of [authentication] names a set variable

        Raises:
            MissingEnvironmentError: Listing all unset variables
        """
        unset = [
            variable for key, variable in config.authentication.items()
            if key.endswith('_env') and isinstance(variable, str) and not os.getenv(variable)
        ]
        if unset:
            raise MissingEnvironmentError(f"Missing required environment variables: {', '.join(unset)}")
        return True

    @staticmethod
    def get_environment_value(env_var_name: str) -> str:
        value = os.getenv(env_var_name)
        if not value:
            raise MissingEnvironmentError(f"Environment variable '{env_var_name}' is not set")
        return value

    @staticmethod
    def build_credentials(config: APIConfig) -> Dict[str, Any]:
        """
        Resolve the credential mapping used by DrataHTTPClient.authenticate

        Returns:
            Dictionary with 'apiKey' and 'baseUrl'

        Raises:
            ConfigurationError: If [authentication] has neither api_key_env nor api_key
            MissingEnvironmentError: If the named variable is not set
        """
        auth = config.authentication
        if 'api_key_env' in auth:
            api_key = ConfigLoader.get_environment_value(auth['api_key_env'])
        elif 'api_key' in auth:
            api_key = auth['api_key']
        else:
            raise ConfigurationError("Section [authentication] needs 'api_key_env' or 'api_key'")

        return {'apiKey': api_key, 'baseUrl': config.base_url}
