"""YAML configuration parser for rolling deploys."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import DeployTargetConfig, RollingDeployConfig


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for rolling deploys.

    Example file::

        target:
          stack_id: 2f18b4cb-...
          layer_id: 0b3c2a1d-...
          app_id: 7a9e...
          percent: 0.25
        aws:
          profile: deploy
          region: us-west-2
        lock:
          host: redis.internal
          port: 6379
        deploy_timeout: 1800
    """

    def __init__(self, config_path: str):
        """Initialize configuration manager.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.settings: Optional[RollingDeployConfig] = None

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.settings = RollingDeployConfig(**self.data)
        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if "target" not in self.data:
            errors.append({"loc": ["target"], "msg": "Required field 'target' is missing"})
            return errors

        try:
            RollingDeployConfig(**self.data)
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": list(error["loc"]), "msg": error["msg"]})

        return errors

    def with_overrides(
        self,
        percent: Optional[float] = None,
        deploy_timeout: Optional[float] = None,
    ) -> RollingDeployConfig:
        """Return the loaded settings with command-line overrides applied.

        Args:
            percent: Batch fraction overriding ``target.percent``
            deploy_timeout: Deploy timeout overriding ``deploy_timeout``

        Returns:
            Validated configuration

        Raises:
            ConfigValidationError: If the overrides are invalid or nothing is loaded
        """
        if self.settings is None:
            raise ConfigValidationError("Configuration has not been loaded")

        data = self.settings.model_dump()
        if percent is not None:
            data["target"]["percent"] = percent
        if deploy_timeout is not None:
            data["deploy_timeout"] = deploy_timeout

        try:
            return RollingDeployConfig(**data)
        except ValidationError as e:
            raise ConfigValidationError(
                "Invalid command-line override",
                [{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()],
            )

    @property
    def target(self) -> DeployTargetConfig:
        """Deploy target of the loaded configuration."""
        if self.settings is None:
            raise ConfigValidationError("Configuration has not been loaded")
        return self.settings.target

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary, hiding secrets.

        Returns:
            Dictionary representation of configuration
        """
        if self.settings is None:
            return {}
        data = self.settings.model_dump()
        if data["aws"].get("secret_access_key"):
            data["aws"]["secret_access_key"] = "********"
        if data.get("lock") and data["lock"].get("password"):
            data["lock"]["password"] = "********"
        return data
