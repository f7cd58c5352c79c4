"""Configuration validation for personal-server CLI."""

from typing import Any, Dict, List

import jsonschema

from .schemas import CONFIG_SCHEMA


class ConfigValidator:
    """Validates personal-server configuration files."""

    def validate(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate a loaded configuration.

        Args:
            config: Configuration dictionary to validate

        Returns:
            List[str]: List of validation errors (empty if valid)
        """
        errors = []

        validator = jsonschema.Draft7Validator(CONFIG_SCHEMA)
        for error in sorted(validator.iter_errors(config), key=lambda e: [str(part) for part in e.path]):
            location = ".".join(str(part) for part in error.path)
            if location:
                errors.append(f"{location}: {error.message}")
            else:
                errors.append(error.message)

        # Module names must be unique, lookups are by name
        seen = set()
        for module in config.get("modules") or []:
            name = module.get("name") if isinstance(module, dict) else None
            if name in seen:
                errors.append(f"modules: duplicate module name '{name}'")
            seen.add(name)

        return errors
