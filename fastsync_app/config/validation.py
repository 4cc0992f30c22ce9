"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any

from ..models.goals import PredefinedFastingGoals
from .defaults import get_default_config

SUPPORTED_TRANSPORTS = ("file", "loopback")
SUPPORTED_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_unknown_keys(section: str, params: dict[str, Any]) -> list[ValidationError]:
        """Reject keys that the section's dataclass does not define."""
        defaults = getattr(get_default_config(), section, None)
        if defaults is None:
            return [ValidationError(field=section, message="Unknown configuration section", value=params)]

        known = set(defaults.__dataclass_fields__)
        return [
            ValidationError(field=f"{section}.{key}", message="Unknown parameter", value=params[key])
            for key in params if key not in known
        ]

    @staticmethod
    def validate_store_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate store parameters."""
        errors = []

        if "db_path" in params:
            value = params["db_path"]
            if not isinstance(value, str) or not value or value == ":memory:":
                errors.append(ValidationError(
                    field="db_path",
                    message="Must be a non-empty file path",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_sync_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate sync parameters."""
        errors = []

        if "enabled" in params and not isinstance(params["enabled"], bool):
            errors.append(ValidationError(
                field="enabled",
                message="Must be a boolean",
                value=params["enabled"]
            ))

        if "path" in params:
            value = params["path"]
            if not isinstance(value, str) or not value.startswith("/"):
                errors.append(ValidationError(
                    field="path",
                    message="Must be a logical path starting with '/'",
                    value=value
                ))

        if "transport" in params and params["transport"] not in SUPPORTED_TRANSPORTS:
            errors.append(ValidationError(
                field="transport",
                message=f"Must be one of {', '.join(SUPPORTED_TRANSPORTS)}",
                value=params["transport"]
            ))

        for key in ("spool_dir", "device_id"):
            if key in params:
                value = params[key]
                if not isinstance(value, str) or not value:
                    errors.append(ValidationError(
                        field=key,
                        message="Must be a non-empty string",
                        value=value
                    ))

        if "poll_interval_ms" in params and not _is_positive_int(params["poll_interval_ms"]):
            errors.append(ValidationError(
                field="poll_interval_ms",
                message="Must be a positive integer",
                value=params["poll_interval_ms"]
            ))

        return errors

    @staticmethod
    def validate_ticker_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate ticker parameters."""
        errors = []

        if "interval_ms" in params and not _is_positive_int(params["interval_ms"]):
            errors.append(ValidationError(
                field="interval_ms",
                message="Must be a positive integer",
                value=params["interval_ms"]
            ))

        return errors

    @staticmethod
    def validate_goal_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate goal parameters."""
        errors = []

        if "default_goal_id" in params:
            value = params["default_goal_id"]
            if not PredefinedFastingGoals.is_known(value):
                errors.append(ValidationError(
                    field="default_goal_id",
                    message="Must be a predefined goal id",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate logging parameters."""
        errors = []

        if "level" in params:
            value = params["level"]
            if not isinstance(value, str) or value.upper() not in SUPPORTED_LOG_LEVELS:
                errors.append(ValidationError(
                    field="level",
                    message=f"Must be one of {', '.join(SUPPORTED_LOG_LEVELS)}",
                    value=value
                ))

        if "format_json" in params and not isinstance(params["format_json"], bool):
            errors.append(ValidationError(
                field="format_json",
                message="Must be a boolean",
                value=params["format_json"]
            ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []
        section_validators = {
            "store": ConfigValidator.validate_store_params,
            "sync": ConfigValidator.validate_sync_params,
            "ticker": ConfigValidator.validate_ticker_params,
            "goals": ConfigValidator.validate_goal_params,
            "logging": ConfigValidator.validate_logging_params,
        }

        for section, params in config.items():
            if not isinstance(params, dict):
                errors.append(ValidationError(
                    field=section,
                    message="Section must be a mapping",
                    value=params
                ))
                continue

            errors.extend(ConfigValidator.validate_unknown_keys(section, params))
            validator = section_validators.get(section)
            if validator is not None:
                errors.extend(validator(params))

        return errors
