"""Configuration validation utilities."""

import logging
from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..utils.time import parse_time_of_day


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_scheduler_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate scheduler parameters."""
        errors = []

        for name in ("admission_interval_seconds", "expiry_interval_seconds", "lock_lease_seconds"):
            if name in params:
                value = params[name]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        if "timezone" in params:
            value = params["timezone"]
            try:
                ZoneInfo(str(value))
            except (ZoneInfoNotFoundError, ValueError):
                errors.append(ValidationError(
                    field="timezone",
                    message="Must be an IANA timezone name",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_activation_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate activation parameters."""
        errors = []

        if "poll_interval_seconds" in params:
            value = params["poll_interval_seconds"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(ValidationError(
                    field="poll_interval_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        if "max_wait_seconds" in params:
            value = params["max_wait_seconds"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors.append(ValidationError(
                    field="max_wait_seconds",
                    message="Must be a non-negative number",
                    value=value
                ))

        if "max_workers" in params:
            value = params["max_workers"]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                errors.append(ValidationError(
                    field="max_workers",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_time_ranges(ranges: Any) -> list[ValidationError]:
        """Validate a signal_request_ranges value."""
        if not isinstance(ranges, list):
            return [ValidationError(
                field="signal_request_ranges",
                message="Must be a list of {start, end} objects",
                value=ranges
            )]

        errors = []
        for index, entry in enumerate(ranges):
            if not isinstance(entry, dict):
                errors.append(ValidationError(
                    field=f"signal_request_ranges[{index}]",
                    message="Must be an object with start and end",
                    value=entry
                ))
                continue

            for bound in ("start", "end"):
                try:
                    parse_time_of_day(entry.get(bound))
                except ValueError:
                    errors.append(ValidationError(
                        field=f"signal_request_ranges[{index}].{bound}",
                        message="Must be a HH:MM time of day",
                        value=entry.get(bound)
                    ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate logging parameters."""
        if "level" not in params:
            return []

        value = params["level"]
        if not isinstance(value, str) or not isinstance(logging.getLevelName(value.upper()), int):
            return [ValidationError(
                field="level",
                message="Must be a logging level name",
                value=value
            )]
        return []

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "scheduler" in config:
            errors.extend(ConfigValidator.validate_scheduler_params(config["scheduler"]))

        if "activation" in config:
            errors.extend(ConfigValidator.validate_activation_params(config["activation"]))

        if "logging" in config:
            errors.extend(ConfigValidator.validate_logging_params(config["logging"]))

        return errors
