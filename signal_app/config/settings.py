"""
Typed access to the runtime settings table.

Each setting the engine reads has exactly one accessor here with one
documented default. A missing, unparsable or out-of-range value resolves to
that default, so callers never branch on parse failures.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

import orjson
import structlog

from ..utils.time import parse_time_of_day
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)


class SettingKeys:
    """Keys of the settings table consumed by the signal engine."""
    RECOVERY_TIME = "signal_request_recovery_time"
    MAX_USERS = "max_users_get_signal_request"
    REQUEST_RANGES = "signal_request_ranges"
    ANALYSIS_ROUNDS = "analysis_rounds"
    ANALYSIS_PERCENTAGE = "analysis_percentage"
    MIN_ANALYSIS_COEFFICIENT = "min_analysis_coefficient"
    MAX_ANALYSIS_COEFFICIENT = "max_analysis_coefficient"
    MIN_ISSUING_COEFFICIENT = "min_issuing_coefficient"
    MAX_ISSUING_COEFFICIENT = "max_issuing_coefficient"
    RECEIVE_TIME = "signal_receive_time"
    CONFIRM_TIMEOUT = "signal_confirm_timeout"
    PENDING_MAX_AGE = "pending_signal_max_age"


@dataclass(frozen=True)
class SettingDefaults:
    """Fallback values for every setting."""
    recovery_minutes: int = 1
    max_users: int = 10
    analysis_rounds: int = 15
    analysis_percentage: float = 70.0
    min_analysis_coefficient: float = 1.0
    max_analysis_coefficient: float = 1.5
    min_issuing_coefficient: float = 2.0
    max_issuing_coefficient: float = 3.0
    receive_time_seconds: int = 50
    confirm_timeout_seconds: int = 30
    pending_max_age_seconds: int = 600


DEFAULTS = SettingDefaults()


class SignalSettings:
    """Typed view over a key/value settings source."""

    def __init__(self, source: Any, defaults: SettingDefaults = DEFAULTS):
        self.source = source
        self.defaults = defaults
        self.logger = logger

    def _raw(self, key: str) -> Optional[Any]:
        try:
            return self.source.get(key)
        except Exception as e:
            self.logger.warning("Setting lookup failed, using default", key=key, error=str(e))
            return None

    def _number(self, key: str) -> Optional[float]:
        value = self._raw(key)
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value.strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            self.logger.warning("Unparsable setting, using default", key=key, value=value)
            return None
        return number if math.isfinite(number) else None

    def _int(self, key: str, default: int, minimum: int = 0) -> int:
        number = self._number(key)
        if number is None or int(number) < minimum:
            return default
        return int(number)

    def _float(
        self,
        key: str,
        default: float,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None
    ) -> float:
        number = self._number(key)
        if number is None:
            return default
        if minimum is not None and number < minimum:
            return default
        if maximum is not None and number > maximum:
            return default
        return number

    def _band(
        self,
        low_key: str,
        high_key: str,
        low_default: float,
        high_default: float
    ) -> tuple[float, float]:
        low = self._float(low_key, low_default)
        high = self._float(high_key, high_default)
        if low > high:
            self.logger.warning(
                "Inverted coefficient band, using defaults",
                low_key=low_key, low=low, high_key=high_key, high=high
            )
            return low_default, high_default
        return low, high

    def recovery_minutes(self) -> int:
        """Cooldown after a grant, in minutes. Default 1."""
        return self._int(SettingKeys.RECOVERY_TIME, self.defaults.recovery_minutes)

    def recovery_seconds(self) -> int:
        return self.recovery_minutes() * 60

    def max_users(self) -> int:
        """Signals granted per admission cycle. Default 10."""
        return self._int(SettingKeys.MAX_USERS, self.defaults.max_users, minimum=1)

    def request_ranges(self) -> list[tuple[int, int]]:
        """
        Allowed admission windows as (start, end) minutes after midnight.

        Default: empty, meaning admission is always allowed. A list saved as
        JSON text is decoded first. Entries that do not parse are skipped.
        """
        value = self._raw(SettingKeys.REQUEST_RANGES)
        if value is None:
            return []

        if isinstance(value, str):
            try:
                value = orjson.loads(value)
            except orjson.JSONDecodeError:
                self.logger.warning("Request ranges are not valid JSON, ignoring", value=value)
                return []

        if not isinstance(value, list):
            self.logger.warning("Request ranges are not a list, ignoring", value=value)
            return []

        errors = ConfigValidator.validate_time_ranges(value)
        if errors:
            self.logger.warning(
                "Skipping malformed request ranges",
                errors=[f"{err.field}: {err.message}" for err in errors]
            )

        ranges = []
        for entry in value:
            try:
                ranges.append((
                    parse_time_of_day(entry.get("start")),
                    parse_time_of_day(entry.get("end")),
                ))
            except (AttributeError, ValueError):
                continue
        return ranges

    def analysis_rounds(self) -> int:
        """How many recent rounds the gate and multiplier draw look at. Default 15."""
        return self._int(SettingKeys.ANALYSIS_ROUNDS, self.defaults.analysis_rounds, minimum=1)

    def analysis_percentage(self) -> float:
        """Share of in-band rounds that opens the gate, 0-100. Default 70."""
        return self._float(
            SettingKeys.ANALYSIS_PERCENTAGE, self.defaults.analysis_percentage,
            minimum=0.0, maximum=100.0
        )

    def analysis_band(self) -> tuple[float, float]:
        """Inclusive band counted by the gate. Default 1.0-1.5."""
        return self._band(
            SettingKeys.MIN_ANALYSIS_COEFFICIENT, SettingKeys.MAX_ANALYSIS_COEFFICIENT,
            self.defaults.min_analysis_coefficient, self.defaults.max_analysis_coefficient
        )

    def issuing_band(self) -> tuple[float, float]:
        """Inclusive band a multiplier is drawn from. Default 2.0-3.0."""
        return self._band(
            SettingKeys.MIN_ISSUING_COEFFICIENT, SettingKeys.MAX_ISSUING_COEFFICIENT,
            self.defaults.min_issuing_coefficient, self.defaults.max_issuing_coefficient
        )

    def receive_time_seconds(self) -> int:
        """Pacing delay between "coming soon" and activation. Default 50."""
        return self._int(SettingKeys.RECEIVE_TIME, self.defaults.receive_time_seconds)

    def confirm_timeout_seconds(self) -> int:
        """Lifetime of an ACTIVE signal. Default 30."""
        return self._int(
            SettingKeys.CONFIRM_TIMEOUT, self.defaults.confirm_timeout_seconds, minimum=1
        )

    def pending_max_age_seconds(self) -> int:
        """Lifetime of a PENDING signal. Default 600."""
        return self._int(
            SettingKeys.PENDING_MAX_AGE, self.defaults.pending_max_age_seconds, minimum=1
        )
