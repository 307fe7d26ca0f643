"""Configuration for scheduled report generation, reaping and export.

Usage
-----
Create a configuration with defaults:

>>> config = ReportingConfig()
>>> config.batch_size
5

Or load from environment variables:

>>> import os
>>> os.environ["ALMANAC_BATCH_SIZE"] = "10"
>>> ReportingConfig.from_env().batch_size
10

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os
from pathlib import Path

_DEFAULT_ARTIFACT_PATH = Path("var/almanac/artifacts")


@dc.dataclass(frozen=True, slots=True)
class ReportingConfig:
    """Tunables for the report lifecycle.

    Attributes
    ----------
    batch_size
        Users processed concurrently per scheduler batch. Batches run one
        after another, bounding load on the content generator. Default 5.
    stuck_threshold
        Age after which a ``generating`` report is considered stuck.
        Default 30 minutes.
    invocation_timeout
        Overall time limit for one scheduler or reaper invocation. Work still
        in flight is abandoned and left for the reaper. Default 300 seconds.
    export_url_ttl
        Lifetime of signed export download URLs. Default 24 hours.
    artifact_path
        Directory the filesystem artifact store writes exports to.
    artifact_base_url
        Public base URL that signed artifact links are built on.
    artifact_signing_key
        Secret used to sign artifact URLs. Must be set outside tests.
    gateway_signing_key
        Secret shared with the API gateway to verify forwarded callers.
        Without it the export endpoint rejects every request.
    report_generator
        Content generator backend name. Default ``mock``.

    """

    batch_size: int = 5
    stuck_threshold: dt.timedelta = dt.timedelta(minutes=30)
    invocation_timeout: dt.timedelta = dt.timedelta(seconds=300)
    export_url_ttl: dt.timedelta = dt.timedelta(hours=24)
    artifact_path: Path = _DEFAULT_ARTIFACT_PATH
    artifact_base_url: str = "http://localhost:8080"
    artifact_signing_key: str | None = None
    gateway_signing_key: str | None = None
    report_generator: str = "mock"

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _read_str(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "").strip()
        return raw or None

    @classmethod
    def from_env(cls) -> ReportingConfig:
        """Create configuration from ``ALMANAC_*`` environment variables.

        Reads:

        - ``ALMANAC_BATCH_SIZE``
        - ``ALMANAC_STUCK_THRESHOLD_MINUTES``
        - ``ALMANAC_INVOCATION_TIMEOUT_SECONDS``
        - ``ALMANAC_EXPORT_URL_TTL_HOURS``
        - ``ALMANAC_ARTIFACT_PATH``
        - ``ALMANAC_ARTIFACT_BASE_URL``
        - ``ALMANAC_ARTIFACT_SIGNING_KEY``
        - ``ALMANAC_GATEWAY_SIGNING_KEY``
        - ``ALMANAC_REPORT_GENERATOR``

        Numeric values must be positive integers.

        Raises
        ------
        ValueError
            If a numeric variable is not a positive integer.

        """
        defaults = cls()
        stuck_minutes = cls._parse_positive_int(
            "ALMANAC_STUCK_THRESHOLD_MINUTES",
            int(defaults.stuck_threshold.total_seconds() // 60),
        )
        timeout_seconds = cls._parse_positive_int(
            "ALMANAC_INVOCATION_TIMEOUT_SECONDS",
            int(defaults.invocation_timeout.total_seconds()),
        )
        ttl_hours = cls._parse_positive_int(
            "ALMANAC_EXPORT_URL_TTL_HOURS",
            int(defaults.export_url_ttl.total_seconds() // 3600),
        )
        artifact_path = cls._read_str("ALMANAC_ARTIFACT_PATH")
        return cls(
            batch_size=cls._parse_positive_int("ALMANAC_BATCH_SIZE", defaults.batch_size),
            stuck_threshold=dt.timedelta(minutes=stuck_minutes),
            invocation_timeout=dt.timedelta(seconds=timeout_seconds),
            export_url_ttl=dt.timedelta(hours=ttl_hours),
            artifact_path=(
                Path(artifact_path) if artifact_path else defaults.artifact_path
            ),
            artifact_base_url=(
                cls._read_str("ALMANAC_ARTIFACT_BASE_URL") or defaults.artifact_base_url
            ),
            artifact_signing_key=cls._read_str("ALMANAC_ARTIFACT_SIGNING_KEY"),
            gateway_signing_key=cls._read_str("ALMANAC_GATEWAY_SIGNING_KEY"),
            report_generator=(
                cls._read_str("ALMANAC_REPORT_GENERATOR") or defaults.report_generator
            ).lower(),
        )
