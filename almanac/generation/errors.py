"""Custom exceptions for content generator configuration."""

from __future__ import annotations


class ReportGeneratorConfigError(ValueError):
    """Raised when the configured content generator backend is unusable."""

    @classmethod
    def invalid_backend(cls, backend: str, valid: frozenset[str]) -> ReportGeneratorConfigError:
        """Create an error for an unknown backend name.

        Parameters
        ----------
        backend
            The rejected value of ``ALMANAC_REPORT_GENERATOR``.
        valid
            Backend names that are accepted.

        """
        choices = ", ".join(sorted(valid))
        msg = (
            f"ALMANAC_REPORT_GENERATOR must be one of: {choices}; got {backend!r}"
        )
        return cls(msg)
