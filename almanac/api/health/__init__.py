"""Health check resources for liveness and readiness checks.

Usage
-----
Import health resources for route registration::

    from almanac.api.health.resources import HealthResource, ReadyResource
"""
