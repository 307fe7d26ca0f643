"""Almanac HTTP API layer.

Usage
-----
Create and run the application::

    from almanac.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # with export and artifact endpoints

"""

from almanac.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
