"""
SwimDash - a personal swim session logger.

This package contains the complete application:
- core: Session store, statistics and export/import, framework-agnostic
- infrastructure: Local key-value storage
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
