"""
Object Gateway - tiered object storage with upload policy and signed access.

This package contains the complete application:
- core: Framework-agnostic gateway logic (policy, keys, access tiers)
- infrastructure: Storage backend integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
