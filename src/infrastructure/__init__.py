"""
Infrastructure layer - external service integrations.

- storage: Object storage backends (S3-compatible and in-memory)

These wrappers translate vendor responses and errors into our domain models.
"""
