"""
Infrastructure layer - external resource integrations.

- storage: local key-value storage (files on disk, or memory)
"""
