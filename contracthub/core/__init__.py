"""Core services: configuration, errors, versioning engine, migration jobs."""
