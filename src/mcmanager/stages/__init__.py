"""Pipeline stages: repository sync, asset fetch, directory mirror, restart."""
