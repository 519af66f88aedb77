"""Shared helpers: errors, paths, auth, logging and the GitHub client."""
