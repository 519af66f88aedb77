"""Filesystem, acquisition, version-control and search services."""
