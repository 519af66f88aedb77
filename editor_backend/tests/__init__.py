"""Tests for the editor backend."""
