"""Shared building blocks used across reportflow."""
