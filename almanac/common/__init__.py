"""Shared utilities for Almanac."""
