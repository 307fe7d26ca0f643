"""Almanac: scheduled life report generation for journaling users."""
