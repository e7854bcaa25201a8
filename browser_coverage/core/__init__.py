"""Instrumentation pipeline: matching, caching, sweeping, merging, validating."""
