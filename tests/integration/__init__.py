"""
Integration tests for omsearch.

These tests run against a live Redis Stack server (RediSearch module
loaded) at ``OMSEARCH_REDIS_URL`` and are skipped when it is unset.
"""

import os

import pytest


REDIS_URL = os.environ.get("OMSEARCH_REDIS_URL")

# Integration test markers
integration = pytest.mark.integration
requires_redis = pytest.mark.skipif(
    not REDIS_URL, reason="OMSEARCH_REDIS_URL is not set"
)
