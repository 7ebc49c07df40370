# SPDX-License-Identifier: MIT
"""Integration tests for matchday-sync.

INTEGRATION TEST FILE: This directory contains tests that run the whole
engine (upstream client, store, cache and temporal gate) against temporary
databases, with only the HTTP layer mocked.
"""
