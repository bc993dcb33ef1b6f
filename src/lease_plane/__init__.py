"""Sandbox account lease and lifecycle orchestration."""
