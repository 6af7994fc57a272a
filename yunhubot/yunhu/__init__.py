"""Yunhu wire protocol: event normalization, API client and message composer."""
