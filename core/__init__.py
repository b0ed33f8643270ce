"""Core domain modules.

- inference: paid chat completions against the compute network (retry + fee settlement)
- signals: trading-signal extraction and multi-signal summaries
- config: environment-driven settings
- types: shared domain records
"""
