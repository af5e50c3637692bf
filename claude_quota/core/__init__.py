"""
Core modules for Claude Quota.

This package contains local usage accumulation, the remote quota schema,
and the presentation formatters shared by the plugin and the CLI.
"""
