"""
Host plugin for Claude Quota.

Exposes the event hooks and tools a host application registers.
"""

from .quota_plugin import PluginHost, QuotaPlugin, ToolSpec, create_plugin

__all__ = ["PluginHost", "QuotaPlugin", "ToolSpec", "create_plugin"]
