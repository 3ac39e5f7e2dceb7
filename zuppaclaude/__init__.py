"""
ZuppaClaude — Claude Code power-up manager.

Backs up and restores Claude Code session logs and ZuppaClaude settings,
with optional cloud sync through rclone.
"""

__version__ = "1.3.0"
