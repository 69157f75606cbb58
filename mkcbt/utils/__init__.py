"""
Utilities Package for mkcbt.

Modules:
    - format_utils.py: Helpers for formatting durations and sizes and for
      case-insensitive extension checks.
    - tool_locator.py: Locates and verifies the external avifenc executable.
"""
