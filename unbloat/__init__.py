"""
unbloat - Android system package state manager.

Disable, uninstall and restore non-removable packages over ADB without root:
- Version-aware command generation (API 16 to current)
- Per-user and multi-user scoping
- Point-in-time package state backups and restore plans
"""

__version__ = "0.1.0"
__author__ = "unbloat Contributors"
