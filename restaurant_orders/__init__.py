"""
                Restaurant Ordering Backend

Multi-tenant ordering API: menus, server-side order pricing,
kitchen display broadcasts and customer text notifications.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
