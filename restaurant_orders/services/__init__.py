"""
                        Services Module

Business logic behind the HTTP routes. Every service takes its database
session (and, for notifications, its hub and messaging handles) as
arguments, so each can be exercised on its own.

Services:
    - catalog: restaurants, menus, customizations, menu maintenance
    - pricing: server-side re-pricing of order lines
    - orders: order persistence, listing and daily stats
    - status: order status transitions
    - notifications: kitchen display broadcast and customer messaging
"""
