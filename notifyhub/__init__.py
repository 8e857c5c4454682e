"""Notification fan-out and delivery service.

The package re-exports nothing; import the layer you need
(``notifyhub.infrastructure.notifications`` for the realtime core).
"""
