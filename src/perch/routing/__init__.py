"""Routing — method + pattern registry, route adapter, and the router.

Routes are registered during setup; the router freezes on its first
request and is read-only from then on.
"""
