"""Domain-specific realtime payload builders and publishers.

These modules build payloads and emit them. They must not define Socket.IO
server instances or connection handlers.
"""
