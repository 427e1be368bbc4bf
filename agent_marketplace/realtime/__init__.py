"""Realtime infrastructure (Socket.IO).

Holds the socket server, the connection/room registry and the chat relay so
chat, notifications and agent status updates share one socket server.
"""
