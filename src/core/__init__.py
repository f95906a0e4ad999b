"""Core domain package for rconrelay.

Core contains log classification, fragmentation, routing, and the RCON
exchange state machine without any Telegram or socket-specific code, keeping
the relay logic portable.
"""
