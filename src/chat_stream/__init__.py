"""
Chat Stream - Streaming session client for an AI coding assistant
==================================================================

Drives a single chat turn over a server-sent, multiplexed event stream.

Key Features:
    - **Line Framing**: Chunk-boundary and UTF-8 safe `data:` frame extraction
    - **Turn Accumulation**: Text, tool invocations, tool results, live output and status
    - **Permission Handshake**: Human-in-the-loop allow/deny gate that never outlives its turn
    - **Scoped Cleanup**: Every turn ends with consistent state on success, cancel, or error
"""

__version__ = "0.1.0"
