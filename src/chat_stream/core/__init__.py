"""
Core Layer - Stream Processing and Turn Orchestration
=====================================================

Modules:
    constants: Protocol constants, display text, and Pydantic settings
    framer: Chunk-boundary safe ``data:`` line framing
    decoder: Frame to ProtocolEvent decoding (malformed frames are dropped)
    accumulator: Folds events into the live TurnState
    permission_gate: Idle/pending handshake for tool authorization
    cancellation: Per-turn cooperative cancellation token
    deferred: Cancelable timers owned by a turn
    commands: Local directives, command palette, and file mentions
    session_controller: Runs one turn at a time with scoped cleanup
"""
