"""Domain layer (pure logic).

- Keep ranking rules and session-status derivation here.
- Avoid I/O: no DB sessions, no HTTP/FastAPI, no WebSockets.
- Prefer deterministic functions (time passed in as an argument when needed).
"""
