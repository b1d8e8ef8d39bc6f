# Middleware package init
"""
Efficio Backend — Middleware Package
======================================

Middleware Chain (request direction):
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    Request ID runs first so the access log line and any error response carry
    the correlation id.
"""
