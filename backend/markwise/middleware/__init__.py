"""
Markwise Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit: rejects abusive clients on the AI endpoints before any work
    2. Request ID: correlation id for every log line and error body
    3. Logging: one access line per request with status and duration

Responses pass back through the chain in reverse, which is how the request
id reaches the response headers and the access log sees the final status.
"""
