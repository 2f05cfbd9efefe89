"""
Markwise Backend — API Routes Package
======================================

Route Inventory:
    - extraction.py: POST /api/extract_text, POST /api/extract_rubric_text
    - grading.py:    POST /api/grade_submission
    - lessons.py:    POST /api/generate_lesson_plan, POST /api/generate_slides
    - chat.py:       POST /api/chat_with_ai
    - analytics.py:  GET  /api/analytics/...
    - files.py:      POST /api/uploads, GET /api/files/{path}
    - health.py:     GET  /health

Routes stay thin: read the request, call one service, shape the response.
Errors are raised as MarkwiseError subclasses and formatted by the global
handlers in main.py.
"""
