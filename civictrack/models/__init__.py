"""
Pydantic models for request/response validation.

DESIGN PRINCIPLE:
- Models reflect data structure, not business logic
- Storage documents use snake_case; the JSON API uses camelCase aliases
"""
