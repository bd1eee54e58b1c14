"""
API Data Models

Pydantic models used for request validation and the generated OpenAPI
documentation.
"""
