"""
Application package.

``core`` holds configuration, persistence, security, error handling
and the query-feature parser; ``schemas`` the request models and
response helpers; ``services`` the business logic; ``api/v1`` the
routers that expose it.
"""
