"""
Request controllers for the profile service.

Each controller takes plain request data, calls the relevant services, and
returns a ``(data, status_code, headers)`` tuple for the route to render.
"""
