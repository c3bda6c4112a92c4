"""auth/ -- Authentication and authorization core.

Entry point: auth.service.AuthService. Administration: auth.roles,
auth.permissions, auth.users. HTTP glue: auth.dependencies (FastAPI).

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
core/ never imports from auth/.
"""
