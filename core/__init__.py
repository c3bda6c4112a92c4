"""core/ -- Kernel for the auth core: configuration, clock, and logging setup.

Layer rule: core/ imports only stdlib + third-party libraries.
It does NOT import from auth/. auth/ imports from core/, never the reverse.
"""
