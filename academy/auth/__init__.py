"""
Academy Admin - Authentication Package

- Hybrid JWT + server-side sessions
- bcrypt password hashing
- Role/permission model with a fixed hierarchy and deny-by-default checks
"""
