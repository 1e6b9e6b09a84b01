# src/security/__init__.py - v1
