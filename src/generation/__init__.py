# src/generation/__init__.py - v1
