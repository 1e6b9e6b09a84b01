# src/credentials/__init__.py - v1
