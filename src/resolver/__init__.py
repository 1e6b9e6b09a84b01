# src/resolver/__init__.py - v1
