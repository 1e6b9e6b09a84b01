# src/prompting/__init__.py - v1
