"""Foodsharing Backend — permission model and file-upload claim queue.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
