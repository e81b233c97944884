"""
tokenlock Core Module

Shared building blocks for the vesting engine:
- Configuration and structured logging
- Typed error hierarchy
- Event notifications and capability checks
- Collaborator protocols and state persistence
"""

__all__ = []
