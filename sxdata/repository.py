"""
Base type for application repositories.

Repositories implement the domain view of the data and therefore share no
behavior; this class only gives them a common type to check against.
"""

from abc import ABC


class Repository(ABC):
    """Marker base class for repositories built on a Storage."""
    pass
