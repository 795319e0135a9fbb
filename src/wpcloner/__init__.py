"""
wp-cloner - clone a production WordPress site into a local Docker infrastructure
"""

__version__ = "1.0.0"

from .core import WordPressCloner
from .errors import ClonerError

__all__ = ["WordPressCloner", "ClonerError"]
