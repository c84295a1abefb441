"""
ISBN lookup for a book directory, keyed by its title (the directory name).

Strategies, first hit wins:
1. NDL OpenSearch (structured registry)
2. Google Books volumes search (ISBN-10 preferred over ISBN-13)
3. Operator prompt (blank input skips the book)
"""

from .chain import IsbnResolutionChain, IsbnSource
from .google_books import GoogleBooksSearch
from .ndl import NdlSearch
from .prompt import IsbnPrompter, normalize_isbn

__all__ = [
    "IsbnResolutionChain",
    "IsbnSource",
    "GoogleBooksSearch",
    "NdlSearch",
    "IsbnPrompter",
    "normalize_isbn",
]
