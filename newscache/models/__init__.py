from newscache.models.article import Article
from newscache.models.state import StateEntry

__all__ = ["Article", "StateEntry"]
