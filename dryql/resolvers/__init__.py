from .crud import CrudResolverGenerator
from .embedded import EmbeddedResolverGenerator

__all__ = ['CrudResolverGenerator', 'EmbeddedResolverGenerator']
