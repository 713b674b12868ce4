from .service import IdentityResolver, hash_dpi

__all__ = ["IdentityResolver", "hash_dpi"]
