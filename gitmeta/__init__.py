"""
gitmeta — file permissions, owner and group under version control

Git records content and the executable bit, nothing else. gitmeta keeps
the rest of the POSIX metadata in tracked files under .gitmeta/store/,
one per path, so it travels with commits, branches and merges, and can be
reapplied to any checkout.
"""

__version__ = "0.2.0"

__all__ = [
    # Repository
    "MetaRepository",
    "MetaContext",
    # Store
    "MetadataStore",
    "MetadataRecord",
    # Core operations
    "build_tree",
    "list_tree",
    "meta_diff",
    "apply_permissions",
    # Errors
    "GitMetaError",
    "NotARepository",
]


# Lazy imports — only resolve when accessed
def __getattr__(name):
    if name in ("MetaRepository", "MetaContext"):
        from .repo import MetaContext, MetaRepository

        return MetaRepository if name == "MetaRepository" else MetaContext
    if name in ("MetadataStore", "MetadataRecord"):
        from .store import MetadataRecord, MetadataStore

        return MetadataStore if name == "MetadataStore" else MetadataRecord
    if name in ("build_tree", "list_tree"):
        from .tree import build_tree, list_tree

        return build_tree if name == "build_tree" else list_tree
    if name == "meta_diff":
        from .diff import meta_diff

        return meta_diff
    if name == "apply_permissions":
        from .apply import apply_permissions

        return apply_permissions
    if name in ("GitMetaError", "NotARepository"):
        from .errors import GitMetaError, NotARepository

        return GitMetaError if name == "GitMetaError" else NotARepository
    raise AttributeError(f"module 'gitmeta' has no attribute {name!r}")
