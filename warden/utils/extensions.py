"""The extensions loaded on startup."""

EXTENSIONS = frozenset(
    {
        "warden.exts.backend.error_handling",
        "warden.exts.moderation.audit_log",
        "warden.exts.moderation.infractions",
    }
)
