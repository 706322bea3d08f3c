"""Exception types shared across photolib."""


class PhotolibError(Exception):
    """Base exception for photolib operations."""


class StoreError(PhotolibError):
    """Raised when the record store cannot be read or written.

    Fatal for the task group that hit it; nothing can be reconciled
    without the store.
    """


class RegistryLockedError(PhotolibError):
    """Raised when a folder is reclassified while another session holds the write lock."""


class SidecarError(PhotolibError):
    """Raised when a sidecar file cannot be parsed or written."""
