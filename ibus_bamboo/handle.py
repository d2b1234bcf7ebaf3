import logging

LOG = logging.getLogger(__name__)


class ForeignHandle:
    """Owns one opaque handle handed out by bamboo-core.

    The handle is released through ``release`` exactly once: when it is
    replaced with ``set``, dropped with ``clear`` or when the wrapper goes
    away. Wrappers cannot be copied; use ``ForeignHandle.move`` to hand
    ownership to a new wrapper.
    """

    def __init__(self, release, identity=None):
        self._release = release
        self._identity = None
        if identity:
            self._identity = identity

    @classmethod
    def move(cls, other):
        moved = cls(other._release)
        moved._identity = other._identity
        other._identity = None
        return moved

    @property
    def identity(self):
        if self._identity is None:
            raise ValueError("empty handle")
        return self._identity

    def set(self, identity):
        self.clear()
        # bamboo-core reports failure with a zero handle
        self._identity = identity or None

    def clear(self):
        if self._identity is None:
            return
        identity = self._identity
        self._identity = None
        self._release(identity)

    def is_present(self):
        return self._identity is not None

    def __bool__(self):
        return self._identity is not None

    def __copy__(self):
        raise TypeError("ForeignHandle owns a foreign resource and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("ForeignHandle owns a foreign resource and cannot be copied")

    def __reduce__(self):
        raise TypeError("ForeignHandle cannot be pickled")

    def __del__(self):
        try:
            self.clear()
        except Exception:
            LOG.exception("Failed to release handle on collection")

    def __repr__(self):
        return f"<ForeignHandle {self._identity!r}>"
