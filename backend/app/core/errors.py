class LocalizerError(Exception):
    """Base class for every error raised by the localization core."""


class ValidationError(LocalizerError):
    pass


class DuplicateNameError(LocalizerError):
    pass


class NotFoundError(LocalizerError):
    pass


class InvalidTransitionError(LocalizerError):
    """A job was asked to move to a state its current status does not allow."""


class UpstreamError(LocalizerError):
    """The transform service failed or answered with something unusable."""


class UpstreamBlocked(UpstreamError):
    pass


class UpstreamEmpty(UpstreamError):
    pass


class UpstreamNoImage(UpstreamError):
    pass


class StorageError(LocalizerError):
    pass


class PatternError(LocalizerError):
    """Malformed filename pattern; always recovered inside the filename deriver."""
