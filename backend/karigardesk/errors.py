class OrderDeskError(Exception):
    """Base class for failures raised by the order desk services."""


class NotFoundError(OrderDeskError):
    """An order or design mapping that was asked for does not exist."""


class IllegalTransitionError(OrderDeskError):
    """A status transition was requested against a guard that does not hold."""


class StorageUnavailableError(OrderDeskError, IOError):
    """The storage collaborator could not be reached or answered with garbage."""


class SpreadsheetReadError(OrderDeskError, IOError):
    """An uploaded spreadsheet could not be opened or read."""


class ImageReadError(OrderDeskError, IOError):
    """An uploaded design image is not a readable picture in a supported format."""
