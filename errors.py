"""Exceptions raised while talking to a pack."""


class M18Error(Exception):
    pass


class TransportFailure(M18Error):
    """The serial port could not be opened, written or configured."""


class EmptyResponse(M18Error):
    """Nothing came back where a reply was expected."""


class Timeout(EmptyResponse):
    """No byte arrived within the read window."""


class InvalidResponse(M18Error):
    """A reply failed frame validation or was rejected by the pack."""


class UnknownRegister(M18Error, LookupError):

    def __init__(self, register_id):
        super().__init__("Unknown register id: %r" % (register_id,))
        self.register_id = register_id


class ParseError(M18Error, ValueError):
    """Payload bytes do not fit the declared value kind."""


class MessageTooLong(M18Error, ValueError):

    def __init__(self, length, limit=20):
        super().__init__("Message too long: %d bytes (max %d)" % (length, limit))
        self.length = length
        self.limit = limit


class RegisterReadError(M18Error):
    """A batch read stopped at ``index``; the cause is chained."""

    def __init__(self, index, register_id, error):
        super().__init__("Reading register %d (batch index %d) failed: %s" % (register_id, index, error))
        self.index = index
        self.register_id = register_id
        self.error = error
