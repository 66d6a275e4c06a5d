class BridgeError(Exception):
    """Base class for faults raised inside the bridge."""


class UnknownModality(BridgeError, ValueError):
    def __init__(self, modality):
        self.modality = modality
        super().__init__(f"Unknown modality: {modality!r}")


class MalformedDocument(BridgeError):
    """The driver answered with something that is not a usable XML document."""


class MissingEnvelope(BridgeError):
    """The document parsed but lacks the elements a PID response must carry."""
