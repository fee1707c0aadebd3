class RectificationError(RuntimeError):
    """Raised when a rectification request cannot produce a result."""

    status_code = 500


class InvalidInputError(RectificationError):
    status_code = 400


class InvalidCornerCountError(InvalidInputError):
    pass


class OutputTooLargeError(InvalidInputError):
    pass


class DecodeFailureError(RectificationError):
    pass


class EncodeFailureError(RectificationError):
    pass


class DegenerateGeometryError(RectificationError):
    """Raised for quadrilaterals that cannot define a projective transform."""


class SingularSystemError(DegenerateGeometryError):
    pass


class RectificationTimeoutError(RectificationError):
    pass
