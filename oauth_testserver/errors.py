from __future__ import annotations


class TestAssertionError(AssertionError):
    """A response did not have the shape a harness helper requires.

    Subclasses AssertionError so pytest reports it as a failed assertion.
    """

    # Keep pytest from trying to collect this as a test class.
    __test__ = False


class ResponseDecodeError(ValueError):
    """A response body did not parse as its declared media type."""

    def __init__(self, media_type: str, message: str) -> None:
        super().__init__(f"could not decode {media_type} response: {message}")
        self.media_type = media_type
