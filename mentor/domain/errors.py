"""Exceptions raised by the mentor session core"""


class MentorError(Exception):
    """Base class for all mentor session errors"""


class InferenceGatewayError(MentorError):
    """The external analysis call failed, timed out or returned garbage"""


class BaselineStoreError(MentorError):
    """The durable baseline store could not be read or written"""
