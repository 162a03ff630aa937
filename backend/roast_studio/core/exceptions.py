"""
Service-level exceptions
"""


class CollaboratorError(RuntimeError):
    """An external generation/speech service failed or returned nothing usable"""
