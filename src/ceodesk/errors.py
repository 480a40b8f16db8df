"""
CEO Desk Errors

Exception taxonomy for the delegation engine.
"""


class CeoDeskError(Exception):
    """Base class for delegation engine errors"""
    pass


class ClassificationError(CeoDeskError):
    """Intent classification failed (engine falls back to no delegation)"""
    pass


class PlanningError(CeoDeskError):
    """Plan construction failed (engine falls back to an empty plan)"""
    pass


class RegistryLookupError(CeoDeskError):
    """Requested responder id is not bound in the registry"""

    def __init__(self, responder_id: str):
        self.responder_id = responder_id
        super().__init__(f"No responder registered for '{responder_id}'")


class ResponderError(CeoDeskError):
    """A responder call failed"""

    def __init__(self, message: str, responder_id: str = None):
        self.responder_id = responder_id
        super().__init__(message)


class ResponderTimeout(ResponderError):
    """A responder call exceeded its time budget"""
    pass


class ResponderBackendError(ResponderError):
    """The language-model backend failed or returned a malformed response"""
    pass
