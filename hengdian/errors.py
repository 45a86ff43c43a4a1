"""Engine exceptions.

Invalid input is reported as an ``EngineError`` subclass (also a
``ValueError``); the state passed in is never modified. A ``ContentError``
means the catalogs reference something that does not exist.
"""


class EngineError(ValueError):
    """Raised when a transition is called with input it cannot accept."""


class InvalidPhaseError(EngineError):
    """The run is not in the phase this transition requires."""


class InvalidSelectionError(EngineError):
    """Perk selection has the wrong size, unknown ids, or a conflicting pair."""


class InvalidDistributionError(EngineError):
    """Attribute allocation does not match the point budget or bounds."""


class InvalidChoiceError(EngineError):
    """No event is in flight, or the choice does not belong to it."""


class ContentError(Exception):
    """A catalog lookup missed: content references an unknown id."""
