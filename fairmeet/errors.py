class FairMeetError(Exception):
    """Base class for errors raised by the ranking core"""


class LocationUnavailable(FairMeetError):
    """A start point could not be turned into a coordinate"""


class RouteNotFound(FairMeetError):
    """The routing provider returned no usable route"""


class EmptyCandidateSet(FairMeetError):
    """The place source returned no candidates"""


class NoReachableParticipants(FairMeetError):
    """No candidate could be reached by any participant"""
