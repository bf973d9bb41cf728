from dataclasses import dataclass


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller, passed explicitly into every core operation.

    Every booking and basket query is filtered on ``user_id``.
    """

    user_id: int
