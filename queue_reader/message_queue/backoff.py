"""Idle backoff between empty receives."""


class IdleBackoff:
    """
    Doubling idle delay with a floor and a ceiling.

    next(current) = min(current * 2, maximum). Any receive that yields
    messages calls reset(); every naturally elapsed idle sleep calls advance().
    """

    def __init__(self, initial: float, maximum: float):
        if initial < 0:
            raise ValueError(f"initial delay must be >= 0, got {initial}")
        if maximum < initial:
            raise ValueError(
                f"maximum delay ({maximum}) must be >= initial delay ({initial})"
            )
        self.initial = initial
        self.maximum = maximum
        self.current = initial

    def next(self, current: float) -> float:
        return min(current * 2, self.maximum)

    def advance(self) -> float:
        self.current = self.next(self.current)
        return self.current

    def reset(self) -> float:
        self.current = self.initial
        return self.current
