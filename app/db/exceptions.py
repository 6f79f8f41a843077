class DuplicateDueError(Exception):
    """A due already exists for the pharmacy, due type and year."""

    def __init__(self, pharmacy_id: int, year: int):
        self.pharmacy_id = pharmacy_id
        self.year = year
        super().__init__(f"Due already exists for this pharmacy and due type in {year}")


class AlreadyVotedError(Exception):
    def __init__(self, position: str):
        self.position = position
        super().__init__(f"You have already voted for the position of {position}")


class InvalidRecipientsError(Exception):
    pass
