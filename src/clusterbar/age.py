"""Elapsed-time parsing for Slurm job age columns."""


def parse_age(age_string: str) -> int:
    """Parse an ``H:MM:SS`` elapsed-time token into seconds.

    The hour component may have any number of digits. Anything that does not
    split into exactly three integer components yields 0; job age is display
    data, so a bad token is not worth failing a refresh over.

    Examples:
        "01:02:03" -> 3723
        "120:00:00" -> 432000
        "5:00" -> 0
        "bad" -> 0
    """
    parts = age_string.strip().split(":")
    if len(parts) != 3:
        return 0

    if not all(p.isascii() and p.isdigit() for p in parts):
        return 0

    hours, minutes, seconds = (int(p) for p in parts)

    return hours * 3600 + minutes * 60 + seconds
