"""Build hooks, applied to the rows of every data file."""


def pre(rows):
    """Called with all rows of a file before its items are built."""
    return rows


def each(row):
    """Called with each row before it is rendered."""
    return row


def post(rows):
    """Called with all rows of a file after its items are built."""
    return rows
