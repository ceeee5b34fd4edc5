"""
Exception classes for gridsheet.

These exceptions are used throughout the gridsheet package to signal rejected
grid edits, remote store failures and clipboard problems.
"""


class GridError(Exception):
    """Base class for every error raised by gridsheet."""
    pass


class InvalidOperationError(GridError):
    """Raised when a structural edit would break a grid invariant.

    The grid model raises this error and leaves the snapshot it was called on
    untouched. The editor catches it at the point of the attempted mutation
    and turns it into a user-visible notice.

    Examples:
        - Deleting the last row, column or sheet
        - Merging a single cell
        - Merging a region that overlaps an existing merge
        - Unmerging a selection that holds no merge
        - Referring to a row, column or sheet id that does not exist
    """
    pass


class StoreError(GridError):
    """Raised when the remote store cannot be read or written.

    Wraps backend failures (for the Google Sheets backend, gspread's
    ``APIError``) with context about which call failed. Common causes include:
        - Authentication failures
        - Rate limiting (HTTP 429)
        - Network connectivity issues
        - Unknown spreadsheet or sheet ids
    """
    pass


class ClipboardError(GridError):
    """Raised when the operating system clipboard cannot be used.

    Usually means no clipboard mechanism is available (headless session,
    missing xclip/xsel). Paste falls back to the internal copy buffer.
    """
    pass
