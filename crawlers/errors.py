"""Per-item failures raised by the fetch and extraction layers."""


class FetchError(Exception):
    """A GET failed after every retry attempt was used up."""

    def __init__(self, url, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to fetch {url}: {cause}")


class ParseError(Exception):
    """A fetched document did not contain the fields a record needs."""

    def __init__(self, url, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to parse {url}: {cause}")
