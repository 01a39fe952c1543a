"""Exceptions raised while packing a site."""


class PackError(Exception):
    """Base class for build failures that abort a pack run."""


class MinifyError(PackError):
    """A JS, CSS or HTML minifier failed on a source file."""

    def __init__(self, source, cause: Exception):
        super().__init__(f"Error minifying {source}: {cause}")
        self.source = source
        self.cause = cause


class IncludeCycleError(PackError):
    """An SSI include chain loops back onto a page already being built."""

    def __init__(self, chain):
        self.chain = tuple(chain)
        super().__init__("SSI include cycle: " + " -> ".join(self.chain))
