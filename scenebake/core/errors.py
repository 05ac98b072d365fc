import pathlib as pl

class SceneBakeError(Exception):
    """Base class for every error raised by scenebake."""

class SourceParseError(SceneBakeError):
    # The source scene could not be opened or parsed. Fatal for the whole import:
    # no partial node tree is ever returned alongside this error.
    def __init__(self, path: str | pl.Path, description: str) -> None:
        self.path: pl.Path = pl.Path(path)
        self.description: str = description
        super().__init__(f"Failed to load {self.path}: {description}")

class ConfigurationError(SceneBakeError, ValueError):
    """Invalid import options."""

class ImageDecodeError(SceneBakeError):
    def __init__(self, path: str | pl.Path, reason: str) -> None:
        self.path: pl.Path = pl.Path(path)
        self.reason: str = reason
        super().__init__(f"Failed to decode image {self.path}: {reason}")
