"""Exception types raised by the preprocessing pipeline."""


class PreprocessingError(Exception):
    """Base class for all pipeline failures."""


class DecodeError(PreprocessingError):
    """Input bytes are empty, malformed, or in an unsupported container."""


class ConfigError(PreprocessingError):
    """A filter parameter lies outside its valid domain."""


class EncodeError(PreprocessingError):
    """The output container is unsupported or encoding failed."""
