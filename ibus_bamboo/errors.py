class BambooError(Exception):
    pass


class CoreLibraryError(BambooError):
    """The bamboo-core shared library could not be loaded or is incomplete."""


class ConfigError(BambooError):
    """A configuration value or sub-config path was rejected."""


class DictionaryNotFound(BambooError):
    pass
