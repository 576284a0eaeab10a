"""Constants used in the project."""

from enum import Enum


class UpdateLevel(Enum):
    """Conservative bump classes for an update.

    Args:
        Enum (string): Name of the increment class a free package may move within.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


class SourceKind(Enum):
    """Kinds of sources a package can be supplied by.

    Args:
        Enum (string): Source kind identifier.
    """

    REMOTE = "remote"
    PATH = "path"
    GIT = "git"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    HOST_TOOL_NAME = "relock"
    HOST_TOOL_VERSION = "1.4.0"
    DEFAULT_GROUP = "default"
    LOCKFILE_FORMAT_VERSION = 1
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    CONFIG_FILE_NAMES = ["relock.yml", "relock.yaml", "relock.json"]
    CONFIG_ENV_PREFIX = "RELOCK_"
    CONFIG_SECTION = "update"

    # Resolver tunables
    RESOLVER_MAX_STEPS = 100000
    SUGGESTION_MAX_DISTANCE = 3
