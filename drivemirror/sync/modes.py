"""Update actions for files that changed remotely."""

from enum import Enum


class UpdateAction(str, Enum):
    """How a changed remote file replaces its local copy."""

    OVERWRITE = "Overwrite"
    """Replace the local file in place"""

    RENAME_NEW = "RenameNew"
    """Keep the old local file under a derived name, then download"""

    @classmethod
    def from_string(cls, value: str) -> "UpdateAction":
        """Parse an update action, ignoring case.

        Args:
            value: "Overwrite" or "RenameNew" (any case)

        Returns:
            The matching UpdateAction

        Raises:
            ValueError: If the value names no update action
        """
        normalized = value.strip().lower()
        for action in cls:
            if action.value.lower() == normalized:
                return action
        valid = ", ".join(action.value for action in cls)
        raise ValueError(f"Invalid update action '{value}'. Valid values: {valid}")

    @property
    def preserves_previous(self) -> bool:
        return self is UpdateAction.RENAME_NEW


DEFAULT_UPDATE_ACTION = UpdateAction.RENAME_NEW
