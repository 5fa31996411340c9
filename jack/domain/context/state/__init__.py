# State = what a client is focused on right now.

# For the pipeline this is the active resource: the file, project, url
# or conversation the user last pointed at. Follow-ups such as
# "open it again" or "run the tests there" resolve against it.

# One slot per client, last write wins, dropped on disconnect.

from .state_manager import StateManager

__all__ = ["StateManager"]
