from typing import Dict, Optional

from jack.domain.models import ActiveResource


class StateManager:
    """Session state: the single active resource of each client.

    Last write wins. A slot lives until it is cleared explicitly or the
    client disconnects.
    """

    def __init__(self):
        self.active_resources: Dict[str, ActiveResource] = {}

    def set_active_resource(self, client_id: str, resource: ActiveResource):
        """Set the active resource for a client"""

        self.active_resources[client_id] = resource

    def get_active_resource(self, client_id: str) -> Optional[ActiveResource]:
        """Get the active resource for a client"""

        return self.active_resources.get(client_id)

    def clear_active_resource(self, client_id: str):
        """Clear the active resource for a client"""

        self.active_resources.pop(client_id, None)

    def get_all_active_resources(self) -> Dict[str, ActiveResource]:
        """Get active resources of every client"""

        return self.active_resources.copy()
