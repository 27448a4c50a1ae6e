"""Permissions Management"""
import logging
import yaml
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS_FILE = Path(__file__).parent.parent.parent / "permissions.yml"


class PermissionsManager:
    """Maps an actor's user type / operator role to coarse route permissions (permissions.yml)"""

    def __init__(self, permissions_file_path: Optional[str] = None):
        path = Path(permissions_file_path) if permissions_file_path else DEFAULT_PERMISSIONS_FILE
        self.role_permissions = self._load_permissions(path)

    def _load_permissions(self, file_path: Path) -> Dict[str, List[str]]:
        """Load role-to-permissions mapping from YAML file"""
        try:
            with open(file_path, "r") as f:
                data = yaml.safe_load(f) or {}
                return data.get("roles", {})
        except (OSError, yaml.YAMLError) as e:
            # Every route check fails closed when the map is missing
            logger.error(f"Could not load permissions from {file_path}: {e}")
            return {}

    def get_permissions_for_roles(self, roles: List[str]) -> List[str]:
        """Convert list of roles to list of permissions"""
        permissions = set()
        for role in roles:
            permissions.update(self.role_permissions.get(role, []))
        return sorted(permissions)
