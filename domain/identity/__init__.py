from .entity import Capability, Identity, Profile, Role, ROLE_CAPABILITIES

__all__ = ["Capability", "Identity", "Profile", "Role", "ROLE_CAPABILITIES"]
