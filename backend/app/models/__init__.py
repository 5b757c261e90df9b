from .user import User  # noqa: F401
from .inventory import InventoryLot  # noqa: F401
