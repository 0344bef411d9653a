import enum


class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    field = "field"


class ItemClass(str, enum.Enum):
    GOOD = "GOOD"
    SUPPLY = "SUPPLY"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    DENIED = "DENIED"
    VOID = "VOID"


class Lifecycle(str, enum.Enum):
    # stock moves on approval and reverses when the order leaves APPROVED
    DIRECT = "DIRECT"
    # approval only gates; stock moves once, when the invoice completes the order
    DEFERRED = "DEFERRED"


class MovementType(str, enum.Enum):
    RECEIPT = "RECEIPT"
    REVERSAL = "REVERSAL"
    RETURN = "RETURN"
