import enum


class UserRole(str, enum.Enum):
    MANAGER = "manager"
    STAFF = "staff"


class SkillLevel(str, enum.Enum):
    TRAINING = "training"
    REGULAR = "regular"
    VETERAN = "veteran"


class ShiftStatus(str, enum.Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


# statuses that hold the (user, date) slot; a draft never does
BINDING_SHIFT_STATUSES = (ShiftStatus.CONFIRMED.value, ShiftStatus.COMPLETED.value)


class TimeOffStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EmergencyStatus(str, enum.Enum):
    OPEN = "open"
    FILLED = "filled"
    CANCELLED = "cancelled"
