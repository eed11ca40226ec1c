from enum import IntEnum


class AppID(IntEnum):
    CUSTOMER = 1
    OPERATOR = 2


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class ResourceType(IntEnum):
    VEHICLE = 1
    DRIVER = 2


class ResourceStatus(IntEnum):
    ACTIVE = 1
    MAINTENANCE = 2
    INACTIVE = 3
    SUSPENDED = 4
    ON_LEAVE = 5


class BookingKind(IntEnum):
    TRANSFER = 1
    RENTAL = 2


class BookingStatus(IntEnum):
    PENDING = 1
    ASSIGNED = 2
    CONFIRMED = 3
    IN_PROGRESS = 4
    COMPLETED = 5
    CANCELLED = 6
    DECLINED = 7


class ScheduleType(IntEnum):
    AVAILABLE = 1
    BOOKED = 2
    MAINTENANCE = 3
    OFF = 4


class AddonType(IntEnum):
    CHILD_SEAT = 1
    GPS = 2
    EXTRA_DRIVER = 3


class InsuranceType(IntEnum):
    NONE = 1
    BASIC = 2
    PREMIUM = 3


class PlanStage(IntEnum):
    SELECT_VEHICLE = 1
    SELECT_DRIVER = 2
    PLANNED = 3
    FAILED = 4
