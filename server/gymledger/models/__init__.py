from .member import Member  # noqa: F401
from .invoice import Invoice  # noqa: F401
from .receipt import Receipt  # noqa: F401
from .activity import Attendance, BodyMeasurement  # noqa: F401
from .deleted_member import DeletedMember  # noqa: F401
from .counter import Counter  # noqa: F401
