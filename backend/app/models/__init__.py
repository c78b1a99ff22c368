from app.models.classroom import Classroom  # noqa: F401
from app.models.group import Group  # noqa: F401
from app.models.schedule_entry import ScheduleEntryRecord  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.teacher import Teacher  # noqa: F401
