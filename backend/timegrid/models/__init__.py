from timegrid.models.timetable import Timetable, TimetableEntry  # noqa: F401
