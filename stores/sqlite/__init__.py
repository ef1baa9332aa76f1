from .main import SQLiteLessonStore
