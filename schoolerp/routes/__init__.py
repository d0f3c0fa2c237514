from . import attendance, class_subjects, health, leave, results, schools, sos

__all__ = ["attendance", "class_subjects", "health", "leave", "results", "schools", "sos"]
