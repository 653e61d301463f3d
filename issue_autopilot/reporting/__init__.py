from .notifier import Report, failure_report, summarize

__all__ = ["Report", "failure_report", "summarize"]
