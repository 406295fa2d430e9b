from ipyjob.job.adapter import (
    JobAdapter,
    JobSettings,
    JobStatus,
    ValidationMessage,
    check_code,
    check_file_path,
    check_task,
    kernel_name_items,
    write_report,
)

__all__ = [
    "JobAdapter",
    "JobSettings",
    "JobStatus",
    "ValidationMessage",
    "check_code",
    "check_file_path",
    "check_task",
    "kernel_name_items",
    "write_report",
]
