from prometheus_client import Counter


scheduler_sweeps_total = Counter(
    "reminder_scheduler_sweeps_total",
    "Total scheduler sweep cycles",
)

scheduler_sweep_errors_total = Counter(
    "reminder_scheduler_sweep_errors_total",
    "Sweeps aborted before completing the due-reminder loop",
)

reminders_due_total = Counter(
    "reminders_due_total",
    "Total due reminders picked up by sweeps",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total reminder emails sent and marked dispatched",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total reminder emails that failed to send",
)

reminders_lookup_failed_total = Counter(
    "reminders_lookup_failed_total",
    "Total reminders skipped because the owner could not be resolved",
)

reminders_mark_failed_total = Counter(
    "reminders_mark_failed_total",
    "Total reminders sent but not marked dispatched",
)

reminders_replaced_total = Counter(
    "reminders_replaced_total",
    "Total reminder sets replaced by appointment edits",
)

scheduler_sweeps_locked_out_total = Counter(
    "reminder_scheduler_sweeps_locked_out_total",
    "Sweeps skipped because another process held the sweep lease",
)
