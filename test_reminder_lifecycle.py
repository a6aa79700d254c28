import pytest
from sqlalchemy import select, func

from apptracker.models import Appointment, AppointmentLike, Category, Reminder
from apptracker.reminders.exceptions import AppointmentNotFoundError, InvalidReminderError
from apptracker.reminders.repository import (
    delete_appointment,
    get_due_reminders,
    get_or_create_category,
    get_reminders_for_appointment,
    mark_dispatched,
    replace_reminders,
    reschedule_appointment,
)
from conftest import NOW, minutes


def _rows(db, appointment_id):
    stmt = (
        select(Reminder.reminder_minutes, Reminder.is_sent)
        .where(Reminder.appointment_id == appointment_id)
        .order_by(Reminder.reminder_minutes)
    )
    return [tuple(r) for r in db.execute(stmt)]


def test_replace_resets_previously_sent_reminders(db, make_appointment):
    appointment = make_appointment(NOW + minutes(5), reminder_minutes=[15, 30])
    for row in get_due_reminders(db, NOW):
        mark_dispatched(db, row.reminder_id)
    assert _rows(db, appointment.id) == [(15, True), (30, True)]

    replace_reminders(db, appointment.id, [15, 30])

    assert _rows(db, appointment.id) == [(15, False), (30, False)]
    assert len(get_due_reminders(db, NOW)) == 2


def test_replace_swaps_lead_times(db, make_appointment):
    appointment = make_appointment(NOW + minutes(60), reminder_minutes=[15])

    new_rows = replace_reminders(db, appointment.id, [60, 1440])

    assert sorted(r.reminder_minutes for r in new_rows) == [60, 1440]
    assert _rows(db, appointment.id) == [(60, False), (1440, False)]


def test_replace_collapses_duplicates(db, make_appointment):
    appointment = make_appointment(NOW + minutes(60), reminder_minutes=[])

    replace_reminders(db, appointment.id, [10, 10, 5])

    assert _rows(db, appointment.id) == [(5, False), (10, False)]


def test_replace_with_empty_list_clears_reminders(db, make_appointment):
    appointment = make_appointment(NOW + minutes(60), reminder_minutes=[15, 30])

    replace_reminders(db, appointment.id, [])

    assert _rows(db, appointment.id) == []


@pytest.mark.parametrize("bad", [[-1], [5, -10], ["15"], [True], [1.5]])
def test_replace_rejects_invalid_minutes_without_writing(db, make_appointment, bad):
    appointment = make_appointment(NOW + minutes(60), reminder_minutes=[15])

    with pytest.raises(InvalidReminderError):
        replace_reminders(db, appointment.id, bad)

    assert _rows(db, appointment.id) == [(15, False)]


def test_replace_unknown_appointment(db):
    with pytest.raises(AppointmentNotFoundError):
        replace_reminders(db, 9999, [15])


def test_reschedule_keeps_leads_and_resets_sent_state(db, make_appointment):
    appointment = make_appointment(NOW + minutes(5), reminder_minutes=[15])
    (row,) = get_due_reminders(db, NOW)
    mark_dispatched(db, row.reminder_id)
    assert get_due_reminders(db, NOW) == []

    # Move the appointment so the reminder is due again right away
    reschedule_appointment(db, appointment.id, scheduled_at=NOW + minutes(10))

    assert _rows(db, appointment.id) == [(15, False)]
    (again,) = get_due_reminders(db, NOW)
    assert again.reminder_id != row.reminder_id
    assert again.scheduled_at == NOW + minutes(10)


def test_reschedule_with_new_leads(db, make_appointment):
    appointment = make_appointment(NOW + minutes(120), reminder_minutes=[15])

    updated = reschedule_appointment(
        db, appointment.id, title="Dentist (moved)", timezone="America/New_York", reminder_minutes=[30, 90]
    )

    assert updated.title == "Dentist (moved)"
    assert updated.timezone == "America/New_York"
    assert _rows(db, appointment.id) == [(30, False), (90, False)]


def test_reschedule_with_invalid_leads_leaves_appointment_untouched(db, make_appointment):
    appointment = make_appointment(NOW + minutes(120), reminder_minutes=[15])

    with pytest.raises(InvalidReminderError):
        reschedule_appointment(db, appointment.id, title="Changed", reminder_minutes=[-5])

    db.expire_all()
    assert db.get(Appointment, appointment.id).title == "Dentist"
    assert _rows(db, appointment.id) == [(15, False)]


def test_reschedule_unknown_appointment(db):
    with pytest.raises(AppointmentNotFoundError):
        reschedule_appointment(db, 12345, scheduled_at=NOW)


def test_delete_cascades_to_reminders_and_likes(db, make_appointment):
    appointment = make_appointment(NOW + minutes(5), reminder_minutes=[15, 30])
    db.add(AppointmentLike(appointment_id=appointment.id, user_id="user-2"))
    db.commit()

    assert delete_appointment(db, appointment.id) is True

    assert db.execute(select(func.count(Reminder.id))).scalar() == 0
    assert db.execute(select(func.count(AppointmentLike.id))).scalar() == 0
    assert get_due_reminders(db, NOW) == []
    assert get_reminders_for_appointment(db, appointment.id) == []


def test_delete_unknown_appointment(db):
    assert delete_appointment(db, 4242) is False


def test_get_or_create_category_tolerates_existing_name(db):
    first = get_or_create_category(db, "Doctor")
    second = get_or_create_category(db, "  Doctor ")

    assert first.id == second.id
    assert db.execute(select(func.count(Category.id))).scalar() == 1


def test_get_or_create_category_rejects_blank(db):
    with pytest.raises(ValueError):
        get_or_create_category(db, "   ")


def test_category_deletion_keeps_appointment(db, make_appointment):
    category = get_or_create_category(db, "Work")
    appointment = make_appointment(NOW + minutes(60))
    appointment.category_id = category.id
    db.commit()

    db.delete(category)
    db.commit()
    db.expire_all()

    assert db.get(Appointment, appointment.id).category_id is None


def test_replace_never_reuses_reminder_ids(db, make_appointment):
    appointment = make_appointment(NOW + minutes(5), reminder_minutes=[15])
    (old_id,) = [r.id for r in get_reminders_for_appointment(db, appointment.id)]

    new_rows = replace_reminders(db, appointment.id, [15])

    assert [r.id for r in new_rows] != [old_id]
    # A stale mark for the deleted row touches nothing
    assert mark_dispatched(db, old_id) is False
    assert _rows(db, appointment.id) == [(15, False)]
