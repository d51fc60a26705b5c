from datetime import date

from rentaldesk.services import invoice_engine, reminders
from rentaldesk.services.reminders import send_due_reminders


def test_reminders_pick_due_soon_and_due_yesterday(contract_id, clock, monkeypatch):
    first, second, _ = invoice_engine.generate_schedule(contract_id)
    sent = []
    monkeypatch.setattr(reminders, "send_email", lambda to, subject, body: sent.append((to, subject)) or True)

    clock.set(date(2024, 2, 2))
    result = send_due_reminders()
    assert result == {"upcoming": [second], "overdue": []}
    assert sent == [("tom@example.com", "Reminder: invoice C-2024-001-002 is due in 3 days")]

    clock.set(date(2024, 2, 6))
    result = send_due_reminders()
    assert result == {"upcoming": [], "overdue": [second]}
    assert sent[-1][1].startswith("URGENT")


def test_paid_invoices_get_no_reminder(contract_id, clock, monkeypatch):
    first = invoice_engine.generate_schedule(contract_id)[0]
    invoice_engine.record_payment(first, "1500000")
    monkeypatch.setattr(reminders, "send_email", lambda *args: True)

    clock.set(date(2024, 1, 2))
    assert send_due_reminders()["upcoming"] == []
    clock.set(date(2024, 1, 6))
    assert send_due_reminders()["overdue"] == []


def test_unconfigured_mail_sends_nothing(contract_id, clock):
    invoice_engine.generate_schedule(contract_id)
    clock.set(date(2024, 1, 2))
    assert send_due_reminders() == {"upcoming": [], "overdue": []}
