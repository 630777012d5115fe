"""Tests for the console notifier."""

import threading

from common.alert_store import Alert, AlertRecipient, RecipientRole, Severity
from alert_engine_src.notifiers import ConsoleNotifier


class TestConsoleNotifier:
    """Test the development notifier."""

    def make_alert(self):
        alert = Alert(
            id="a1",
            patient_id="P",
            alert_type="hyperglycemia",
            severity=Severity.HIGH,
            context_key="measurement:m1",
            summary="3 readings above 180",
        )
        recipient = AlertRecipient(id="r1", alert_id="a1", user_id="P", role=RecipientRole.PATIENT)
        return alert, recipient

    def test_records_hand_off(self):
        notifier = ConsoleNotifier(quiet=True)
        alert, recipient = self.make_alert()

        assert notifier.send_alert(alert, recipient) is True
        assert notifier.get_alert_count() == 1
        assert notifier.get_alerts()[0]["user_id"] == "P"

    def test_prints_when_not_quiet(self, capsys):
        notifier = ConsoleNotifier()
        alert, recipient = self.make_alert()
        notifier.send_alert(alert, recipient)

        out = capsys.readouterr().out
        assert "HIGH ALERT: hyperglycemia" in out
        assert "P (patient)" in out

    def test_counts_stay_exact_across_threads(self):
        """Scan workers hand off concurrently; no sends are lost."""
        notifier = ConsoleNotifier(quiet=True)
        alert, recipient = self.make_alert()
        workers, per_worker = 8, 250
        start = threading.Barrier(workers)

        def send_many():
            start.wait()
            for _ in range(per_worker):
                notifier.send_alert(alert, recipient)

        threads = [threading.Thread(target=send_many) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert notifier.get_alert_count() == workers * per_worker
        assert len(notifier.get_alerts()) == workers * per_worker
