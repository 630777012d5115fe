"""Console notifier for development and testing."""

import threading
from datetime import datetime

from common.alert_store import Alert, AlertRecipient

from .base import BaseNotifier


class ConsoleNotifier(BaseNotifier):
    """Prints alerts to console - useful for development."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.alert_count = 0
        self.alerts: list[dict] = []
        # Called from scan worker threads
        self._lock = threading.Lock()

    def send_alert(self, alert: Alert, recipient: AlertRecipient) -> bool:
        """Print alert to console."""
        with self._lock:
            self.alert_count += 1
            self.alerts.append({
                "timestamp": datetime.now().isoformat(),
                "alert_id": alert.id,
                "recipient_id": recipient.id,
                "user_id": recipient.user_id,
                "role": recipient.role.value,
                "patient_id": alert.patient_id,
                "alert_type": alert.alert_type,
                "severity": alert.severity.value,
                "summary": alert.summary,
            })

        if self.quiet:
            return True

        print("\n" + "=" * 70)
        print(f"{alert.severity.value.upper()} ALERT: {alert.alert_type}")
        print(f"  Alert ID:    {alert.id}")
        print("=" * 70)
        print(f"  To:          {recipient.user_id} ({recipient.role.value})")
        print(f"  Patient:     {alert.patient_id}")
        print(f"  Summary:     {alert.summary or '-'}")
        if alert.note:
            print(f"  Note:        {alert.note}")
        if alert.recipient_warning:
            print(f"  Warning:     {alert.recipient_warning}")
        print("=" * 70 + "\n")

        return True

    def get_alert_count(self) -> int:
        """Return number of alerts sent."""
        with self._lock:
            return self.alert_count

    def get_alerts(self) -> list[dict]:
        """Return all alerts sent (for testing)."""
        with self._lock:
            return self.alerts.copy()
