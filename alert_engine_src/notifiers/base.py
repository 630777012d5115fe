"""Base notifier interface."""

from abc import ABC, abstractmethod

from common.alert_store import Alert, AlertRecipient


class BaseNotifier(ABC):
    """Abstract hand-off point to the external notification service."""

    @abstractmethod
    def send_alert(self, alert: Alert, recipient: AlertRecipient) -> bool:
        """
        Hand an alert to the delivery service for one recipient.

        Args:
            alert: The stored alert
            recipient: Which recipient record to notify

        Returns:
            True if the hand-off succeeded, False otherwise
        """
        pass

    @abstractmethod
    def get_alert_count(self) -> int:
        """Return the number of alerts handed off."""
        pass
