"""
Outbound email interface.
"""

from abc import ABC, abstractmethod


class EmailSender(ABC):
    """
    Implementations:
    - SmtpEmailSender: stdlib smtplib, run in a worker thread
    - LoggingEmailSender: writes the message to the log (no SMTP configured)

    ``send`` returns False instead of raising for delivery failures it
    recognises; callers still guard against exceptions and timeouts.
    """

    @abstractmethod
    async def send(self, to: str, subject: str, html_body: str) -> bool:
        pass
