"""
Feedback Service

Delivers user feedback to the team mailbox over SMTP.
"""

import html
import smtplib
from email.message import EmailMessage
from typing import Callable, Optional

from loguru import logger

from favely.config import Settings
from favely.errors import FavelyError
from favely.models.user_models import FeedbackIn


class FeedbackError(FavelyError):
    status_code = 500

    def __init__(self, message: str = "Failed to submit feedback"):
        super().__init__(message)


class FeedbackService:
    def __init__(self, settings: Settings, smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None):
        self.settings = settings
        self._smtp_factory = smtp_factory

    def subject(self, feedback: FeedbackIn) -> str:
        subject = f"Favely Feedback: {feedback.type}"
        if feedback.username:
            subject += f" from @{feedback.username}"
        return subject

    def compose(self, feedback: FeedbackIn, user_id: Optional[str]) -> EmailMessage:
        rows = [
            ("Type", feedback.type),
            ("Source page", feedback.source_page or "Unknown"),
            ("Username", f"@{feedback.username}" if feedback.username else "Anonymous"),
            ("User ID", user_id or "Not signed in"),
        ]
        details = "".join(f"<p><strong>{label}:</strong> {html.escape(value)}</p>" for label, value in rows)
        comment = html.escape(feedback.comment).replace("\n", "<br>")
        body = f"<h2>New feedback</h2>{details}<h3>Comment</h3><p>{comment}</p>"

        message = EmailMessage()
        message["Subject"] = self.subject(feedback)
        message["From"] = self.settings.smtp_user or self.settings.feedback_recipient
        message["To"] = self.settings.feedback_recipient
        message.set_content(feedback.comment)
        message.add_alternative(body, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        if self._smtp_factory is not None:
            return self._smtp_factory(self.settings.smtp_host, self.settings.smtp_port)
        smtp_class = smtplib.SMTP_SSL if self.settings.smtp_secure else smtplib.SMTP
        return smtp_class(self.settings.smtp_host, self.settings.smtp_port, timeout=30)

    def submit(self, feedback: FeedbackIn, user_id: Optional[str] = None) -> dict:
        ctx_logger = logger.bind(type=feedback.type, user_id=user_id)
        message = self.compose(feedback, user_id)
        try:
            with self._connect() as smtp:
                if self.settings.smtp_user:
                    smtp.login(self.settings.smtp_user, self.settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            ctx_logger.error(f"  ✖ [Feedback] Sending feedback e-mail failed: {e}")
            raise FeedbackError() from e
        ctx_logger.info("✔ [Feedback] Feedback sent")
        return {"success": True}
