"""
Notification Templates

Builds the subject/body of lifecycle notifications and renders a stored
notification into the HTML sent to the email provider.
"""

import html
from datetime import datetime
from datetime import timezone
from typing import Tuple

from exam_api.portal.enums import EmailType
from exam_api.portal.models import ExamRequest
from exam_api.portal.models import Notification

# email type -> (subject template, lead sentence template, closing line)
TRANSITION_COPY = {
    EmailType.REQUEST_RESOLVED: (
        'Your Request "{title}" Has Been Resolved',
        "Your request \"{title}\" has been resolved. Here's the resolution:",
        "Thank you for your patience.",
    ),
    EmailType.REQUEST_ESCALATED: (
        'Your Request "{title}" Has Been Escalated',
        'Your request "{title}" has been escalated to senior administrators for further review.',
        "Thank you for your patience.",
    ),
    EmailType.REQUEST_TERMINATED: (
        'Your Request "{title}" Has Been Closed',
        "Your request \"{title}\" has been closed. Here's the reason:",
        "Thank you for your understanding.",
    ),
}


def build_transition_message(
    email_type: EmailType,
    request: ExamRequest,
    response_text: str,
    signature: str,
) -> Tuple[str, str]:
    """Return (subject, plain-text content) for a lifecycle notification."""
    subject_template, lead_template, closing = TRANSITION_COPY[email_type]
    student_name = request.student_name or "Student"

    subject = subject_template.format(title=request.title)
    content = "\n\n".join(
        [
            f"Dear {student_name},",
            lead_template.format(title=request.title),
            response_text,
            closing,
            f"Regards,\n{signature}",
        ]
    )
    return subject, content


def file_name_from_url(url: str) -> str:
    """Last path segment of a URL without its query string."""
    file_name = url.rstrip("/").split("/")[-1].split("?")[0]
    return file_name or "attachment"


def render_email_html(notification: Notification, portal_name: str) -> str:
    """Render a notification as a complete HTML document (fixed header and footer)."""
    paragraphs = "".join(
        f"<p>{html.escape(paragraph).replace(chr(10), '<br>')}</p>"
        for paragraph in notification.content.split("\n\n")
    )

    request_block = ""
    if notification.request_id:
        request_block = f'<div>Request ID: <span class="request-id">{notification.request_id}</span></div>'

    attachments_block = ""
    if notification.attachments:
        items = "".join(
            f'<li class="attachment-item"><a href="{html.escape(url, quote=True)}" target="_blank">'
            f"View Attachment ({html.escape(file_name_from_url(url))})</a></li>"
            for url in notification.attachments
        )
        attachments_block = (
            f'<div class="attachments"><p><strong>Attachments:</strong></p><ul>{items}</ul></div>'
        )

    year = datetime.now(timezone.utc).year
    title = html.escape(portal_name)

    return f"""<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 0; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background-color: #003b71; padding: 20px; text-align: center; }}
    .header h1 {{ color: white; margin: 0; }}
    .content {{ padding: 20px; background-color: #f9f9f9; }}
    .footer {{ background-color: #f1f1f1; padding: 15px; text-align: center; font-size: 12px; color: #666; }}
    .request-id {{ background-color: #f0f0f0; border: 1px solid #ddd; padding: 8px 12px; border-radius: 4px; font-family: monospace; }}
    .attachments {{ margin-top: 20px; border-top: 1px solid #ddd; padding-top: 15px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h1>{title}</h1></div>
    <div class="content">
      <h2>{html.escape(notification.subject)}</h2>
      {request_block}
      {paragraphs}
      {attachments_block}
    </div>
    <div class="footer">
      <p>This is an automated message from the {title}. Please do not reply to this email.</p>
      <p>&copy; {year} {title}. All rights reserved.</p>
    </div>
  </div>
</body>
</html>
"""
