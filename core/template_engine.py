# core/template_engine.py
"""
Notification email rendering for date plan submissions

Every interpolated value goes through Jinja2 autoescaping (markupsafe escapes
& < > " '), even though the validator has already sanitized the plan. CSS is
inlined with premailer for email client compatibility and a plain-text
alternative is derived from the HTML with BeautifulSoup.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from jinja2 import Environment, StrictUndefined
import premailer
from bs4 import BeautifulSoup

from core.models import PlanSubmission
from core.validator import parse_iso_date

logger = logging.getLogger(__name__)


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>New Dating Plan Submission</title>
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f4f4f4; }
        .container { background-color: white; padding: 30px; }
        .header { background-color: #e91e63; color: white; padding: 20px; text-align: center; }
        .plan-details { background-color: #f9f9f9; padding: 20px; margin: 20px 0; }
        .activities { background-color: #fff3e0; padding: 15px; margin: 15px 0; }
        .metadata { font-size: 0.9em; color: #666; border-top: 1px solid #eee; padding-top: 15px; margin-top: 20px; }
        .highlight { background-color: #fff9c4; padding: 2px 4px; }
        .footer { margin-top: 30px; font-style: italic; color: #666; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>New Dating Plan Submitted!</h1>
        </div>
        <p>A new dating plan has been submitted through your app. Here are the details:</p>
        <div class="plan-details">
            <h2>Plan Details</h2>
            <p><strong>Name:</strong> <span class="highlight">{{ plan.name }}</span></p>
            <p><strong>Date:</strong> <span class="highlight">{{ plan.date | long_date }}</span></p>
            <p><strong>Time:</strong> <span class="highlight">{{ plan.time }}</span></p>
        </div>
        <div class="activities">
            <h3>Selected Activities</h3>
            <ul>
            {% for activity in plan.activities %}
                <li>{{ activity }}</li>
            {% endfor %}
            </ul>
            {% if plan.custom_activity %}
            <p><strong>Custom Activity:</strong> {{ plan.custom_activity }}</p>
            {% endif %}
        </div>
        <div class="metadata">
            <h3>Submission Information</h3>
            {% if submission_id %}
            <p><strong>Submission ID:</strong> {{ submission_id }}</p>
            {% endif %}
            <p><strong>Submitted At:</strong> {{ plan.submitted_at | long_datetime }}</p>
            <p><strong>User Agent:</strong> {{ plan.user_agent or 'Unknown' }}</p>
            <p><strong>IP Address:</strong> {{ plan.ip_address or 'Unknown' }}</p>
        </div>
        <p class="footer">This email was automatically generated by your Dating Planner app.</p>
    </div>
</body>
</html>
"""


@dataclass
class RenderedEmail:
    """Subject and bodies of one notification email"""
    subject: str
    html: str
    text: str
    inline_css_applied: bool
    size_bytes: int
    render_time_ms: float


def format_long_date(value: str) -> str:
    """'2026-02-14' -> 'Saturday, February 14, 2026'; unparseable input is returned as-is"""
    parsed = parse_iso_date(value) if isinstance(value, str) else None
    if parsed is None:
        return value
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


def format_long_datetime(value: str) -> str:
    """ISO timestamp -> 'Saturday, February 14, 2026 at 07:00 PM UTC'"""
    try:
        moment = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year} at {moment:%I:%M %p} UTC"


class PlanEmailRenderer:
    """
    Renders the plan notification email

    Autoescaping is always on; callers cannot disable it.
    """

    def __init__(self, enable_css_inlining: bool = True):
        self.enable_css_inlining = enable_css_inlining

        self.env = Environment(
            autoescape=True,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True
        )
        self.env.filters['long_date'] = format_long_date
        self.env.filters['long_datetime'] = format_long_datetime

        self._html_template = self.env.from_string(HTML_TEMPLATE)

    def render(self, plan: PlanSubmission, submission_id: Optional[str] = None) -> RenderedEmail:
        """
        Render subject, HTML and text bodies for a validated plan

        Args:
            plan: Sanitized plan submission
            submission_id: Identifier shown in the metadata block, if known

        Returns:
            RenderedEmail ready to hand to a transport
        """
        start_time = datetime.now()

        # Header value: no line breaks
        subject = re.sub(r'[\r\n]+', ' ', f"New Dating Plan Submitted: {plan.name}").strip()
        html_body = self._html_template.render(plan=plan, submission_id=submission_id)
        text_body = self._html_to_text(html_body)

        inline_css_applied = False
        if self.enable_css_inlining:
            inlined = self._inline_css(html_body)
            if inlined is not None:
                html_body = inlined
                inline_css_applied = True

        size_bytes = len(html_body.encode('utf-8')) + len(text_body.encode('utf-8'))
        render_time_ms = (datetime.now() - start_time).total_seconds() * 1000

        logger.debug(f"Notification email rendered in {render_time_ms:.2f}ms, size: {size_bytes:,} bytes")

        return RenderedEmail(
            subject=subject,
            html=html_body,
            text=text_body,
            inline_css_applied=inline_css_applied,
            size_bytes=size_bytes,
            render_time_ms=render_time_ms
        )

    def _inline_css(self, html_content: str) -> Optional[str]:
        """
        Inline CSS styles for better email client compatibility
        """
        try:
            p = premailer.Premailer(
                html_content,
                remove_classes=False,
                keep_style_tags=True,
                strip_important=False,
                allow_network=False,
                cssutils_logging_level=logging.CRITICAL
            )
            return p.transform()
        except Exception as e:
            logger.warning(f"CSS inlining failed: {str(e)}")
            return None

    def _html_to_text(self, html_content: str) -> str:
        """
        Convert HTML to plain text for the multipart alternative
        """
        soup = BeautifulSoup(html_content, 'html.parser')

        for tag in soup.find_all(['style', 'title']):
            tag.decompose()

        for header in soup.find_all(['h1', 'h2', 'h3']):
            header.insert_before('\n')
            header.insert_after('\n')

        for p in soup.find_all('p'):
            p.insert_after('\n')

        for li in soup.find_all('li'):
            li.insert_before('- ')
            li.insert_after('\n')

        text = soup.get_text()
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r' *\n *', '\n', text)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()
