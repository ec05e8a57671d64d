from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape


GUEST_MOCKUPS_SUBJECT = "Your Situ Mockups"
WELCOME_SUBJECT = "Welcome to Situ"
FEEDBACK_SUBJECT = "How is Situ working for you?"

_WRAPPER = (
    '<div style="font-family: \'Helvetica Neue\', Helvetica, Arial, sans-serif; max-width: 600px; '
    'margin: 0 auto; color: #4A3B32; background-color: #FDFBF7; padding: 40px 20px;">'
    '<h1 style="text-align: center; font-family: Georgia, serif; font-size: 28px;">{title}</h1>'
    '<div style="background-color: #FFFFFF; padding: 30px; border-radius: 16px;">{body}</div>'
    '<p style="text-align: center; margin-top: 30px; font-size: 12px; color: #999;">'
    "&copy; {year} Situ. All rights reserved.</p>"
    "</div>"
)

_BUTTON = (
    '<a href="{href}" style="background-color: #4A3B32; color: #fff; padding: 14px 28px; '
    'text-decoration: none; border-radius: 50px; font-weight: bold; display: inline-block;">{label}</a>'
)


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html_content: str


def _page(*, title: str, body: str) -> str:
    return _WRAPPER.format(title=escape(title), body=body, year=datetime.now(timezone.utc).year)


def _paragraph(text: str) -> str:
    return f'<p style="font-size: 16px; line-height: 1.6;">{text}</p>'


def render_guest_mockups_email(*, mockup_urls: list[str], signup_url: str) -> EmailMessage:
    tiles = "".join(
        '<div style="margin-bottom: 15px; text-align: center;">'
        f'<a href="{escape(url)}" target="_blank">'
        f'<img src="{escape(url)}" alt="Mockup {index}" style="width: 100%; max-width: 250px; border-radius: 8px;">'
        "</a>"
        f'<div><a href="{escape(url)}" style="color: #9C826B; font-size: 13px;">Download Image</a></div>'
        "</div>"
        for index, url in enumerate(mockup_urls, start=1)
    )
    body = (
        _paragraph("Hello,")
        + _paragraph("Here are the mockups you generated with Situ. Seeing your artwork on real products brings it to life!")
        + tiles
        + _paragraph("Create a free Situ account to generate more mockups with any artwork you upload.")
        + _BUTTON.format(href=escape(signup_url), label="Create your free Situ account")
        + '<p style="font-size: 12px; color: #888;">(Includes 12 free credits to start!)</p>'
    )
    return EmailMessage(subject=GUEST_MOCKUPS_SUBJECT, html_content=_page(title=GUEST_MOCKUPS_SUBJECT, body=body))


def render_welcome_email(*, display_name: str | None, studio_url: str) -> EmailMessage:
    greeting = f"Hi {escape(display_name)}," if display_name else "Hi there,"
    body = (
        _paragraph(greeting)
        + _paragraph("Welcome to Situ, the place where your artwork comes to life on real products.")
        + _paragraph("Your account starts with free credits. Upload an artwork and try a few products.")
        + _BUTTON.format(href=escape(studio_url), label="Open your studio")
    )
    return EmailMessage(subject=WELCOME_SUBJECT, html_content=_page(title=WELCOME_SUBJECT, body=body))


def render_feedback_email(*, display_name: str | None, feedback_url: str) -> EmailMessage:
    greeting = f"Hi {escape(display_name)}," if display_name else "Hi there,"
    body = (
        _paragraph(greeting)
        + _paragraph("You joined Situ yesterday. We would love to hear what worked and what did not.")
        + _BUTTON.format(href=escape(feedback_url), label="Share feedback")
    )
    return EmailMessage(subject=FEEDBACK_SUBJECT, html_content=_page(title=FEEDBACK_SUBJECT, body=body))
