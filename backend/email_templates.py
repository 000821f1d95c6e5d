from html import escape
from typing import Tuple

BRAND = "End_Loop Hackathon"

SIGNATURE_TEXT = (
    "Regards,\n"
    "End_Loop Organising Team\n"
)
SIGNATURE_HTML = '<p style="margin-bottom: 0;">Regards,<br><strong>End_Loop Organising Team</strong></p>'


def _wrap(body: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          {body}
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          {SIGNATURE_HTML}
        </div>
      </body>
    </html>
    """


def build_otp_email(code: str, validity_minutes: int = 10) -> Tuple[str, str, str]:
    subject = f"Your OTP - {BRAND}"
    text = (
        "Hello,\n\n"
        f"Your one-time password is {code}.\n\n"
        f"This code expires in {validity_minutes} minutes.\n\n"
        "If you did not request this, you can safely ignore this email.\n\n"
        + SIGNATURE_TEXT
    )
    html = _wrap(
        f"""
          <h2 style="margin-top: 0;">Verify your email</h2>
          <p>Your OTP expires in <strong>{validity_minutes} minutes</strong>.</p>
          <div style="font-size: 36px; font-weight: bold; letter-spacing: 10px; text-align: center; padding: 20px; background: #f4f4f4; border-radius: 8px; margin: 24px 0;">
            {escape(code)}
          </div>
          <p style="color: #888; font-size: 12px;">If you did not request this, ignore this email.</p>
        """
    )
    return subject, html, text


def build_team_invite_email(invitee_name: str, leader_name: str, team_name: str, event_name: str) -> Tuple[str, str, str]:
    subject = f"Team Invite - {team_name} | {BRAND}"
    text = (
        f"Hi {invitee_name},\n\n"
        f"{leader_name} has invited you to join the team \"{team_name}\" for {event_name}.\n\n"
        "Log in to your dashboard to accept or decline this invitation.\n\n"
        + SIGNATURE_TEXT
    )
    html = _wrap(
        f"""
          <h2 style="margin-top: 0; color: #4F46E5;">You've been invited to a team!</h2>
          <p>Hi <strong>{escape(invitee_name)}</strong>,</p>
          <p><strong>{escape(leader_name)}</strong> has invited you to join their team for <strong>{escape(event_name)}</strong>.</p>
          <div style="background: #f4f4f4; border-radius: 8px; padding: 16px; margin: 20px 0; text-align: center;">
            <p style="margin: 0; font-size: 14px; color: #666;">Team Name</p>
            <p style="margin: 8px 0 0; font-size: 24px; font-weight: bold; color: #4F46E5;">{escape(team_name)}</p>
          </div>
          <p>Log in to your dashboard to accept or decline this invitation.</p>
        """
    )
    return subject, html, text


def build_shortlist_email(name: str, team_name: str, event_name: str, rank: int) -> Tuple[str, str, str]:
    subject = f"Your team has been shortlisted - {event_name}"
    text = (
        f"Hi {name},\n\n"
        f"Congratulations! Your team \"{team_name}\" has been shortlisted for {event_name} (rank {rank}).\n\n"
        "Your entry and meal QR codes will be available on your dashboard once they are generated.\n\n"
        + SIGNATURE_TEXT
    )
    html = _wrap(
        f"""
          <h2 style="margin-top: 0;">Congratulations, you're shortlisted!</h2>
          <p>Hi <strong>{escape(name)}</strong>,</p>
          <p>Your team <strong>{escape(team_name)}</strong> has been shortlisted for <strong>{escape(event_name)}</strong> at rank <strong>{rank}</strong>.</p>
          <p>Your entry and meal QR codes will be available on your dashboard once they are generated.</p>
        """
    )
    return subject, html, text
