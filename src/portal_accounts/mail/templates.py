"""HTML bodies for account emails."""

from html import escape

from portal_accounts.mail.sender import OutgoingEmail

LOGO_PATH = "/images/logo-portal.png"

_VERIFICATION_HTML = """\
<div style="font-family:Arial,sans-serif;max-width:500px;margin:0 auto;padding:24px;background:#f9f9f9;border-radius:8px;">
  <div style="text-align:center;">
    <img src="{logo_url}" alt="{product}" style="max-width:150px;margin-bottom:24px;" />
  </div>
  <h2 style="color:#0b203a;text-align:center;">Welcome to {product}!</h2>
  <p style="font-size:1.1em;color:#333;text-align:center;">
    Hi, {full_name}! To activate your account, click the button below to verify your email:
  </p>
  <div style="text-align:center;margin:32px 0;">
    <a href="{verify_url}" style="background:#fca311;color:#fff;text-decoration:none;padding:14px 32px;border-radius:6px;font-size:1.1em;display:inline-block;">
      Verify email
    </a>
  </div>
  <p style="color:#555;text-align:center;">
    If the button does not work, copy and paste this link into your browser:<br>
    <a href="{verify_url}" style="color:#0b203a;">{verify_url}</a>
  </p>
  <hr style="margin:32px 0;">
  <p style="font-size:0.95em;color:#888;text-align:center;">
    If you did not create an account, ignore this email.<br>
    &copy; {product}
  </p>
</div>
"""


def verification_email(
    *,
    to: str,
    full_name: str,
    token: str,
    frontend_url: str,
    product: str,
) -> OutgoingEmail:
    base = frontend_url.rstrip("/")
    verify_url = f"{base}/profile/verification?token={token}"
    html = _VERIFICATION_HTML.format(
        logo_url=escape(f"{base}{LOGO_PATH}"),
        product=escape(product),
        full_name=escape(full_name),
        verify_url=escape(verify_url),
    )
    return OutgoingEmail(
        to=to,
        subject=f"Verify your email - {product}",
        html_body=html,
    )
