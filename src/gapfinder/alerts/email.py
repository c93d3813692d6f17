"""HTML body of the knowledge-gap alert email."""

from html import escape


def build_alert_email(
    tenant_name: str,
    label: str,
    question_count: int,
    sample_questions: list[str],
    feedback_url: str,
) -> str:
    questions_html = "".join(
        f'<li style="margin-bottom:4px">{escape(q)}</li>' for q in sample_questions
    )
    return f"""<!DOCTYPE html>
<html>
<body style="font-family:sans-serif;max-width:600px;margin:0 auto;padding:20px">
  <h2 style="color:#1a1a1a">Knowledge Gap Alert</h2>
  <p><strong>{question_count} people</strong> have asked about
    <strong>"{escape(label)}"</strong> at {escape(tenant_name)},
    but the assistant couldn't find an answer.</p>
  <h3 style="color:#555;font-size:14px">Sample questions:</h3>
  <ul style="color:#333;font-size:14px">{questions_html}</ul>
  <p>
    <a href="{escape(feedback_url)}"
       style="display:inline-block;padding:10px 20px;background:#2563eb;color:#fff;text-decoration:none;border-radius:6px;font-weight:600">
      Review &amp; Respond
    </a>
  </p>
  <p style="color:#999;font-size:12px;margin-top:24px">
    You're receiving this because you're an operator at {escape(tenant_name)}.
  </p>
</body>
</html>"""


def alert_subject(label: str, question_count: int) -> str:
    return f'Knowledge gap detected: "{label}" ({question_count} questions)'
