"""
Shared machinery for PoCs and Projects ("engagements"): team reconciliation, status
history, threaded comments with @mentions, activity logs and attachments.
"""
