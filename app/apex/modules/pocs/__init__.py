"""
PoC module.

A PoC starts in `pending_presales_review`, is approved by Presales into `active`, and
carries a Technical Lead, an Account Manager and an engineering team.
"""
