"""
Employees module.

- Employee roster CRUD (company role, contact details, skills/certificates)
- Technical profiles for Technical Team / Managed Services staff (grade -> level)
- Mention search used by the comment composer
"""
