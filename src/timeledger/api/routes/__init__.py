"""
API route modules.

- entries: entry listing, editing, restructuring and audit trail
- timer: start, stop and resume the running timer
- reference: projects and labels
- stats: tracked time today and this week
"""
